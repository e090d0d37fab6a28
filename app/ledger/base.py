from abc import ABC, abstractmethod
from decimal import Decimal

from app.core.config import get_settings
from app.ledger.records import (
    BalanceRecord,
    DebitResult,
    InsertResult,
    OrderRecord,
    OrderStatus,
    UserRecord,
    WithdrawalRecord,
)


class LedgerStore(ABC):
    """Durable users, orders and withdrawals.

    Every method is a single atomic unit on the backend. Callers never
    compose a read and a write into a mutation themselves.
    """

    @abstractmethod
    async def create_user(self, login: str, password_hash: str) -> UserRecord:
        """Insert a user; raise LoginAlreadyExistsError if the login is taken."""
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> UserRecord | None:
        ...

    @abstractmethod
    async def get_user_by_login(self, login: str) -> UserRecord | None:
        ...

    @abstractmethod
    async def insert_order_if_absent(self, number: str, owner_id: str) -> InsertResult:
        """Create a NEW order owned by owner_id unless the number exists.

        Returns created=False and the existing owner on conflict.
        """
        ...

    @abstractmethod
    async def transition_order(self, number: str, status: OrderStatus) -> bool:
        """Move a non-terminal order to status without crediting. False if it was terminal already."""
        ...

    @abstractmethod
    async def credit_and_transition_order(self, number: str, status: OrderStatus, accrual: Decimal) -> bool:
        """Set status and accrual and credit the owner in one unit.

        Only applies while the order is non-terminal, which is what makes the
        credit happen once per order. False if nothing changed.
        """
        ...

    @abstractmethod
    async def credit(self, user_id: str, amount: Decimal) -> BalanceRecord:
        ...

    @abstractmethod
    async def debit_if_sufficient(self, user_id: str, order_number: str, amount: Decimal) -> DebitResult:
        """Check balance >= amount and, if so, debit it and record the withdrawal in one unit."""
        ...

    @abstractmethod
    async def get_balance(self, user_id: str) -> BalanceRecord:
        ...

    @abstractmethod
    async def list_orders_needing_poll(self, limit: int, after: OrderRecord | None = None) -> list[OrderRecord]:
        """Orders in NEW or PROCESSING, ordered by (uploaded_at, number).

        With `after`, only orders strictly past that one in the same order, so
        callers can page through every pending order.
        """
        ...

    @abstractmethod
    async def list_orders(self, user_id: str) -> list[OrderRecord]:
        ...

    @abstractmethod
    async def list_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        ...


def get_ledger_store() -> LedgerStore:
    settings = get_settings()
    if settings.ledger_backend == "memory":
        from app.ledger.memory import InMemoryLedgerStore
        return InMemoryLedgerStore()
    from app.ledger.mongo import MongoLedgerStore
    return MongoLedgerStore(use_transactions=settings.mongodb_transactions)
