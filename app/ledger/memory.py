"""Process-local ledger store. One asyncio.Lock serializes every mutation."""

import asyncio
import uuid
from datetime import datetime
from decimal import Decimal

from app.core.exceptions import InternalError, LoginAlreadyExistsError, NotFoundError
from app.ledger.base import LedgerStore
from app.ledger.records import (
    PENDING_STATUSES,
    BalanceRecord,
    DebitResult,
    InsertResult,
    OrderRecord,
    OrderStatus,
    UserRecord,
    WithdrawalRecord,
)


class InMemoryLedgerStore(LedgerStore):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.users: dict[str, UserRecord] = {}
        self.balances: dict[str, BalanceRecord] = {}
        self.orders: dict[str, OrderRecord] = {}
        self.withdrawals: list[WithdrawalRecord] = []

    async def create_user(self, login: str, password_hash: str) -> UserRecord:
        async with self._lock:
            if any(u.login == login for u in self.users.values()):
                raise LoginAlreadyExistsError(login)
            user = UserRecord(
                id=uuid.uuid4().hex,
                login=login,
                password_hash=password_hash,
                created_at=datetime.utcnow(),
            )
            self.users[user.id] = user
            self.balances[user.id] = BalanceRecord(current=Decimal("0"), withdrawn=Decimal("0"))
            return user

    async def get_user(self, user_id: str) -> UserRecord | None:
        return self.users.get(user_id)

    async def get_user_by_login(self, login: str) -> UserRecord | None:
        for user in self.users.values():
            if user.login == login:
                return user
        return None

    async def insert_order_if_absent(self, number: str, owner_id: str) -> InsertResult:
        async with self._lock:
            existing = self.orders.get(number)
            if existing:
                return InsertResult(created=False, owner_id=existing.user_id)
            self._require_user(owner_id)
            self.orders[number] = OrderRecord(
                number=number,
                user_id=owner_id,
                status=OrderStatus.NEW,
                uploaded_at=datetime.utcnow(),
            )
            return InsertResult(created=True, owner_id=owner_id)

    async def transition_order(self, number: str, status: OrderStatus) -> bool:
        async with self._lock:
            order = self.orders.get(number)
            if not order or order.status not in PENDING_STATUSES:
                return False
            self.orders[number] = order.model_copy(update={"status": status})
            return True

    async def credit_and_transition_order(self, number: str, status: OrderStatus, accrual: Decimal) -> bool:
        async with self._lock:
            order = self.orders.get(number)
            if not order or order.status not in PENDING_STATUSES:
                return False
            if order.user_id not in self.balances:
                raise InternalError("Order owner has no balance", details={"order": number})
            self._apply_credit(order.user_id, accrual)
            self.orders[number] = order.model_copy(update={"status": status, "accrual": accrual})
            return True

    async def credit(self, user_id: str, amount: Decimal) -> BalanceRecord:
        async with self._lock:
            self._require_user(user_id)
            return self._apply_credit(user_id, amount)

    async def debit_if_sufficient(self, user_id: str, order_number: str, amount: Decimal) -> DebitResult:
        async with self._lock:
            bal = self._require_user(user_id)
            if bal.current < amount:
                return DebitResult(ok=False, balance=bal.current)
            bal = BalanceRecord(current=bal.current - amount, withdrawn=bal.withdrawn + amount)
            self.balances[user_id] = bal
            withdrawal = WithdrawalRecord(
                order=order_number,
                user_id=user_id,
                sum=amount,
                processed_at=datetime.utcnow(),
            )
            self.withdrawals.append(withdrawal)
            return DebitResult(ok=True, balance=bal.current, withdrawal=withdrawal)

    async def get_balance(self, user_id: str) -> BalanceRecord:
        return self._require_user(user_id)

    async def list_orders_needing_poll(self, limit: int, after: OrderRecord | None = None) -> list[OrderRecord]:
        pending = [o for o in self.orders.values() if o.status in PENDING_STATUSES]
        if after is not None:
            pending = [o for o in pending if (o.uploaded_at, o.number) > (after.uploaded_at, after.number)]
        pending.sort(key=lambda o: (o.uploaded_at, o.number))
        return pending[:limit]

    async def list_orders(self, user_id: str) -> list[OrderRecord]:
        out = [o for o in self.orders.values() if o.user_id == user_id]
        out.sort(key=lambda o: o.uploaded_at)
        return out

    async def list_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        return [w for w in self.withdrawals if w.user_id == user_id]

    def _require_user(self, user_id: str) -> BalanceRecord:
        bal = self.balances.get(user_id)
        if bal is None:
            raise NotFoundError("User not found")
        return bal

    def _apply_credit(self, user_id: str, amount: Decimal) -> BalanceRecord:
        bal = self.balances[user_id]
        bal = BalanceRecord(current=bal.current + amount, withdrawn=bal.withdrawn)
        self.balances[user_id] = bal
        return bal
