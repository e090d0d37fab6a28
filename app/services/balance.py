"""Balance ledger: spendable and withdrawn totals per user."""

from decimal import Decimal

from app.core.exceptions import BadRequestError, InsufficientPointsError
from app.core.logging import get_logger
from app.ledger.base import LedgerStore
from app.ledger.records import BalanceRecord, WithdrawalRecord

log = get_logger(__name__)


class BalanceLedger:
    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    async def credit(self, user_id: str, amount: Decimal) -> BalanceRecord:
        """Plain increment. Crediting once per order is the order engine's job."""
        if amount <= 0:
            raise BadRequestError("Credit amount must be positive", details={"amount": str(amount)})
        bal = await self.store.credit(user_id, amount)
        log.info("balance_credited", user_id=user_id, amount=str(amount), current=str(bal.current))
        return bal

    async def debit(self, user_id: str, order_number: str, amount: Decimal) -> WithdrawalRecord:
        """Withdraw amount if the balance covers it; nothing changes otherwise."""
        if amount <= 0:
            raise BadRequestError("Withdrawal amount must be positive", details={"amount": str(amount)})
        result = await self.store.debit_if_sufficient(user_id, order_number, amount)
        if not result.ok:
            log.info(
                "balance_debit_rejected",
                user_id=user_id,
                order=order_number,
                amount=str(amount),
                current=str(result.balance),
            )
            raise InsufficientPointsError(details={"current": float(result.balance), "requested": float(amount)})
        log.info("balance_debited", user_id=user_id, order=order_number, amount=str(amount), current=str(result.balance))
        return result.withdrawal

    async def balance(self, user_id: str) -> BalanceRecord:
        return await self.store.get_balance(user_id)
