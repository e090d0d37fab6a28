"""Loyalty service: the operations the HTTP layer calls."""

from decimal import Decimal

from app.core.config import Settings, get_settings
from app.core.exceptions import InvalidOrderNumberError
from app.core.logging import get_logger
from app.core.order_number import is_valid_order_number
from app.ledger.base import LedgerStore, get_ledger_store
from app.ledger.records import BalanceRecord, OrderRecord, UserRecord, WithdrawalRecord
from app.services import users as user_service
from app.services.accrual import AccrualGateway, build_accrual_gateway
from app.services.balance import BalanceLedger
from app.services.orders import OrderProcessingEngine, SubmitOutcome
from app.services.poller import AccrualPoller

log = get_logger(__name__)


class LoyaltyService:
    def __init__(
        self,
        store: LedgerStore,
        gateway: AccrualGateway,
        poll_interval_seconds: float = 1.0,
        batch_size: int = 100,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.ledger = BalanceLedger(store)
        self.engine = OrderProcessingEngine(store, gateway, batch_size=batch_size)
        self.poller = AccrualPoller(self.engine, interval_seconds=poll_interval_seconds)
        self.engine.on_submitted = self.poller.notify

    # Users

    async def register(self, login: str, password: str) -> UserRecord:
        return await user_service.register(self.store, login, password)

    async def authenticate(self, login: str, password: str) -> UserRecord:
        return await user_service.authenticate(self.store, login, password)

    async def get_user(self, user_id: str) -> UserRecord | None:
        return await self.store.get_user(user_id)

    # Orders

    async def submit_order(self, user_id: str, number: str) -> SubmitOutcome:
        return await self.engine.submit(user_id, number)

    async def list_orders(self, user_id: str) -> list[OrderRecord]:
        return await self.store.list_orders(user_id)

    # Balance

    async def get_balance(self, user_id: str) -> BalanceRecord:
        return await self.ledger.balance(user_id)

    async def withdraw(self, user_id: str, order_number: str, amount: Decimal) -> WithdrawalRecord:
        if not is_valid_order_number(order_number):
            raise InvalidOrderNumberError(order_number)
        return await self.ledger.debit(user_id, order_number, amount)

    async def list_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        return await self.store.list_withdrawals(user_id)

    # Lifecycle

    async def start_poller(self) -> None:
        await self.poller.start()

    async def stop_poller(self) -> None:
        await self.poller.stop()

    async def aclose(self) -> None:
        await self.stop_poller()
        await self.gateway.aclose()


def build_service(settings: Settings | None = None) -> LoyaltyService:
    settings = settings or get_settings()
    return LoyaltyService(
        get_ledger_store(),
        build_accrual_gateway(),
        poll_interval_seconds=settings.accrual_poll_interval_seconds,
        batch_size=settings.accrual_batch_size,
    )
