"""Order submission and accrual resolution.

Order lifecycle, driven by what the accrual system reports:

    NEW        -- processing --> PROCESSING
    NEW        -- invalid    --> INVALID    (terminal)
    NEW        -- processed  --> PROCESSED  (terminal, credits the owner)
    PROCESSING -- invalid    --> INVALID
    PROCESSING -- processed  --> PROCESSED

Everything else (registered, processing again, anything on a terminal order)
leaves the order as it is.
"""

from decimal import Decimal
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from app.core.exceptions import (
    AccrualRateLimitedError,
    InvalidOrderNumberError,
    OrderOwnedByAnotherUserError,
    TransientError,
)
from app.core.logging import get_logger
from app.core.order_number import is_valid_order_number
from app.ledger.base import LedgerStore
from app.ledger.records import OrderRecord, OrderStatus
from app.services.accrual import AccrualGateway, AccrualStatus

log = get_logger(__name__)


class SubmitOutcome(str, Enum):
    CREATED = "created"
    ALREADY_SUBMITTED = "already_submitted"


class CycleReport(BaseModel):
    polled: int = 0
    transitioned: int = 0
    credited: int = 0
    failed: int = 0


_TRANSITIONS: dict[tuple[OrderStatus, AccrualStatus], OrderStatus] = {
    (OrderStatus.NEW, AccrualStatus.PROCESSING): OrderStatus.PROCESSING,
    (OrderStatus.NEW, AccrualStatus.INVALID): OrderStatus.INVALID,
    (OrderStatus.NEW, AccrualStatus.PROCESSED): OrderStatus.PROCESSED,
    (OrderStatus.PROCESSING, AccrualStatus.INVALID): OrderStatus.INVALID,
    (OrderStatus.PROCESSING, AccrualStatus.PROCESSED): OrderStatus.PROCESSED,
}


def next_status(current: OrderStatus, reported: AccrualStatus) -> OrderStatus | None:
    """Target status for a report, or None when the order should stay put."""
    return _TRANSITIONS.get((current, reported))


class OrderProcessingEngine:
    def __init__(
        self,
        store: LedgerStore,
        gateway: AccrualGateway,
        batch_size: int = 100,
        on_submitted: Callable[[str], None] | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.batch_size = batch_size
        self.on_submitted = on_submitted

    async def submit(self, user_id: str, number: str) -> SubmitOutcome:
        if not is_valid_order_number(number):
            raise InvalidOrderNumberError(number)
        result = await self.store.insert_order_if_absent(number, user_id)
        if not result.created:
            if result.owner_id == user_id:
                log.info("order_already_submitted", order=number, user_id=user_id)
                return SubmitOutcome.ALREADY_SUBMITTED
            log.info("order_owned_by_another_user", order=number, user_id=user_id)
            raise OrderOwnedByAnotherUserError(number)
        log.info("order_submitted", order=number, user_id=user_id)
        if self.on_submitted:
            self.on_submitted(number)
        return SubmitOutcome.CREATED

    async def resolve(self, order: OrderRecord) -> OrderStatus:
        """Query the accrual system once and apply the resulting transition.

        Returns the order's status afterwards as far as this call knows.
        Gateway errors propagate.
        """
        if order.status.is_terminal:
            return order.status
        report = await self.gateway.query(order.number)
        target = next_status(order.status, report.status)
        if target is None:
            log.debug("order_unchanged", order=order.number, status=order.status.value, reported=report.status.value)
            return order.status

        if target is OrderStatus.PROCESSED:
            accrual = report.accrual or Decimal("0")
            applied = await self.store.credit_and_transition_order(order.number, target, accrual)
        else:
            accrual = None
            applied = await self.store.transition_order(order.number, target)

        if not applied:
            # someone else moved it to a terminal state first
            log.info("order_transition_skipped", order=order.number, target=target.value)
            return order.status
        log.info(
            "order_transitioned",
            order=order.number,
            user_id=order.user_id,
            from_status=order.status.value,
            to_status=target.value,
            accrual=str(accrual) if accrual is not None else None,
        )
        return target

    async def run_cycle(self) -> CycleReport:
        """Resolve every pending order once.

        Pending orders are read in pages of batch_size. A rate-limit signal
        stops the cycle and propagates so the caller can pause. Other
        per-order failures are logged and retried next cycle.
        """
        report = CycleReport()
        cursor: OrderRecord | None = None
        while True:
            page = await self.store.list_orders_needing_poll(self.batch_size, after=cursor)
            for order in page:
                await self._resolve_into(order, report)
            if len(page) < self.batch_size:
                break
            cursor = page[-1]
        if report.polled:
            log.info("accrual_cycle_done", **report.model_dump())
        return report

    async def _resolve_into(self, order: OrderRecord, report: CycleReport) -> None:
        report.polled += 1
        try:
            status = await self.resolve(order)
        except AccrualRateLimitedError:
            log.warning("accrual_cycle_rate_limited", order=order.number, polled=report.polled)
            raise
        except TransientError as e:
            report.failed += 1
            log.warning("order_resolve_transient", order=order.number, reason=e.message)
            return
        except Exception:
            report.failed += 1
            log.exception("order_resolve_failed", order=order.number)
            return
        if status is not order.status:
            report.transitioned += 1
            if status is OrderStatus.PROCESSED:
                report.credited += 1
