"""In-process accrual poller: one asyncio task running resolution cycles."""

import asyncio
import contextlib
from typing import Awaitable, Callable

from app.core.exceptions import AccrualRateLimitedError
from app.core.logging import get_logger
from app.services.orders import OrderProcessingEngine

log = get_logger(__name__)


class AccrualPoller:
    def __init__(
        self,
        engine: OrderProcessingEngine,
        interval_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._wake = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task:
            return
        self._task = asyncio.create_task(self._run())
        log.info("accrual_poller_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        log.info("accrual_poller_stopped")

    def notify(self, number: str | None = None) -> None:
        """Run the next cycle now instead of waiting out the interval."""
        self._wake.set()

    async def run_once(self) -> float:
        """Run one cycle; return how long to pause before the next one (0 if not rate limited)."""
        try:
            await self.engine.run_cycle()
        except AccrualRateLimitedError as e:
            log.warning("accrual_poller_paused", retry_after=e.retry_after)
            return e.retry_after
        except Exception:
            log.exception("accrual_cycle_failed")
        return 0.0

    async def _run(self) -> None:
        while True:
            pause = await self.run_once()
            if pause > 0:
                # the whole poller waits; submissions during the pause do not wake it
                await self._sleep(pause)
                self._wake.clear()
                continue
            await self._wait_next_cycle()

    async def _wait_next_cycle(self) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
        self._wake.clear()
