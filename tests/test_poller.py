import asyncio
from decimal import Decimal

import pytest

from app.core.exceptions import AccrualRateLimitedError
from app.ledger.records import OrderStatus
from app.services.orders import OrderProcessingEngine
from app.services.poller import AccrualPoller

pytestmark = pytest.mark.asyncio


async def wait_for(predicate, timeout: float = 2.0) -> None:
    async def _loop():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_loop(), timeout)


async def test_start_stop_is_idempotent(store, gateway):
    poller = AccrualPoller(OrderProcessingEngine(store, gateway), interval_seconds=0.01)
    await poller.start()
    await poller.start()
    assert poller.running
    await poller.stop()
    await poller.stop()
    assert not poller.running


async def test_resolves_submitted_orders_in_background(service, store, gateway, user_id):
    gateway.set("12345678903", gateway.processed("12345678903", 500))
    await service.start_poller()
    await service.submit_order(user_id, "12345678903")
    await wait_for(lambda: store.orders["12345678903"].status is OrderStatus.PROCESSED)
    assert (await service.get_balance(user_id)).current == Decimal("500")


async def test_submission_wakes_a_slow_poller(store, gateway, user_id):
    engine = OrderProcessingEngine(store, gateway)
    poller = AccrualPoller(engine, interval_seconds=3600)
    engine.on_submitted = poller.notify
    gateway.set("18", gateway.processed("18", 1))
    await poller.start()
    try:
        await engine.submit(user_id, "18")
        await wait_for(lambda: store.orders["18"].status is OrderStatus.PROCESSED)
    finally:
        await poller.stop()


async def test_rate_limit_pauses_whole_poller(store, gateway, user_id):
    pauses = []
    resume = asyncio.Event()

    async def fake_sleep(seconds):
        pauses.append(seconds)
        await resume.wait()

    engine = OrderProcessingEngine(store, gateway)
    poller = AccrualPoller(engine, interval_seconds=0.01, sleep=fake_sleep)
    await engine.submit(user_id, "18")
    await engine.submit(user_id, "26")
    gateway.set("18", AccrualRateLimitedError(retry_after=42), gateway.processed("18", 7))
    gateway.set("26", gateway.processed("26", 3))

    await poller.start()
    try:
        await wait_for(lambda: pauses == [42])
        # paused: nothing else is queried, even after a wake-up
        poller.notify()
        await asyncio.sleep(0.05)
        assert gateway.calls == ["18"]
        resume.set()
        await wait_for(lambda: store.orders["26"].status is OrderStatus.PROCESSED)
    finally:
        await poller.stop()
    assert store.orders["18"].status is OrderStatus.PROCESSED
    assert (await store.get_balance(user_id)).current == Decimal("10")


async def test_cycle_failure_does_not_kill_the_loop(store, gateway, user_id):
    class FlakyEngine:
        def __init__(self):
            self.calls = 0

        async def run_cycle(self):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("store down")

    engine = FlakyEngine()
    poller = AccrualPoller(engine, interval_seconds=0.01)
    await poller.start()
    try:
        await wait_for(lambda: engine.calls >= 3)
        assert poller.running
    finally:
        await poller.stop()
