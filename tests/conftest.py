import os
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory ledger and no background polling unless a test starts it
os.environ.setdefault("LEDGER_BACKEND", "memory")
os.environ.setdefault("ACCRUAL_POLLER_MODE", "off")
os.environ.setdefault("MONGODB_DB_NAME", "gpoints_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from app.core.exceptions import AccrualUnavailableError  # noqa: E402
from app.ledger.memory import InMemoryLedgerStore  # noqa: E402
from app.services.accrual import AccrualReport, AccrualStatus  # noqa: E402
from app.services.loyalty import LoyaltyService  # noqa: E402


class FakeAccrualGateway:
    """Scripted accrual system: per order, a queue of reports or exceptions.

    The last scripted item repeats once the queue is drained; orders with no
    script are reported as REGISTERED.
    """

    def __init__(self) -> None:
        self.script: dict[str, list] = {}
        self.calls: list[str] = []
        self.closed = False

    def set(self, number: str, *items) -> None:
        self.script[number] = list(items)

    def processed(self, number: str, accrual) -> AccrualReport:
        return AccrualReport(order=number, status=AccrualStatus.PROCESSED, accrual=Decimal(str(accrual)))

    def status(self, number: str, status: AccrualStatus) -> AccrualReport:
        return AccrualReport(order=number, status=status)

    async def query(self, number: str) -> AccrualReport:
        self.calls.append(number)
        items = self.script.get(number)
        if not items:
            return AccrualReport(order=number, status=AccrualStatus.REGISTERED)
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def gateway() -> FakeAccrualGateway:
    return FakeAccrualGateway()


@pytest.fixture
def unavailable() -> AccrualUnavailableError:
    return AccrualUnavailableError("boom")


@pytest_asyncio.fixture
async def service(store, gateway) -> AsyncGenerator[LoyaltyService, None]:
    svc = LoyaltyService(store, gateway, poll_interval_seconds=0.01)
    yield svc
    await svc.stop_poller()


@pytest_asyncio.fixture
async def user_id(store) -> str:
    user = await store.create_user("alice", "not-a-real-hash")
    return user.id


@pytest_asyncio.fixture
async def client(service) -> AsyncGenerator[AsyncClient, None]:
    from app.main import app
    app.state.service = service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
