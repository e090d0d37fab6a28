"""HTTP API end to end over ASGITransport with the in-memory ledger."""

import pytest
from httpx import ASGITransport, AsyncClient

pytestmark = pytest.mark.asyncio

TEXT = {"Content-Type": "text/plain"}


async def register(client, login="alice", password="secret"):
    r = await client.post("/api/user/register", json={"login": login, "password": password})
    assert r.status_code == 200, r.text
    return r


def second_client() -> AsyncClient:
    from app.main import app
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_register_sets_session_cookie(client):
    r = await register(client)
    assert "gpoints_session" in r.cookies
    assert r.json()["user"]["login"] == "alice"
    assert (await client.get("/api/user/balance")).status_code == 200


async def test_unknown_routes_are_not_exposed(client):
    await register(client)
    assert (await client.get("/api/user/me")).status_code == 404


async def test_register_duplicate_login(client):
    await register(client)
    r = await client.post("/api/user/register", json={"login": "alice", "password": "other"})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "LOGIN_ALREADY_EXISTS"


async def test_register_malformed_body(client):
    r = await client.post("/api/user/register", json={"login": "alice"})
    assert r.status_code == 400


async def test_login(client):
    await register(client)
    client.cookies.clear()
    r = await client.post("/api/user/login", json={"login": "alice", "password": "wrong"})
    assert r.status_code == 401
    r = await client.post("/api/user/login", json={"login": "alice", "password": "secret"})
    assert r.status_code == 200
    assert (await client.get("/api/user/balance")).status_code == 200


async def test_requires_session(client):
    assert (await client.get("/api/user/orders")).status_code == 401
    assert (await client.get("/api/user/balance")).status_code == 401
    assert (await client.post("/api/user/orders", content="18", headers=TEXT)).status_code == 401
    client.cookies.set("gpoints_session", "forged")
    assert (await client.get("/api/user/balance")).status_code == 401


async def test_submit_order_statuses(client):
    await register(client)
    r = await client.post("/api/user/orders", content="12345678903", headers=TEXT)
    assert r.status_code == 202
    r = await client.post("/api/user/orders", content="12345678903", headers=TEXT)
    assert r.status_code == 200
    r = await client.post("/api/user/orders", content="12345678904", headers=TEXT)
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "INVALID_ORDER_NUMBER"
    r = await client.post("/api/user/orders", content="", headers=TEXT)
    assert r.status_code == 400
    r = await client.post("/api/user/orders", json={"order": "12345678903"})
    assert r.status_code == 400


async def test_order_owned_by_another_user(client):
    await register(client, "alice")
    assert (await client.post("/api/user/orders", content="79927398713", headers=TEXT)).status_code == 202
    async with second_client() as bob:
        await register(bob, "bob")
        r = await bob.post("/api/user/orders", content="79927398713", headers=TEXT)
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "ORDER_OWNED_BY_ANOTHER_USER"
        assert (await bob.get("/api/user/orders")).status_code == 204
    orders = (await client.get("/api/user/orders")).json()
    assert [o["number"] for o in orders] == ["79927398713"]


async def test_list_orders(client, service, gateway):
    await register(client)
    assert (await client.get("/api/user/orders")).status_code == 204
    await client.post("/api/user/orders", content="12345678903", headers=TEXT)
    await client.post("/api/user/orders", content="79927398713", headers=TEXT)
    gateway.set("12345678903", gateway.processed("12345678903", 500))
    await service.engine.run_cycle()

    r = await client.get("/api/user/orders")
    assert r.status_code == 200
    orders = r.json()
    assert [o["number"] for o in orders] == ["12345678903", "79927398713"]
    assert orders[0]["status"] == "PROCESSED"
    assert orders[0]["accrual"] == 500
    assert orders[1]["status"] == "NEW"
    assert "accrual" not in orders[1]
    assert orders[0]["uploaded_at"]


async def test_accrual_withdraw_flow(client, service, gateway):
    await register(client)
    await client.post("/api/user/orders", content="12345678903", headers=TEXT)
    gateway.set("12345678903", gateway.processed("12345678903", 500))
    await service.engine.run_cycle()

    assert (await client.get("/api/user/balance")).json() == {"current": 500, "withdrawn": 0}

    r = await client.post("/api/user/balance/withdraw", json={"order": "2377225624", "sum": 200})
    assert r.status_code == 200
    assert (await client.get("/api/user/balance")).json() == {"current": 300, "withdrawn": 200}

    r = await client.post("/api/user/balance/withdraw", json={"order": "2377225624", "sum": 400})
    assert r.status_code == 402
    assert r.json()["error"]["code"] == "INSUFFICIENT_POINTS"
    assert (await client.get("/api/user/balance")).json() == {"current": 300, "withdrawn": 200}

    r = await client.get("/api/user/balance/withdrawals")
    assert r.status_code == 200
    items = r.json()
    assert len(items) == 1
    assert items[0]["order"] == "2377225624"
    assert items[0]["sum"] == 200


async def test_withdraw_validation(client):
    await register(client)
    assert (await client.get("/api/user/balance/withdrawals")).status_code == 204
    r = await client.post("/api/user/balance/withdraw", json={"order": "2377225625", "sum": 1})
    assert r.status_code == 422
    r = await client.post("/api/user/balance/withdraw", json={"order": "2377225624", "sum": -1})
    assert r.status_code == 400
    r = await client.post("/api/user/balance/withdraw", json={"order": "2377225624"})
    assert r.status_code == 400


async def test_request_id_is_echoed(client):
    r = await client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "abc-123"
