"""Registration and password checks (bcrypt rounds lowered in conftest)."""

import pytest

from app.core.exceptions import InvalidCredentialsError, LoginAlreadyExistsError
from app.core.security import create_session_cookie, hash_password, load_session_cookie, verify_password
from app.services import users as user_service

pytestmark = pytest.mark.asyncio


async def test_register_and_authenticate(store):
    user = await user_service.register(store, "bob", "hunter2")
    assert user.password_hash != "hunter2"
    same = await user_service.authenticate(store, "bob", "hunter2")
    assert same.id == user.id


async def test_login_is_unique_and_case_sensitive(store):
    await user_service.register(store, "bob", "pw")
    with pytest.raises(LoginAlreadyExistsError):
        await user_service.register(store, "bob", "pw2")
    other = await user_service.register(store, "Bob", "pw")
    assert other.login == "Bob"


async def test_wrong_password_and_unknown_login(store):
    await user_service.register(store, "bob", "pw")
    with pytest.raises(InvalidCredentialsError):
        await user_service.authenticate(store, "bob", "PW")
    with pytest.raises(InvalidCredentialsError):
        await user_service.authenticate(store, "carol", "pw")


async def test_unknown_login_still_checks_a_password(store, monkeypatch):
    checked = []

    def spy_verify(password, password_hash):
        checked.append(password_hash)
        return verify_password(password, password_hash)

    monkeypatch.setattr(user_service, "verify_password", spy_verify)
    with pytest.raises(InvalidCredentialsError):
        await user_service.authenticate(store, "nobody", "pw")
    assert len(checked) == 1
    assert checked[0].startswith("$2")


async def test_password_hash_helpers():
    h = hash_password("x" * 200)
    assert verify_password("x" * 200, h)
    assert not verify_password("x" * 199, h)
    assert not verify_password("x", "not-a-bcrypt-hash")


async def test_session_cookie_round_trip(store):
    user = await user_service.register(store, "bob", "pw")
    payload = user_service.session_payload_for_user(user)
    assert load_session_cookie(create_session_cookie(payload)) == payload
    assert load_session_cookie("garbage") is None
