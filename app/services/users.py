import asyncio
from functools import lru_cache

from app.core.exceptions import InvalidCredentialsError
from app.core.logging import get_logger
from app.core.security import hash_password, verify_password
from app.ledger.base import LedgerStore
from app.ledger.records import UserRecord

log = get_logger(__name__)


@lru_cache
def _dummy_password_hash() -> str:
    """Hash checked for unknown logins so they cost the same bcrypt work as real ones."""
    return hash_password("gpoints-unknown-login")


async def register(store: LedgerStore, login: str, password: str) -> UserRecord:
    """Create a user with a bcrypt password hash. Raises LoginAlreadyExistsError."""
    password_hash = await asyncio.to_thread(hash_password, password)
    user = await store.create_user(login, password_hash)
    log.info("user_created", user_id=user.id, login=user.login)
    return user


async def authenticate(store: LedgerStore, login: str, password: str) -> UserRecord:
    user = await store.get_user_by_login(login)
    if not user:
        await asyncio.to_thread(lambda: verify_password(password, _dummy_password_hash()))
        log.info("user_login_failed", login=login, reason="unknown_login")
        raise InvalidCredentialsError()
    ok = await asyncio.to_thread(verify_password, password, user.password_hash)
    if not ok:
        log.info("user_login_failed", login=login, reason="wrong_password")
        raise InvalidCredentialsError()
    log.info("user_login", user_id=user.id, login=user.login)
    return user


def session_payload_for_user(user: UserRecord) -> dict:
    return {"user_id": user.id, "session_version": user.session_version}
