"""Shared FastAPI dependencies."""

from fastapi import Request

from app.core.exceptions import UnauthorizedError
from app.core.logging import bind_user_id
from app.core.security import load_session_cookie
from app.ledger.records import UserRecord
from app.services.loyalty import LoyaltyService

SESSION_COOKIE_NAME = "gpoints_session"


def get_service(request: Request) -> LoyaltyService:
    return request.app.state.service


async def get_current_user(request: Request) -> UserRecord:
    """Dependency: load session from cookie and return the user."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    user = await get_service(request).get_user(user_id)
    if not user:
        raise UnauthorizedError("User not found")
    if payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    bind_user_id(user.id)
    return user
