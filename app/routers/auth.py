from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from app.core.security import SESSION_MAX_AGE, create_session_cookie
from app.deps import SESSION_COOKIE_NAME, get_service
from app.ledger.records import UserRecord
from app.services.loyalty import LoyaltyService
from app.services.users import session_payload_for_user

router = APIRouter()


class Credentials(BaseModel):
    login: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=1, max_length=1024)


def _sign_in(response: Response, user: UserRecord) -> dict:
    session_value = create_session_cookie(session_payload_for_user(user))
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_value,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=False,  # set True in prod with HTTPS
        samesite="lax",
        path="/",
    )
    return {"user": {"id": user.id, "login": user.login}}


@router.post("/register")
async def register(body: Credentials, response: Response, service: LoyaltyService = Depends(get_service)):
    """Register and sign in. 409 if the login is taken."""
    user = await service.register(body.login, body.password)
    return _sign_in(response, user)


@router.post("/login")
async def login(body: Credentials, response: Response, service: LoyaltyService = Depends(get_service)):
    """Exchange login and password for a session cookie."""
    user = await service.authenticate(body.login, body.password)
    return _sign_in(response, user)
