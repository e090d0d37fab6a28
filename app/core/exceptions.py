from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class InvalidCredentialsError(UnauthorizedError):
    def __init__(self, message: str = "Invalid login or password"):
        super().__init__(message)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(
        self,
        message: str = "Conflict",
        details: dict[str, Any] | None = None,
        code: str = "CONFLICT",
    ):
        super().__init__(message, code=code, status_code=status.HTTP_409_CONFLICT, details=details)


class LoginAlreadyExistsError(ConflictError):
    def __init__(self, login: str):
        super().__init__("Login already exists", details={"login": login}, code="LOGIN_ALREADY_EXISTS")


class OrderOwnedByAnotherUserError(ConflictError):
    def __init__(self, number: str):
        super().__init__(
            "The order is already submitted by another user",
            details={"order": number},
            code="ORDER_OWNED_BY_ANOTHER_USER",
        )


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InvalidOrderNumberError(AppError):
    def __init__(self, number: str):
        super().__init__(
            "Incorrect order number format",
            code="INVALID_ORDER_NUMBER",
            status_code=422,
            details={"order": number},
        )


class InsufficientPointsError(AppError):
    def __init__(self, message: str = "Insufficient points", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="INSUFFICIENT_POINTS",
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details=details,
        )


class TransientError(AppError):
    """Dependency temporarily unavailable; the caller should try later."""

    def __init__(self, message: str = "Service temporarily unavailable", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="TRANSIENT",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
        )


class AccrualUnavailableError(TransientError):
    def __init__(self, message: str = "Accrual system unavailable", details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class AccrualRateLimitedError(TransientError):
    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__("Accrual system rate limit exceeded", details={"retry_after": retry_after})


class InternalError(AppError):
    """Store or gateway broke its contract."""

    def __init__(self, message: str = "Internal error", details: dict[str, Any] | None = None):
        super().__init__(message, code="INTERNAL_ERROR", details=details)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from app.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
