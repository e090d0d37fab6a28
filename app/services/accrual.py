"""Accrual system client: GET /api/orders/{number} with a bounded timeout."""

import math
from decimal import Decimal, InvalidOperation
from enum import Enum

import httpx
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.exceptions import AccrualRateLimitedError, AccrualUnavailableError, InternalError
from app.core.logging import get_logger

log = get_logger(__name__)

# Upper bound on a Retry-After pause
MAX_RETRY_AFTER_SECONDS = 3600.0


class AccrualStatus(str, Enum):
    REGISTERED = "REGISTERED"
    PROCESSING = "PROCESSING"
    INVALID = "INVALID"
    PROCESSED = "PROCESSED"

    @classmethod
    def parse(cls, raw) -> "AccrualStatus | None":
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


class AccrualReport(BaseModel):
    order: str
    status: AccrualStatus
    accrual: Decimal | None = None


def _retry_after(value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    if not math.isfinite(seconds) or seconds < 0:
        return default
    return min(seconds, MAX_RETRY_AFTER_SECONDS)


class AccrualGateway:
    def __init__(
        self,
        client: httpx.AsyncClient,
        default_retry_after: float = 60.0,
    ) -> None:
        self.client = client
        self.default_retry_after = default_retry_after

    async def query(self, number: str) -> AccrualReport:
        """Ask the accrual system about one order.

        Raises AccrualRateLimitedError on 429, AccrualUnavailableError on
        timeouts, transport failures, 5xx and unrecognized statuses, and
        InternalError when a 200 body breaks the contract.
        """
        try:
            resp = await self.client.get(f"/api/orders/{number}")
        except httpx.TimeoutException as e:
            raise AccrualUnavailableError("Accrual system timed out", details={"order": number}) from e
        except httpx.HTTPError as e:
            raise AccrualUnavailableError(f"Accrual system unreachable: {e}", details={"order": number}) from e

        if resp.status_code == httpx.codes.TOO_MANY_REQUESTS:
            raise AccrualRateLimitedError(_retry_after(resp.headers.get("Retry-After"), self.default_retry_after))
        if resp.status_code == httpx.codes.NO_CONTENT:
            # not registered in the accrual system yet
            return AccrualReport(order=number, status=AccrualStatus.REGISTERED)
        if resp.status_code != httpx.codes.OK:
            raise AccrualUnavailableError(
                "Accrual system error",
                details={"order": number, "status_code": resp.status_code},
            )
        return self._parse(number, resp)

    def _parse(self, number: str, resp: httpx.Response) -> AccrualReport:
        try:
            data = resp.json()
        except ValueError as e:
            raise InternalError("Accrual response is not JSON", details={"order": number}) from e
        if not isinstance(data, dict):
            raise InternalError("Accrual response is not an object", details={"order": number})

        status = AccrualStatus.parse(data.get("status"))
        if status is None:
            log.warning("accrual_unknown_status", order=number, status=data.get("status"))
            raise AccrualUnavailableError("Unrecognized accrual status", details={"order": number})

        accrual = None
        raw = data.get("accrual")
        if raw is not None:
            try:
                accrual = Decimal(str(raw))
            except InvalidOperation as e:
                raise InternalError("Accrual amount is not a number", details={"order": number}) from e
            if not accrual.is_finite() or accrual < 0:
                raise InternalError("Accrual amount out of range", details={"order": number, "accrual": str(raw)})
        return AccrualReport(order=str(data.get("order") or number), status=status, accrual=accrual)

    async def aclose(self) -> None:
        await self.client.aclose()


def build_accrual_gateway() -> AccrualGateway:
    settings = get_settings()
    client = httpx.AsyncClient(
        base_url=settings.accrual_system_address.rstrip("/"),
        timeout=settings.accrual_timeout_seconds,
    )
    return AccrualGateway(client, default_retry_after=settings.accrual_default_retry_after_seconds)
