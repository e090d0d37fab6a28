"""ARQ job definitions."""

import uuid
from typing import Any

from arq.connections import RedisSettings

from app.core.config import get_settings
from app.core.exceptions import AccrualRateLimitedError
from app.core.logging import configure_logging, get_logger
from app.services.rate_limit import accrual_pause_remaining, pause_accrual_polling

log = get_logger(__name__)


async def _run_with_dlq(
    job_name: str,
    job_id: str | None,
    args: list[Any],
    kwargs: dict[str, Any],
    coro,
) -> Any:
    """Run coroutine; on exception persist to FailedJob then re-raise."""
    try:
        return await coro
    except Exception as e:
        from app.models.failed_job import FailedJob
        fid = job_id or str(uuid.uuid4())
        await FailedJob(
            job_name=job_name,
            job_id=fid,
            args=args,
            kwargs=kwargs,
            error_type=type(e).__name__,
            reason=str(e)[:2000],
        ).insert()
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        raise


async def run_poll_accruals(ctx: dict[str, Any]) -> dict[str, int]:
    """One resolution cycle unless a rate-limit pause is active."""
    redis = ctx["redis"]
    remaining = await accrual_pause_remaining(redis)
    if remaining:
        log.info("accrual_poll_skipped", paused_for=remaining)
        return {"skipped": 1}
    engine = ctx["engine"]
    try:
        report = await engine.run_cycle()
    except AccrualRateLimitedError as e:
        await pause_accrual_polling(redis, e.retry_after)
        log.warning("accrual_poller_paused", retry_after=e.retry_after)
        return {"rate_limited": 1}
    return report.model_dump()


# Cron: poll the accrual system for pending orders
async def poll_accruals(ctx: dict[str, Any]) -> dict[str, int]:
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None
    return await _run_with_dlq("poll_accruals", job_id, [], {}, run_poll_accruals(ctx))


async def startup(ctx: dict) -> None:
    from app.db.init import init_db
    from app.ledger.mongo import MongoLedgerStore
    from app.services.accrual import build_accrual_gateway
    from app.services.orders import OrderProcessingEngine

    settings = get_settings()
    configure_logging(debug=settings.debug)
    await init_db()
    gateway = build_accrual_gateway()
    ctx["gateway"] = gateway
    ctx["engine"] = OrderProcessingEngine(
        MongoLedgerStore(use_transactions=settings.mongodb_transactions),
        gateway,
        batch_size=settings.accrual_batch_size,
    )
    log.info("worker_startup")


async def shutdown(ctx: dict) -> None:
    gateway = ctx.get("gateway")
    if gateway:
        await gateway.aclose()


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path.lstrip("/") else 0,
    )


def poll_seconds() -> set[int]:
    """Cron seconds matching the configured poll interval (whole seconds, at least 1)."""
    step = max(1, int(get_settings().accrual_poll_interval_seconds))
    return set(range(0, 60, step))
