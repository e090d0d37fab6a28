"""Accrual rate limit shared between worker runs via a Redis key with a TTL."""

import math

PAUSE_KEY = "accrual:paused"


async def pause_accrual_polling(redis, seconds: float) -> None:
    """Stop every worker from polling for `seconds`."""
    ttl = max(1, math.ceil(seconds))
    await redis.set(PAUSE_KEY, "1", ex=ttl)


async def accrual_pause_remaining(redis) -> int:
    """Seconds left on the current pause, 0 if polling may run."""
    ttl = await redis.ttl(PAUSE_KEY)
    return ttl if ttl and ttl > 0 else 0
