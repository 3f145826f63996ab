"""
ExploreValley API - Redis client (backup throttle + idempotency cache)
"""
import redis.asyncio as aioredis

from explorevalley.core.config import get_settings

settings = get_settings()
_redis_client: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
        )
    return _redis_client


def set_redis(client: aioredis.Redis | None) -> None:
    """Swap the shared client (tests, or an app wiring its own pool)."""
    global _redis_client
    _redis_client = client


async def close_redis():
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
