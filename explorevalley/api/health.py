"""
ExploreValley API - Health endpoint
"""
import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from explorevalley.core.config import get_settings
from explorevalley.core.errors import ExploreValleyError
from explorevalley.core.redis_client import get_redis
from explorevalley.db.supabase import get_store_client
from explorevalley.db.tables import TABLES

settings = get_settings()
router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    deps: dict[str, str] = {}
    healthy = True

    # Check Redis
    try:
        redis = get_redis()
        await asyncio.wait_for(redis.ping(), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["redis"] = "ok"
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        deps["redis"] = f"error: {str(e)[:100]}"
        healthy = False

    # Check the remote store (settings is a required table)
    try:
        client = get_store_client()
        await asyncio.wait_for(client.ping(TABLES["settings"].table), timeout=settings.HEALTH_CHECK_TIMEOUT)
        deps["store"] = "ok"
    except ExploreValleyError as e:
        deps["store"] = f"error: {e.code}: {e.detail[:100]}"
        healthy = False
    except asyncio.TimeoutError:
        deps["store"] = "error: timed out"
        healthy = False

    return JSONResponse(
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "dependencies": deps,
        },
        status_code=200 if healthy else 503,
    )
