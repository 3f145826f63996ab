"""
ExploreValley API - Idempotency Key Middleware

Write endpoints honour an `Idempotency-Key` header using Redis:
  - Cache hit  -> replay the stored response (mutate_data is not called again)
  - Cache miss -> run the handler, store the response for 24h
Keys are scoped per path so one key cannot replay another endpoint's result.
"""
import json
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from explorevalley.core.config import get_settings
from explorevalley.core.redis_client import get_redis

settings = get_settings()
logger = logging.getLogger(__name__)

IDEMPOTENCY_PREFIX = "idempotent:"
IDEMPOTENCY_METHODS = {"POST", "PUT", "PATCH"}
IDEMPOTENCY_PATHS = {
    "/api/bookings",
    "/api/cab-bookings",
    "/api/food-orders",
    "/api/bus/book",
    "/api/bikes/book",
    "/api/refunds/request",
}


class IdempotencyMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method not in IDEMPOTENCY_METHODS:
            return await call_next(request)

        if request.url.path.rstrip("/") not in IDEMPOTENCY_PATHS:
            return await call_next(request)

        idem_key = request.headers.get("Idempotency-Key")
        if not idem_key:
            return await call_next(request)

        redis = get_redis()
        cache_key = f"{IDEMPOTENCY_PREFIX}{request.url.path.rstrip('/')}:{idem_key}"

        try:
            cached = await redis.get(cache_key)
        except RedisError as exc:
            logger.warning("Idempotency cache unavailable, handling request directly: %s", exc)
            return await call_next(request)

        if cached:
            data = json.loads(cached)
            return JSONResponse(
                content=data["body"],
                status_code=data["status_code"],
                headers={"X-Idempotency-Replay": "true"},
            )

        response = await call_next(request)

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        try:
            body = json.loads(body_bytes)
        except ValueError:
            body = body_bytes.decode("utf-8", errors="replace")

        if response.status_code < 500:
            try:
                await redis.setex(
                    cache_key,
                    settings.IDEMPOTENCY_KEY_TTL_SECONDS,
                    json.dumps({"body": body, "status_code": response.status_code}),
                )
            except RedisError as exc:
                logger.warning("Could not store idempotent response for %s: %s", cache_key, exc)

        return Response(
            content=body_bytes,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
