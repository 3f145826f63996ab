"""
ExploreValley API - FastAPI application entrypoint
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from explorevalley.api import analytics, bikes, bookings, bus, cart, catalog, compat, delivery, food, health, refunds
from explorevalley.core.config import get_settings
from explorevalley.core.errors import ExploreValleyError
from explorevalley.core.redis_client import close_redis
from explorevalley.db.supabase import close_store_client
from explorevalley.middleware.idempotency import IdempotencyMiddleware

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()
    await close_store_client()


app = FastAPI(
    title="ExploreValley API",
    description="Travel marketplace: bookings, food orders, bus seats and bike rentals over one document store.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(IdempotencyMiddleware)

if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.exception_handler(ExploreValleyError)
async def explorevalley_error_handler(request: Request, exc: ExploreValleyError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.detail)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s crashed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "INTERNAL_ERROR", "detail": str(exc)})


app.include_router(catalog.router)
app.include_router(bookings.router)
app.include_router(food.router)
app.include_router(cart.router)
app.include_router(bus.router)
app.include_router(bikes.router)
app.include_router(delivery.router)
app.include_router(compat.router)
app.include_router(refunds.router)
app.include_router(analytics.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
