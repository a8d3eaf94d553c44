import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from drift.config import settings
from drift.api.v1.router import api_router
from drift.db.session import init_db, close_db, async_session_maker
from drift.db.redis import init_redis, close_redis, get_redis
from drift.core.exceptions import DriftError, drift_error_handler
from drift.core.firebase import init_firebase, firebase_service
from drift.core.middleware import (
    SecurityHeadersMiddleware,
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
)
import drift.models  # noqa: F401  tables must be registered before init_db


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    await init_redis()
    init_firebase()
    logger.info("%s up (%s)", settings.APP_NAME, settings.ENVIRONMENT)

    yield

    await close_db()
    await close_redis()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Discovery, matching and messaging for the van-life community",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_exception_handler(DriftError, drift_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
    expose_headers=["X-Request-ID"],
    max_age=600,
)
# Starlette runs the last-added middleware first
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Liveness probe."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
    }


async def _database_status() -> dict:
    started = time.perf_counter()
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return {"status": "unhealthy", "error": str(e)[:100]}
    return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}


def _redis_status() -> dict:
    client = get_redis()
    if client is None:
        return {"status": "not_configured"}

    started = time.perf_counter()
    try:
        client.ping()
    except Exception as e:
        logger.warning("Redis health check failed: %s", e)
        return {"status": "unhealthy", "error": str(e)[:100]}
    return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}


@app.get("/health")
async def health_check():
    """
    Readiness probe.

    Only the database can mark the service degraded; rate limiting and
    push delivery are optional and simply report their state.
    """
    services = {
        "database": await _database_status(),
        "redis": _redis_status(),
        "firebase": {"status": "initialized" if firebase_service.is_configured else "not_configured"},
    }
    healthy = services["database"]["status"] == "healthy"
    return {"status": "healthy" if healthy else "degraded", "services": services}
