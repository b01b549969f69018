"""
Zenly Platform Service - application entry point

Builds the FastAPI app for journaling, moods, the peer support forum and the
resource library, and wraps it with the Socket.IO server as ``asgi_app``.
Run with ``uvicorn api.main:asgi_app``.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from common.config import get_settings
from common.logger import get_logger
from common.response import create_success_response, StandardResponse
from common.monitoring import (
    MetricsMiddleware,
    collect_system_metrics,
    get_metrics,
    get_metrics_summary,
    CONTENT_TYPE_LATEST
)
from common.database import (
    connect_to_databases,
    close_database_connections,
    check_mongodb_health,
    check_redis_health,
    create_indexes,
    get_database,
    get_redis_client
)
from common.rate_limit import configure_rate_limit_storage
from api.errors import register_exception_handlers
from api.middleware import (
    RequestIDMiddleware,
    LoggingMiddleware,
    SecurityHeadersMiddleware
)
from api.routers import (
    auth_router,
    users_router,
    journals_router,
    moods_router,
    forum_router,
    resources_router,
    admin_router,
    activity_router
)
from services.realtime import create_asgi_app

settings = get_settings()
logger = get_logger(__name__)

ROUTERS = (
    (auth_router, "/auth", "Authentication"),
    (users_router, "/users/me", "Users"),
    (journals_router, "/journals", "Journals"),
    (moods_router, "/moods", "Moods"),
    (forum_router, "/forum", "Forum"),
    (resources_router, "/resources", "Resources"),
    (admin_router, "/admin", "Admin"),
    (activity_router, "/activity", "Activity"),
)

EXPOSED_HEADERS = [
    "RateLimit-Policy", "RateLimit-Limit", "RateLimit-Remaining",
    "RateLimit-Reset", "Retry-After", "X-Request-ID"
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open Mongo/Redis, pick the rate limit store, start the metrics sampler"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    try:
        await connect_to_databases()
        await create_indexes(await get_database())
    except Exception as e:
        # Keep serving; /health reports the degraded database
        logger.error(f"Database startup failed: {e}")

    configure_rate_limit_storage(await get_redis_client())

    sampler = asyncio.create_task(collect_system_metrics()) if settings.METRICS_ENABLED else None

    yield

    logger.info("Shutting down")
    if sampler:
        sampler.cancel()
    await close_database_connections()


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

# Last added is outermost; the unhandled error middleware wraps them all
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    expose_headers=EXPOSED_HEADERS,
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(MetricsMiddleware)

register_exception_handlers(app)

for module, prefix, tag in ROUTERS:
    app.include_router(module.router, prefix=prefix, tags=[tag])


@app.get("/", response_model=StandardResponse)
async def root():
    """Service banner with the route groups it serves"""
    return create_success_response(data={
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "active",
        "environment": settings.ENVIRONMENT,
        "endpoints": {tag.lower(): prefix for _, prefix, tag in ROUTERS} | {"realtime": "/socket.io"},
    })


@app.get("/health", response_model=StandardResponse)
async def health_check():
    """
    Liveness plus dependency checks

    ``rate_limit_store`` is ``memory`` when counters are process local,
    otherwise the Redis ping result.
    """
    mongodb_ok = await check_mongodb_health()
    redis_ok = await check_redis_health()
    healthy = mongodb_ok and redis_ok is not False

    return create_success_response(data={
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "checks": {
            "api": "ok",
            "database": "ok" if mongodb_ok else "error",
            "rate_limit_store": "memory" if redis_ok is None else ("ok" if redis_ok else "error"),
        }
    })


@app.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint"""
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)


if settings.DEBUG:
    @app.get("/debug/metrics-summary", response_model=StandardResponse)
    async def debug_metrics_summary():
        return create_success_response(data=get_metrics_summary())


# REST app plus the Socket.IO server on /socket.io
asgi_app = create_asgi_app(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:asgi_app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        workers=1 if settings.DEBUG else settings.API_WORKERS
    )
