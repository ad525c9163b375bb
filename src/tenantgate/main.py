"""FastAPI application factory.

Learn: App factory pattern. create_app() returns a configured FastAPI
instance. The lifespan sets up logging and the optional Redis pool at
startup and disposes the database engine at shutdown.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from tenantgate import __version__
from tenantgate.api import api_router
from tenantgate.config import settings
from tenantgate.db.engine import engine
from tenantgate.logging import configure_logging
from tenantgate.middleware.rate_limit import RateLimitMiddleware
from tenantgate.middleware.request_id import RequestIdMiddleware
from tenantgate.middleware.security import SecurityHeadersMiddleware
from tenantgate.redis_pool import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup before `yield`, shutdown after.

    Learn: Redis failures at startup only log a warning; the limiter then
    lets every request through instead of keeping the app from booting.
    """
    configure_logging()
    logger.info(
        "tenantgate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    try:
        await init_redis()
        logger.info("tenantgate.redis_connected")
    except (RedisError, OSError) as e:
        # Redis is optional; without it requests are not rate limited.
        logger.warning("tenantgate.redis_unavailable", error=str(e))

    yield

    logger.info("tenantgate.shutdown")
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="tenantgate",
        description="Tenant identity, API key lifecycle and customer sync",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)
    return app


# Default app instance (uvicorn tenantgate.main:app)
app = create_app()
