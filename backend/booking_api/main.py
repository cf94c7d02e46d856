"""
Event Booking API - Main Application Entry Point

- Seat reservation through a single atomic conditional UPDATE
- Decrement and booking insert in one transaction
- Redis caching of event listings and per-IP rate limits (optional, fail-open)
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from booking_api.core.config import get_settings
from booking_api.core.exceptions import register_exception_handlers
from booking_api.core.logging import setup_logging, get_logger
from booking_api.core.metrics import metrics_endpoint
from booking_api.api.router import api_router
from booking_api.api.middleware import RequestLoggingMiddleware
from booking_api.api.rate_limit import init_rate_limiter, reset_rate_limiter
from booking_api.db.session import Database
from booking_api.services.cache_service import get_redis, close_redis, get_cache_stats


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application. A pre-built Database may be injected (tests);
    otherwise one is created from settings when the lifespan starts.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        logger = get_logger(__name__)

        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
        )

        owns_database = getattr(app.state, "database", None) is None
        if owns_database:
            app.state.database = Database.from_settings(settings)

        redis_client = await get_redis()
        if redis_client:
            logger.info("redis_ready")
            if await init_rate_limiter(redis_client):
                logger.info("rate_limiter_ready")
        elif settings.REDIS_ENABLED:
            logger.warning("redis_unavailable", message="Running without cache")

        yield

        reset_rate_limiter()
        await close_redis()
        if owns_database:
            await app.state.database.dispose()
            app.state.database = None
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Event booking API with oversell-proof seat reservations",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    if database is not None:
        app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "Idempotency-Key"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for Docker and load balancers."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "cache": await get_cache_stats(),
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
