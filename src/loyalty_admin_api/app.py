from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from loyalty_admin_api.core.settings import settings
from loyalty_admin_api.db.session import engine
from .api.exception_handlers import register_exception_handlers
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Loyalty admin API starting",
        environment=settings.environment,
        audit_enabled=settings.audit_enabled,
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Loyalty admin API stopped")


def create_app() -> FastAPI:
    """Application factory for the loyalty admin FastAPI service."""
    configure_logging(
        service_name="loyalty-admin-api",
        environment=settings.environment,
        version=APP_VERSION,
        level=settings.log_level,
    )

    app = FastAPI(
        title="Loyalty Admin API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(app, settings, service_name="loyalty-admin-api", service_version=APP_VERSION)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
