"""
FastAPI Production Application

Main entry point for the AuthorStack Sales API.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import structlog

from authorstack.config import Settings, get_settings
from authorstack.config.logging import configure_logging
from authorstack.container import ServiceContainer
from authorstack.serving.api.errors import register_exception_handlers
from authorstack.serving.api.middleware import (
    RequestLoggingMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
)
from authorstack.serving.api.routes import (
    health_router,
    sales_router,
    books_router,
    dashboard_router,
    ai_router,
    webhooks_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager. Startup fails if a required store is unreachable."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    logger.info("Starting AuthorStack Sales API", environment=settings.app_env)

    owns_container = app.state.container is None
    if owns_container:
        app.state.container = ServiceContainer.build(settings)
        await app.state.container.startup(create_tables=not settings.is_production)

    yield

    logger.info("Shutting down...")
    if owns_container:
        await app.state.container.shutdown()
        app.state.container = None


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Defaults to the container's settings, then get_settings()
        container: Pre-built services; when omitted the lifespan builds and owns one
    """
    settings = settings or (container.settings if container else get_settings())

    app = FastAPI(
        title="AuthorStack Sales API",
        description="Sales aggregation, caching and AI insights for indie authors",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Custom middleware
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app, expose_details=not settings.is_production)

    # API routes
    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(sales_router, prefix="/api/v1/sales", tags=["Sales"])
    app.include_router(books_router, prefix="/api/v1/books", tags=["Books"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])
    app.include_router(ai_router, prefix="/api/v1/ai", tags=["AI"])
    app.include_router(webhooks_router, prefix="/api/v1/webhooks", tags=["Webhooks"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
