"""
Health Check Endpoints

Provides health, readiness, metrics and info endpoints for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from authorstack.container import ServiceContainer
from authorstack.serving.api.dependencies import get_container

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


async def _redis_health(container: ServiceContainer) -> Dict[str, Any]:
    try:
        await container.cache.ping()
        return {"status": "healthy"}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


@router.get("/health", response_model=HealthResponse)
async def health_check(container: ServiceContainer = Depends(get_container)) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Sales store connectivity
    - Document store connectivity
    - Redis connectivity
    - AI provider configuration
    """
    checks = {
        "database": await container.database.check_health(),
        "documents": await container.documents.check_health(),
        "redis": await _redis_health(container),
        "ai": {"status": "configured" if container.ai_client.is_configured() else "not_configured"},
    }

    overall_status = "healthy"
    for name in ("database", "documents", "redis"):
        if checks[name]["status"] != "healthy":
            overall_status = "degraded"

    settings = container.settings
    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness check endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, str]:
    """
    Kubernetes readiness check endpoint.

    Returns 200 only when both stores and Redis answer.
    """
    if (await container.database.check_health())["status"] != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    if (await container.documents.check_health())["status"] != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "document_store_unavailable"}
    if (await _redis_health(container))["status"] != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "redis_unavailable"}
    return {"status": "ready"}


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus exposition"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/info")
async def api_info(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """API information endpoint."""
    settings = container.settings
    return {
        "name": "AuthorStack Sales API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
        "platforms": settings.features.enabled_platforms,
    }
