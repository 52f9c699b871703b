"""
API Middleware

- RequestLoggingMiddleware: request id, structured access log, latency histogram
- RateLimitMiddleware: per-caller API budget in Redis, shared across workers
- SecurityHeadersMiddleware: hardening headers; user data is never cached by proxies
"""

import time
import uuid
from typing import Callable, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from authorstack.errors import AppError
from authorstack.metrics import REQUEST_LATENCY
from authorstack.serving.api.errors import error_response

logger = structlog.get_logger(__name__)

OPERATIONAL_PREFIXES = ("/api/v1/health", "/api/v1/metrics")


def route_template(request: Request) -> str:
    """
    Matched route path (``/api/v1/books/{book_id}``), keeping metric labels bounded.

    Rebuilt from the request path and its path parameters: the route object in
    the scope may carry a path relative to the router that declared it.
    """
    if request.scope.get("endpoint") is None:
        return "unmatched"
    names = {str(value): name for name, value in request.path_params.items()}
    segments = request.url.path.split("/")
    return "/".join(f"{{{names[s]}}}" if s in names else s for s in segments)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and log its outcome"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            user_id=request.headers.get("X-User-Id"),
        )
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Request failed", method=request.method, path=request.url.path)
            raise
        finally:
            elapsed = time.perf_counter() - started
            structlog.contextvars.unbind_contextvars("request_id", "user_id")

        route = route_template(request)
        REQUEST_LATENCY.labels(
            method=request.method, route=route, status=str(response.status_code)
        ).observe(elapsed)

        if not request.url.path.startswith(OPERATIONAL_PREFIXES):
            logger.info(
                "Request completed",
                request_id=request_id,
                method=request.method,
                route=route,
                status_code=response.status_code,
                duration_ms=round(elapsed * 1000, 2),
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed * 1000:.2f}ms"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-caller API budget backed by the container's Redis limiter.

    Callers are identified by X-User-Id, falling back to the client address.
    Operational endpoints are never limited.
    """

    def __init__(self, app, exempt_prefixes: Tuple[str, ...] = OPERATIONAL_PREFIXES):
        super().__init__(app)
        self.exempt_prefixes = exempt_prefixes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        container = getattr(request.app.state, "container", None)
        if (
            container is None
            or not container.settings.rate_limit.enabled
            or request.url.path.startswith(self.exempt_prefixes)
        ):
            return await call_next(request)

        client_id = request.headers.get("X-User-Id") or (
            request.client.host if request.client else "unknown"
        )
        limiter = container.api_limiter

        try:
            result = await limiter.check(client_id)
        except AppError as e:
            rejected = error_response(e, expose_details=not container.settings.is_production)
            rejected.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
            rejected.headers["X-RateLimit-Remaining"] = "0"
            return rejected

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_after)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers on every response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["Referrer-Policy"] = "no-referrer"
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        # Sales, books and insights are per-author
        if request.headers.get("X-User-Id"):
            headers["Cache-Control"] = "private, no-store"

        return response
