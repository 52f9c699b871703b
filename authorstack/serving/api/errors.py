"""
Exception handlers mapping the error taxonomy onto HTTP responses.

Body shape for every failure: {"error": ..., "code": ..., "details": ...}
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

from authorstack.errors import (
    AppError,
    InputValidationError,
    RateLimitedError,
    format_error_response,
)

logger = structlog.get_logger(__name__)


def error_response(error: BaseException, expose_details: bool = True) -> JSONResponse:
    status_code = error.status_code if isinstance(error, AppError) else 500
    headers = None
    if isinstance(error, RateLimitedError):
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(
        status_code=status_code,
        content=format_error_response(error, expose_details=expose_details),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI, expose_details: bool = True) -> None:
    """Install handlers; internal messages are hidden unless ``expose_details``"""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
        return error_response(exc, expose_details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(InputValidationError.from_pydantic(exc), expose_details)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
        return error_response(exc, expose_details)
