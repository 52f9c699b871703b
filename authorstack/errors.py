"""
Error Taxonomy

Every failure that crosses the service boundary is one of these types.
Services wrap low-level SQLAlchemy / Redis / HTTP errors before raising.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base application error carrying an HTTP status and a stable code"""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class InputValidationError(AppError):
    """Caller input fails schema constraints"""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field_errors: Optional[Dict[str, str]] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, code=code, details=field_errors, status_code=status_code)
        self.field_errors = field_errors or {}

    @classmethod
    def from_pydantic(cls, exc, message: str = "Validation failed") -> "InputValidationError":
        """Build from a pydantic ValidationError, one message per field path"""
        field_errors = {}
        for error in exc.errors():
            path = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            field_errors[path or "__root__"] = error.get("msg", "invalid")
        return cls(message, field_errors=field_errors)


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class NotFoundError(AppError):
    """Referenced entity does not exist"""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, code: Optional[str] = None):
        super().__init__(f"{resource} not found", code=code)
        self.resource = resource


class ConflictError(AppError):
    """Unique-key violation on create"""

    status_code = 409
    code = "ALREADY_EXISTS"


class RateLimitedError(AppError):
    """Operation budget exceeded; retry after the window resets"""

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str = "Too many requests", retry_after: int = 60, code: Optional[str] = None):
        super().__init__(message, code=code, details={"retry_after": retry_after})
        self.retry_after = retry_after


class UpstreamUnavailableError(AppError):
    """A required external collaborator is unreachable or not configured"""

    status_code = 503
    code = "SERVICE_UNAVAILABLE"


class ModelOutputError(InputValidationError):
    """Language model returned output that does not match the expected schema"""

    status_code = 502
    code = "AI_PARSE_ERROR"


class StoreError(AppError):
    """A store operation failed"""

    status_code = 500
    code = "STORE_OPERATION_FAILED"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"


def format_error_response(error: BaseException, expose_details: bool = True) -> Dict[str, Any]:
    """
    Format an exception as an API error body.

    Internal failures keep their message only when ``expose_details`` is set;
    in production-like environments they collapse to a generic message.
    """
    if isinstance(error, AppError):
        internal = error.status_code >= 500 and not isinstance(
            error, (UpstreamUnavailableError, ModelOutputError)
        )
        body = {
            "error": error.message if (expose_details or not internal) else "Internal server error",
            "code": error.code,
        }
        if error.details is not None and (expose_details or not internal):
            body["details"] = error.details
        return body

    return {
        "error": str(error) if expose_details else "Internal server error",
        "code": "INTERNAL_ERROR",
    }
