"""
API Module
"""
from .middleware import RequestLoggingMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware
from .errors import register_exception_handlers

__all__ = [
    "RequestLoggingMiddleware",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
    "register_exception_handlers",
]
