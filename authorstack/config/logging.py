"""
Logging Configuration

structlog events are rendered through the stdlib ProcessorFormatter, so
uvicorn, SQLAlchemy and httpx records share one format with our own events.
Every event carries the service name and environment, and secret-bearing
fields (platform credentials, API keys, webhook signatures) are masked.
"""

import logging
import sys
from typing import Any, Dict, Iterable, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from authorstack.config.settings import Settings, get_settings

SERVICE_NAME = "authorstack-sales"

REDACTED = "***"
SENSITIVE_KEYS = frozenset({
    "api_key",
    "authorization",
    "credentials",
    "password",
    "secret",
    "stripe_signature",
    "token",
})

# Libraries that log every query or request at INFO
CHATTY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


def redact_sensitive(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values of secret-bearing keys, including one level of nested dicts"""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if str(k).lower() in SENSITIVE_KEYS else v
                for k, v in value.items()
            }
    return event_dict


def service_context(environment: str):
    """Processor stamping service and environment on each event"""
    def add_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict
    return add_context


def _route_through(handler: logging.Handler, names: Iterable[str], level: int) -> None:
    for name in names:
        lib_logger = logging.getLogger(name)
        lib_logger.handlers = [handler]
        lib_logger.setLevel(level)
        lib_logger.propagate = False


def configure_logging(settings: Optional[Settings] = None, log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        settings: Source of level, format and environment (defaults to get_settings())
        log_level: Override for settings.monitoring.log_level
    """
    settings = settings or get_settings()
    level_name = (log_level or settings.monitoring.log_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        service_context(settings.app_env),
        redact_sensitive,
        TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # uvicorn installs its own handlers; access lines duplicate RequestLoggingMiddleware
    _route_through(handler, ("uvicorn", "uvicorn.error"), level)
    _route_through(handler, ("uvicorn.access",), logging.WARNING)
    if level > logging.DEBUG:
        _route_through(handler, CHATTY_LOGGERS, logging.WARNING)

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level_name,
        format=settings.monitoring.log_format,
    )
