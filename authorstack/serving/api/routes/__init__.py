"""
API Routes Module
"""
from .health import router as health_router
from .sales import router as sales_router
from .books import router as books_router
from .dashboard import router as dashboard_router
from .ai import router as ai_router
from .webhooks import router as webhooks_router

__all__ = [
    "health_router",
    "sales_router",
    "books_router",
    "dashboard_router",
    "ai_router",
    "webhooks_router",
]
