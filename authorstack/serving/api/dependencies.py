"""
FastAPI dependencies: the service container and the calling user.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from authorstack.ai.service import AIService
from authorstack.books.service import BookService
from authorstack.container import ServiceContainer
from authorstack.errors import UnauthorizedError
from authorstack.ingestion.sync import SyncService
from authorstack.sales.dashboard import DashboardService
from authorstack.sales.store import SalesStore
from authorstack.sales.sync_log import SyncLog


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Identity set by the upstream auth layer"""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError("Authentication required")
    return x_user_id.strip()


def get_sales_store(container: ServiceContainer = Depends(get_container)) -> SalesStore:
    return container.sales


def get_sync_log(container: ServiceContainer = Depends(get_container)) -> SyncLog:
    return container.sync_log


def get_book_service(container: ServiceContainer = Depends(get_container)) -> BookService:
    return container.books


def get_dashboard_service(container: ServiceContainer = Depends(get_container)) -> DashboardService:
    return container.dashboard


def get_sync_service(container: ServiceContainer = Depends(get_container)) -> SyncService:
    return container.ingestion


def get_ai_service(container: ServiceContainer = Depends(get_container)) -> AIService:
    return container.ai
