"""
Dashboard API Endpoint
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from authorstack.sales.dashboard import DashboardService
from authorstack.serving.api.dependencies import get_current_user_id, get_dashboard_service

router = APIRouter()


@router.get("")
async def get_dashboard(
    days: int = Query(30, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    """
    Overview for the last ``days`` days: revenue and units with change versus
    the previous period, top books and recent sync activity.
    """
    return await service.get_overview(user_id, days=days)
