"""
AI API Endpoints

All generating endpoints share one per-user rate limit.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from authorstack.ai.schemas import (
    ForecastRequest,
    InsightsRequest,
    InsightsResponse,
    PricingRecommendation,
    PricingRequest,
    RevenueForecast,
)
from authorstack.ai.service import AIService
from authorstack.serving.api.dependencies import get_ai_service, get_current_user_id

router = APIRouter()


@router.get("/insights", response_model=InsightsResponse)
async def get_insights(
    book_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: AIService = Depends(get_ai_service),
) -> InsightsResponse:
    """Insights generated earlier, served from cache"""
    return await service.get_cached_insights(user_id, book_id)


@router.post("/insights", response_model=InsightsResponse)
async def generate_insights(
    body: Optional[InsightsRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: AIService = Depends(get_ai_service),
) -> InsightsResponse:
    return await service.generate_insights(user_id, body.book_id if body else None)


@router.post("/pricing", response_model=PricingRecommendation)
async def generate_pricing(
    body: PricingRequest,
    user_id: str = Depends(get_current_user_id),
    service: AIService = Depends(get_ai_service),
) -> PricingRecommendation:
    return await service.generate_pricing(user_id, body.book_id, body.competitor_prices)


@router.post("/forecast", response_model=RevenueForecast)
async def generate_forecast(
    body: Optional[ForecastRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: AIService = Depends(get_ai_service),
) -> RevenueForecast:
    body = body or ForecastRequest()
    return await service.generate_forecast(user_id, body.days)
