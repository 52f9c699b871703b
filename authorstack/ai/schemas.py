"""
AI Output Schemas

Model responses are validated against these before they leave the service.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional, Union
import uuid

from pydantic import BaseModel, Field, TypeAdapter


def _insight_id() -> str:
    return f"insight-{uuid.uuid4().hex[:12]}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Insight(BaseModel):
    id: str = Field(default_factory=_insight_id)
    type: Literal["trend", "opportunity", "warning", "recommendation", "general"]
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    confidence: float = Field(ge=0, le=1)
    action: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)


class PriceAlternative(BaseModel):
    price: float = Field(ge=0)
    scenario: str


class PricingRecommendation(BaseModel):
    recommended_price: float = Field(ge=0, alias="recommendedPrice")
    confidence: float = Field(ge=0, le=1)
    reasoning: str
    alternatives: List[PriceAlternative] = Field(default_factory=list)
    factors: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class DailyPrediction(BaseModel):
    date: str
    revenue: float
    confidence: float = Field(ge=0, le=1)


class RevenueForecast(BaseModel):
    predicted_revenue: float = Field(alias="predictedRevenue")
    confidence: float = Field(ge=0, le=1)
    factors: Union[List[str], str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    daily_predictions: List[DailyPrediction] = Field(default_factory=list, alias="dailyPredictions")

    model_config = {"populate_by_name": True}


InsightList = TypeAdapter(List[Insight])


class InsightsRequest(BaseModel):
    book_id: Optional[str] = None


class InsightsResponse(BaseModel):
    insights: List[Insight]
    generated_at: Optional[datetime] = None


class PricingRequest(BaseModel):
    book_id: str
    competitor_prices: List[float] = Field(default_factory=list, max_length=10)


class ForecastRequest(BaseModel):
    days: int = Field(default=30, ge=1, le=90)
