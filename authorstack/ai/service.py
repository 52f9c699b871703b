"""
AI Service

Insights, pricing and forecasting on top of the OpenRouter client.

Every operation runs the same gate before any expensive work:
1. provider configured (503 AI_NOT_CONFIGURED otherwise)
2. feature flag enabled (503 FEATURE_DISABLED otherwise)
3. shared AI rate limit (429 AI_RATE_LIMITED otherwise)

Model output is validated before it is returned or cached.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

import structlog
from pydantic import ValidationError

from authorstack.ai.openrouter import OpenRouterClient, create_messages
from authorstack.ai.prompts import (
    SYSTEM_PROMPTS,
    forecast_prompt,
    insights_prompt,
    pricing_prompt,
)
from authorstack.ai.schemas import (
    InsightList,
    InsightsResponse,
    PricingRecommendation,
    RevenueForecast,
)
from authorstack.books.service import BookService
from authorstack.config.settings import FeatureSettings
from authorstack.errors import InputValidationError, ModelOutputError, UpstreamUnavailableError
from authorstack.sales.schemas import DateRange
from authorstack.sales.store import SalesStore
from authorstack.serving.cache import RedisCache
from authorstack.serving.rate_limit import RateLimiter

logger = structlog.get_logger(__name__)

HISTORY_DAYS = 90
MIN_FORECAST_ROWS = 30


class AIService:
    """
    Example:
        service = AIService(client, ai_limiter, sales_store, books, cache, settings.features)
        insights = await service.generate_insights("u1")
    """

    def __init__(
        self,
        client: OpenRouterClient,
        limiter: RateLimiter,
        sales_store: SalesStore,
        books: BookService,
        cache: RedisCache,
        features: FeatureSettings,
        insight_ttl: int = 3600,
    ):
        self.client = client
        self.limiter = limiter
        self.sales_store = sales_store
        self.books = books
        self.cache = cache
        self.features = features
        self.insight_ttl = insight_ttl

    def _require_configured(self) -> None:
        if not self.client.is_configured():
            raise UpstreamUnavailableError("AI service not configured", code="AI_NOT_CONFIGURED")

    async def _gate(self, user_id: str, feature: str, enabled: bool) -> None:
        self._require_configured()
        if not enabled:
            raise UpstreamUnavailableError(f"{feature} is disabled", code="FEATURE_DISABLED")
        await self.limiter.check(user_id, code="AI_RATE_LIMITED")

    async def _history(self, user_id: str, book_id: Optional[str] = None, today: Optional[date] = None):
        return await self.sales_store.get_sales(
            user_id, DateRange.last(HISTORY_DAYS, today), book_id=book_id
        )

    async def get_cached_insights(self, user_id: str, book_id: Optional[str] = None) -> InsightsResponse:
        """
        Previously generated insights; empty when none are cached.

        Does not draw on the AI budget.

        Raises:
            UpstreamUnavailableError: provider not configured, so callers can hide AI features
        """
        self._require_configured()
        cached = await self.cache.get(self.cache.keys.insights(user_id, book_id))
        if cached is None:
            return InsightsResponse(insights=[])
        return InsightsResponse.model_validate(cached)

    async def generate_insights(self, user_id: str, book_id: Optional[str] = None) -> InsightsResponse:
        """
        Analyse the last 90 days of sales for one book or the whole catalogue.

        Raises:
            UpstreamUnavailableError: provider not configured or feature disabled
            RateLimitedError: shared AI budget exhausted
            ModelOutputError: the model returned something other than a list of insights
        """
        await self._gate(user_id, "AI insights", self.features.ai_insights)

        if book_id:
            books = [await self.books.get_book(user_id, book_id)]
        else:
            books = await self.books.list_books(user_id)
        sales = await self._history(user_id, book_id)

        raw = await self.client.chat_json(
            create_messages(SYSTEM_PROMPTS["insights_analyst"], insights_prompt(sales, books))
        )
        if isinstance(raw, dict):
            raw = raw.get("insights", raw)

        try:
            insights = InsightList.validate_python(raw)
        except ValidationError as e:
            logger.warning("AI insights failed validation", user_id=user_id, errors=e.error_count())
            raise ModelOutputError.from_pydantic(e, "Invalid AI response format") from e

        response = InsightsResponse(insights=insights, generated_at=datetime.now(timezone.utc))
        await self.cache.set(
            self.cache.keys.insights(user_id, book_id),
            response.model_dump(mode="json"),
            self.insight_ttl,
        )
        logger.info("AI insights generated", user_id=user_id, book_id=book_id, count=len(insights))
        return response

    async def generate_pricing(
        self,
        user_id: str,
        book_id: str,
        competitor_prices: Optional[List[float]] = None,
    ) -> PricingRecommendation:
        await self._gate(user_id, "AI pricing", self.features.ai_pricing)

        book = await self.books.get_book(user_id, book_id)
        sales = await self._history(user_id, book_id)

        raw = await self.client.chat_json(
            create_messages(
                SYSTEM_PROMPTS["pricing_advisor"],
                pricing_prompt(book, competitor_prices or [], sales),
            )
        )
        try:
            recommendation = PricingRecommendation.model_validate(raw)
        except ValidationError as e:
            raise ModelOutputError.from_pydantic(e, "Invalid AI response format") from e

        logger.info("AI pricing generated", user_id=user_id, book_id=book_id)
        return recommendation

    async def generate_forecast(self, user_id: str, days: int = 30) -> RevenueForecast:
        """
        Forecast revenue for the next ``days`` days.

        Raises:
            InputValidationError: fewer than 30 sale rows of history (INSUFFICIENT_DATA)
        """
        await self._gate(user_id, "AI forecasting", self.features.ai_forecasting)

        sales = await self._history(user_id)
        if len(sales) < MIN_FORECAST_ROWS:
            raise InputValidationError(
                f"Need at least {MIN_FORECAST_ROWS} days of sales data for forecasting",
                code="INSUFFICIENT_DATA",
            )

        raw = await self.client.chat_json(
            create_messages(SYSTEM_PROMPTS["forecaster"], forecast_prompt(sales, days))
        )
        try:
            forecast = RevenueForecast.model_validate(raw)
        except ValidationError as e:
            raise ModelOutputError.from_pydantic(e, "Invalid AI response format") from e

        logger.info("AI forecast generated", user_id=user_id, days=days)
        return forecast
