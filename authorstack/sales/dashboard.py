"""
Dashboard Overview

Revenue and unit totals for the last N days compared with the period before,
top books and recent sync activity. The whole overview is cached per user and
window, and dropped whenever one of the user's aggregates is recomputed.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from authorstack.books.service import BookService
from authorstack.errors import NotFoundError
from authorstack.sales.schemas import DateRange
from authorstack.sales.store import SalesStore, to_cents
from authorstack.sales.sync_log import SyncLog
from authorstack.serving.cache import RedisCache

logger = structlog.get_logger(__name__)

TOP_BOOKS = 5
RECENT_SYNCS = 5


def percent_change(current: Decimal, previous: Decimal) -> Optional[float]:
    """Change in percent, or None when there is nothing to compare against"""
    if not previous:
        return None
    return round(float((current - previous) / previous * 100), 1)


class DashboardService:

    def __init__(
        self,
        sales_store: SalesStore,
        sync_log: SyncLog,
        books: BookService,
        cache: RedisCache,
        ttl: int = 60,
    ):
        self.sales_store = sales_store
        self.sync_log = sync_log
        self.books = books
        self.cache = cache
        self.ttl = ttl

    async def get_overview(self, user_id: str, days: int = 30, today: Optional[date] = None) -> dict:
        """Cached overview for the ``days`` days ending today"""

        async def build() -> dict:
            return await self._build_overview(user_id, days, today)

        return await self.cache.get_or_set(self.cache.keys.dashboard(user_id, days), build, self.ttl)

    async def _book_title(self, user_id: str, book_id: str) -> Optional[str]:
        try:
            return (await self.books.get_book(user_id, book_id)).title
        except NotFoundError:
            return None

    async def _build_overview(self, user_id: str, days: int, today: Optional[date]) -> dict:
        current = DateRange.last(days, today)
        previous = current.previous()

        current_aggregates = await self.sales_store.get_daily_aggregates(user_id, current)
        previous_aggregates = await self.sales_store.get_daily_aggregates(user_id, previous)

        revenue = to_cents(sum((a.total_revenue for a in current_aggregates), Decimal("0")))
        units = sum(a.total_units for a in current_aggregates)
        previous_revenue = to_cents(sum((a.total_revenue for a in previous_aggregates), Decimal("0")))
        previous_units = sum(a.total_units for a in previous_aggregates)

        top_books = await self.sales_store.get_top_books(user_id, current, limit=TOP_BOOKS)
        for entry in top_books:
            entry["title"] = await self._book_title(user_id, entry["book_id"])

        recent = await self.sync_log.get_sync_logs(user_id, limit=RECENT_SYNCS)

        logger.debug("Dashboard overview built", user_id=user_id, days=days)
        return {
            "range": {"start": current.start.isoformat(), "end": current.end.isoformat()},
            "revenue": {
                "total": float(revenue),
                "previous": float(previous_revenue),
                "change_percent": percent_change(revenue, previous_revenue),
            },
            "units": {
                "total": units,
                "previous": previous_units,
                "change_percent": percent_change(Decimal(units), Decimal(previous_units)),
            },
            "top_books": top_books,
            "recent_activity": [entry.model_dump(mode="json") for entry in recent],
        }
