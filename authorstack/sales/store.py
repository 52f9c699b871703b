"""
Sales Aggregate Store

Persists raw sale rows and derives one aggregate per user and day.

- Sale rows are upserted on (user, book, platform, date); a re-sync overwrites.
- Aggregates are recomputed wholesale from the raw rows, never patched.
- Aggregate range queries are read-through cached.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import structlog
from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError

from authorstack.database.connection import Database
from authorstack.database.models import DailyAggregate, Platform, SaleRecord
from authorstack.errors import StoreError
from authorstack.sales.schemas import (
    DailyAggregateOut,
    DateRange,
    SaleRecordIn,
    SaleRecordOut,
)
from authorstack.serving.cache import RedisCache

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


def to_cents(value) -> Decimal:
    """Normalize a SUM result (Decimal, float, int or None) to two decimals"""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


class SalesStore:
    """
    Access to sales_data and daily_aggregates.

    Example:
        store = SalesStore(database, cache, aggregates_ttl=60)
        await store.insert_sales(records)
        aggregate = await store.recalculate_aggregate("u1", date(2024, 1, 1))
    """

    def __init__(self, database: Database, cache: RedisCache, aggregates_ttl: int = 60):
        self.db = database
        self.cache = cache
        self.aggregates_ttl = aggregates_ttl

    # -------------------------------------------------------------------------
    # Raw rows
    # -------------------------------------------------------------------------

    async def get_sales(
        self,
        user_id: str,
        date_range: DateRange,
        platform: Optional[Platform] = None,
        book_id: Optional[str] = None,
    ) -> List[SaleRecordOut]:
        """
        Sale rows for ``user_id`` within the inclusive range, newest first.

        An empty list means no sales, not an error.
        """
        conditions = [
            SaleRecord.user_id == user_id,
            SaleRecord.date >= date_range.start,
            SaleRecord.date <= date_range.end,
        ]
        if platform:
            conditions.append(SaleRecord.platform == platform)
        if book_id:
            conditions.append(SaleRecord.book_id == book_id)

        query = (
            select(SaleRecord)
            .where(and_(*conditions))
            .order_by(SaleRecord.date.desc(), SaleRecord.id.desc())
        )

        try:
            async with self.db.session() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Get sales data failed", user_id=user_id, error=str(e))
            raise StoreError("Failed to get sales data", code="SALES_FETCH_FAILED") from e

        return [SaleRecordOut.model_validate(row) for row in rows]

    async def insert_sales(self, records: Sequence[SaleRecordIn]) -> int:
        """
        Upsert sale rows in a single transaction.

        On a natural-key conflict revenue and units are replaced and synced_at
        refreshed. Either every row is applied or none is.

        Returns:
            Number of rows written
        """
        if not records:
            return 0

        try:
            async with self.db.session() as session:
                for record in records:
                    stmt = self.db.insert(SaleRecord).values(
                        user_id=record.user_id,
                        book_id=record.book_id,
                        platform=record.platform,
                        date=record.date,
                        revenue=record.revenue,
                        units=record.units,
                        synced_at=func.now(),
                    )
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["user_id", "book_id", "platform", "date"],
                        set_={
                            "revenue": stmt.excluded.revenue,
                            "units": stmt.excluded.units,
                            "synced_at": func.now(),
                        },
                    )
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Insert sales data failed", rows=len(records), error=str(e))
            raise StoreError("Failed to insert sales data", code="SALES_INSERT_FAILED") from e

        logger.info("Sales data upserted", rows=len(records))
        return len(records)

    async def get_top_books(self, user_id: str, date_range: DateRange, limit: int = 5) -> List[Dict]:
        """Books ranked by revenue within the range"""
        revenue = func.sum(SaleRecord.revenue).label("revenue")
        query = (
            select(
                SaleRecord.book_id,
                revenue,
                func.sum(SaleRecord.units).label("units"),
            )
            .where(
                and_(
                    SaleRecord.user_id == user_id,
                    SaleRecord.date >= date_range.start,
                    SaleRecord.date <= date_range.end,
                )
            )
            .group_by(SaleRecord.book_id)
            .order_by(revenue.desc(), SaleRecord.book_id)
            .limit(limit)
        )

        try:
            async with self.db.session() as session:
                result = await session.execute(query)
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Get top books failed", user_id=user_id, error=str(e))
            raise StoreError("Failed to get top books", code="SALES_FETCH_FAILED") from e

        return [
            {"book_id": row.book_id, "revenue": float(to_cents(row.revenue)), "units": int(row.units or 0)}
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    async def get_daily_aggregates(self, user_id: str, date_range: DateRange) -> List[DailyAggregateOut]:
        """
        Computed aggregates within the range, newest first.

        Read-through: served from cache when present, otherwise loaded and cached.
        """
        cache_key = self.cache.keys.sales_range(user_id, date_range.start, date_range.end)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return [DailyAggregateOut.model_validate(item) for item in cached]

        query = (
            select(DailyAggregate)
            .where(
                and_(
                    DailyAggregate.user_id == user_id,
                    DailyAggregate.date >= date_range.start,
                    DailyAggregate.date <= date_range.end,
                )
            )
            .order_by(DailyAggregate.date.desc())
        )

        try:
            async with self.db.session() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Get daily aggregates failed", user_id=user_id, error=str(e))
            raise StoreError("Failed to get aggregates", code="AGGREGATES_FETCH_FAILED") from e

        aggregates = [DailyAggregateOut.model_validate(row) for row in rows]
        await self.cache.set(
            cache_key,
            [aggregate.model_dump(mode="json") for aggregate in aggregates],
            self.aggregates_ttl,
        )
        return aggregates

    async def recalculate_aggregate(self, user_id: str, day: date) -> DailyAggregateOut:
        """
        Recompute the aggregate for one user and day from raw rows.

        Totals, breakdown and upsert run in one transaction, so readers see
        either the previous aggregate or the new one in full. Cached dashboard
        entries and cached ranges containing ``day`` are removed after commit.
        """
        row_filter = and_(SaleRecord.user_id == user_id, SaleRecord.date == day)

        try:
            async with self.db.session() as session:
                totals = (
                    await session.execute(
                        select(
                            func.sum(SaleRecord.revenue).label("total_revenue"),
                            func.sum(SaleRecord.units).label("total_units"),
                        ).where(row_filter)
                    )
                ).one()

                by_platform = await session.execute(
                    select(
                        SaleRecord.platform,
                        func.sum(SaleRecord.revenue).label("revenue"),
                        func.sum(SaleRecord.units).label("units"),
                    )
                    .where(row_filter)
                    .group_by(SaleRecord.platform)
                )

                breakdown = {}
                for row in by_platform.all():
                    platform = getattr(row.platform, "value", row.platform)
                    breakdown[platform] = {
                        "revenue": float(to_cents(row.revenue)),
                        "units": int(row.units or 0),
                    }

                total_revenue = to_cents(totals.total_revenue)
                total_units = int(totals.total_units or 0)

                stmt = self.db.insert(DailyAggregate).values(
                    user_id=user_id,
                    date=day,
                    total_revenue=total_revenue,
                    total_units=total_units,
                    platform_breakdown=breakdown,
                    computed_at=func.now(),
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["user_id", "date"],
                    set_={
                        "total_revenue": stmt.excluded.total_revenue,
                        "total_units": stmt.excluded.total_units,
                        "platform_breakdown": stmt.excluded.platform_breakdown,
                        "computed_at": func.now(),
                    },
                )
                await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Recalculate aggregates failed", user_id=user_id, date=str(day), error=str(e))
            raise StoreError("Failed to recalculate aggregates", code="AGGREGATES_CALC_FAILED") from e

        await self.invalidate(user_id, day)

        logger.info(
            "Daily aggregate recalculated",
            user_id=user_id,
            date=str(day),
            total_revenue=float(total_revenue),
            total_units=total_units,
        )
        return DailyAggregateOut(
            user_id=user_id,
            date=day,
            total_revenue=total_revenue,
            total_units=total_units,
            platform_breakdown=breakdown,
        )

    async def invalidate(self, user_id: str, day: date) -> int:
        """Drop the user's dashboard entries and every cached range containing ``day``"""
        keys = await self.cache.scan(self.cache.keys.dashboard_pattern(user_id))
        for key in await self.cache.scan(self.cache.keys.sales_ranges_pattern(user_id)):
            bounds = self.cache.keys.parse_sales_range(key)
            if bounds is None or bounds[0] <= day <= bounds[1]:
                keys.append(key)
        return await self.cache.delete(*keys)
