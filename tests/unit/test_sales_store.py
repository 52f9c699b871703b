"""
Unit Tests - Sales Aggregate Store
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from authorstack.database.models import DailyAggregate, Platform, SaleRecord
from authorstack.errors import StoreError
from authorstack.sales.schemas import DateRange, SaleRecordIn

from tests.conftest import make_sale

JAN_1 = date(2024, 1, 1)
JANUARY = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31))


async def count_rows(database, model) -> int:
    async with database.session() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestInsertSales:
    """Tests for the idempotent upsert"""

    async def test_empty_batch_is_noop(self, sales_store, database):
        """Test no rows are written for an empty batch"""
        assert await sales_store.insert_sales([]) == 0
        assert await count_rows(database, SaleRecord) == 0

    async def test_reinsert_same_key_overwrites(self, sales_store, database):
        """Test a second insert of the same natural key replaces the values"""
        await sales_store.insert_sales([make_sale(revenue="9.99", units=1)])
        await sales_store.insert_sales([make_sale(revenue="19.98", units=2)])

        assert await count_rows(database, SaleRecord) == 1
        sales = await sales_store.get_sales("u1", JANUARY)
        assert sales[0].revenue == Decimal("19.98")
        assert sales[0].units == 2

    async def test_insert_is_idempotent(self, sales_store, database):
        """Test the same batch twice leaves the same rows"""
        batch = [
            make_sale(book_id="b1"),
            make_sale(book_id="b2", platform=Platform.GUMROAD, revenue="4.50"),
        ]
        await sales_store.insert_sales(batch)
        await sales_store.insert_sales(batch)

        assert await count_rows(database, SaleRecord) == 2

    async def test_distinct_keys_are_distinct_rows(self, sales_store, database):
        """Test each key component distinguishes a row"""
        await sales_store.insert_sales([
            make_sale(),
            make_sale(user_id="u2"),
            make_sale(book_id="b2"),
            make_sale(platform=Platform.GUMROAD),
            make_sale(day=date(2024, 1, 2)),
        ])

        assert await count_rows(database, SaleRecord) == 5

    async def test_failed_batch_writes_nothing(self, sales_store, database):
        """Test a batch whose last row is rejected by the store leaves no rows behind"""
        broken = SaleRecordIn.model_construct(
            user_id=None,
            book_id="b3",
            platform=Platform.KDP,
            date=JAN_1,
            revenue=Decimal("1.00"),
            units=1,
        )

        with pytest.raises(StoreError) as exc_info:
            await sales_store.insert_sales([make_sale(book_id="b1"), make_sale(book_id="b2"), broken])

        assert exc_info.value.code == "SALES_INSERT_FAILED"
        assert await count_rows(database, SaleRecord) == 0

    async def test_failed_batch_keeps_existing_values(self, sales_store, database):
        """Test an overwrite inside a failed batch is rolled back"""
        await sales_store.insert_sales([make_sale(revenue="9.99")])
        broken = SaleRecordIn.model_construct(
            user_id=None, book_id="b2", platform=Platform.KDP, date=JAN_1, revenue=Decimal("1.00"), units=1
        )

        with pytest.raises(StoreError):
            await sales_store.insert_sales([make_sale(revenue="50.00"), broken])

        sales = await sales_store.get_sales("u1", JANUARY)
        assert [s.revenue for s in sales] == [Decimal("9.99")]


class TestGetSales:
    """Tests for raw row queries"""

    async def test_no_rows_returns_empty_list(self, sales_store):
        """Test an empty range is not an error"""
        assert await sales_store.get_sales("u1", JANUARY) == []

    async def test_inclusive_range_and_ordering(self, sales_store):
        """Test range bounds are inclusive and newest rows come first"""
        await sales_store.insert_sales([
            make_sale(day=date(2023, 12, 31)),
            make_sale(day=date(2024, 1, 1)),
            make_sale(day=date(2024, 1, 15)),
            make_sale(day=date(2024, 1, 31)),
            make_sale(day=date(2024, 2, 1)),
        ])

        sales = await sales_store.get_sales("u1", JANUARY)

        assert [s.date for s in sales] == [date(2024, 1, 31), date(2024, 1, 15), date(2024, 1, 1)]

    async def test_filters(self, sales_store):
        """Test platform and book filters narrow the result"""
        await sales_store.insert_sales([
            make_sale(book_id="b1", platform=Platform.KDP),
            make_sale(book_id="b2", platform=Platform.KDP),
            make_sale(book_id="b1", platform=Platform.GUMROAD),
        ])

        by_platform = await sales_store.get_sales("u1", JANUARY, platform=Platform.GUMROAD)
        by_book = await sales_store.get_sales("u1", JANUARY, book_id="b2")

        assert len(by_platform) == 1 and by_platform[0].platform == Platform.GUMROAD
        assert len(by_book) == 1 and by_book[0].book_id == "b2"

    async def test_other_users_are_invisible(self, sales_store):
        """Test rows are scoped to their owner"""
        await sales_store.insert_sales([make_sale(user_id="u2")])

        assert await sales_store.get_sales("u1", JANUARY) == []


class TestRecalculateAggregate:
    """Tests for the aggregation routine"""

    async def test_single_sale_scenario(self, sales_store):
        """Test one KDP sale produces the matching aggregate"""
        await sales_store.insert_sales([make_sale(revenue="9.99", units=1)])

        aggregate = await sales_store.recalculate_aggregate("u1", JAN_1)

        assert aggregate.total_revenue == Decimal("9.99")
        assert aggregate.total_units == 1
        assert aggregate.platform_breakdown["kdp"].revenue == 9.99
        assert aggregate.platform_breakdown["kdp"].units == 1

    async def test_sums_and_breakdown(self, sales_store):
        """Test totals equal the sum of rows and the breakdown is per platform"""
        await sales_store.insert_sales([
            make_sale(book_id="b1", platform=Platform.KDP, revenue="9.99", units=1),
            make_sale(book_id="b2", platform=Platform.KDP, revenue="5.01", units=3),
            make_sale(book_id="b1", platform=Platform.GUMROAD, revenue="12.00", units=2),
            make_sale(book_id="b1", platform=Platform.KDP, day=date(2024, 1, 2), revenue="100.00"),
        ])

        aggregate = await sales_store.recalculate_aggregate("u1", JAN_1)

        assert aggregate.total_revenue == Decimal("27.00")
        assert aggregate.total_units == 6
        assert set(aggregate.platform_breakdown) == {"kdp", "gumroad"}
        assert aggregate.platform_breakdown["kdp"].revenue == 15.0
        assert aggregate.platform_breakdown["kdp"].units == 4
        assert aggregate.platform_breakdown["gumroad"].revenue == 12.0
        assert aggregate.platform_breakdown["gumroad"].units == 2

    async def test_recompute_is_idempotent(self, sales_store, database):
        """Test recomputing without new rows yields the same single aggregate"""
        await sales_store.insert_sales([make_sale(revenue="9.99", units=1)])

        first = await sales_store.recalculate_aggregate("u1", JAN_1)
        second = await sales_store.recalculate_aggregate("u1", JAN_1)

        assert first == second
        assert await count_rows(database, DailyAggregate) == 1

    async def test_recompute_reflects_overwrite(self, sales_store):
        """Test the aggregate follows a re-synced row"""
        await sales_store.insert_sales([make_sale(revenue="9.99", units=1)])
        await sales_store.recalculate_aggregate("u1", JAN_1)
        await sales_store.insert_sales([make_sale(revenue="5.00", units=1)])

        aggregate = await sales_store.recalculate_aggregate("u1", JAN_1)

        assert aggregate.total_revenue == Decimal("5.00")

    async def test_day_without_sales(self, sales_store):
        """Test a day with no rows aggregates to zero"""
        aggregate = await sales_store.recalculate_aggregate("u1", JAN_1)

        assert aggregate.total_revenue == Decimal("0.00")
        assert aggregate.total_units == 0
        assert aggregate.platform_breakdown == {}


class TestDailyAggregates:
    """Tests for aggregate reads and cache invalidation"""

    async def test_reads_newest_first(self, sales_store):
        """Test one row per computed day, newest first"""
        await sales_store.insert_sales([make_sale(day=JAN_1), make_sale(day=date(2024, 1, 2))])
        await sales_store.recalculate_aggregate("u1", JAN_1)
        await sales_store.recalculate_aggregate("u1", date(2024, 1, 2))

        aggregates = await sales_store.get_daily_aggregates("u1", JANUARY)

        assert [a.date for a in aggregates] == [date(2024, 1, 2), JAN_1]

    async def test_result_is_cached(self, sales_store, cache):
        """Test a range query populates its cache key"""
        await sales_store.insert_sales([make_sale()])
        await sales_store.recalculate_aggregate("u1", JAN_1)

        await sales_store.get_daily_aggregates("u1", JANUARY)

        cached = await cache.get(cache.keys.sales_range("u1", JANUARY.start, JANUARY.end))
        assert cached[0]["total_revenue"] == 9.99

    async def test_recompute_invalidates_ranges_containing_day(self, sales_store, cache):
        """Test a stale cached range is not served after recomputation"""
        await sales_store.insert_sales([make_sale(revenue="9.99")])
        await sales_store.recalculate_aggregate("u1", JAN_1)
        assert (await sales_store.get_daily_aggregates("u1", JANUARY))[0].total_revenue == Decimal("9.99")

        await sales_store.insert_sales([make_sale(revenue="1.00")])
        await sales_store.recalculate_aggregate("u1", JAN_1)

        assert (await sales_store.get_daily_aggregates("u1", JANUARY))[0].total_revenue == Decimal("1.00")

    async def test_recompute_keeps_unrelated_ranges(self, sales_store, cache):
        """Test ranges not containing the day and other users stay cached"""
        february = cache.keys.sales_range("u1", date(2024, 2, 1), date(2024, 2, 29))
        other_user = cache.keys.sales_range("u2", JANUARY.start, JANUARY.end)
        await cache.set(february, [], ttl=60)
        await cache.set(other_user, [], ttl=60)
        await cache.set(cache.keys.dashboard("u1", 30), {"stale": True}, ttl=60)

        await sales_store.recalculate_aggregate("u1", JAN_1)

        assert await cache.get(february) == []
        assert await cache.get(other_user) == []
        assert await cache.get(cache.keys.dashboard("u1", 30)) is None


class TestTopBooks:

    async def test_ranked_by_revenue(self, sales_store):
        """Test books are ordered by revenue within the range"""
        await sales_store.insert_sales([
            make_sale(book_id="b1", revenue="5.00"),
            make_sale(book_id="b2", revenue="20.00"),
            make_sale(book_id="b2", platform=Platform.GUMROAD, revenue="1.00", units=2),
        ])

        top = await sales_store.get_top_books("u1", JANUARY, limit=5)

        assert top == [
            {"book_id": "b2", "revenue": 21.0, "units": 3},
            {"book_id": "b1", "revenue": 5.0, "units": 1},
        ]


class TestStoreFailures:

    async def test_failures_surface_as_store_error(self, sales_store, database):
        """Test driver errors are wrapped"""
        async with database.engine.begin() as conn:
            await conn.run_sync(SaleRecord.__table__.drop)

        with pytest.raises(StoreError) as exc_info:
            await sales_store.get_sales("u1", JANUARY)

        assert exc_info.value.code == "SALES_FETCH_FAILED"
        assert exc_info.value.status_code == 500
