"""
Database Models - Sales Store

Relational tables for the sales pipeline:

- SaleRecord: raw per-sale rows, one per (user, book, platform, date)
- DailyAggregate: derived totals per (user, date) with a platform breakdown
- SyncLogEntry: append-only audit trail of sync attempts
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    DateTime,
    Enum as SQLEnum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for relational store models"""
    pass


# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntKey = BigInteger().with_variant(Integer, "sqlite")
JSONType = JSON().with_variant(JSONB, "postgresql")


# =============================================================================
# ENUMERATIONS
# =============================================================================

class Platform(str, Enum):
    """Sales platforms"""
    KDP = "kdp"
    GUMROAD = "gumroad"
    APPLE_BOOKS = "apple_books"
    DRAFT2DIGITAL = "draft2digital"


class SyncStatus(str, Enum):
    """Outcome of a sync attempt"""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# =============================================================================
# FACT TABLES
# =============================================================================

class SaleRecord(Base):
    """
    Raw sales rows.

    Grain: one row per user, book, platform and calendar day. A re-sync of the
    same key overwrites revenue and units.
    """
    __tablename__ = "sales_data"

    id: Mapped[int] = mapped_column(BigIntKey, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    book_id: Mapped[str] = mapped_column(String(64), nullable=False)
    platform: Mapped[Platform] = mapped_column(
        SQLEnum(Platform, name="platform", values_callable=_enum_values), nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "book_id", "platform", "date", name="uq_sales_data_natural_key"),
        Index("ix_sales_data_user_date", "user_id", "date"),
    )


# =============================================================================
# ANALYTICS AGGREGATES
# =============================================================================

class DailyAggregate(Base):
    """
    Daily Sales Aggregate Table

    Recomputed wholesale from sales_data by the aggregation routine.
    platform_breakdown maps platform -> {"revenue": float, "units": int}.
    """
    __tablename__ = "daily_aggregates"

    id: Mapped[int] = mapped_column(BigIntKey, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)

    total_revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    total_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform_breakdown: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    computed_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_aggregates_user_date"),
        Index("ix_daily_aggregates_user_date", "user_id", "date"),
    )


# =============================================================================
# AUDIT
# =============================================================================

class SyncLogEntry(Base):
    """Append-only record of one sync attempt. Never updated or deleted."""
    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(BigIntKey, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    platform: Mapped[Platform] = mapped_column(
        SQLEnum(Platform, name="platform", values_callable=_enum_values), nullable=False
    )
    status: Mapped[SyncStatus] = mapped_column(
        SQLEnum(SyncStatus, name="sync_status", values_callable=_enum_values), nullable=False
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_sync_logs_user_synced", "user_id", "synced_at"),
    )
