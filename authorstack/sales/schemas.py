"""
Sales Schemas

Pydantic models for sale rows, aggregates, sync logs and date ranges.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from authorstack.database.models import Platform, SyncStatus


DATE_RANGES = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}


class DateRange(BaseModel):
    """Inclusive calendar date range"""
    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    @classmethod
    def last(cls, days: int, today: Optional[date] = None) -> "DateRange":
        """The ``days`` calendar days ending today"""
        today = today or date.today()
        return cls(start=today - timedelta(days=days - 1), end=today)

    @classmethod
    def named(cls, name: str, today: Optional[date] = None) -> "DateRange":
        if name not in DATE_RANGES:
            raise ValueError(f"range must be one of: {sorted(DATE_RANGES)}")
        return cls.last(DATE_RANGES[name], today)

    def previous(self) -> "DateRange":
        """Range of equal length immediately before this one"""
        length = (self.end - self.start).days + 1
        return DateRange(start=self.start - timedelta(days=length), end=self.start - timedelta(days=1))

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


class SaleRecordIn(BaseModel):
    """One sale row to upsert"""
    user_id: str = Field(min_length=1, max_length=64)
    book_id: str = Field(min_length=1, max_length=64)
    platform: Platform
    date: date
    revenue: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    units: int = Field(ge=0)


class SaleRowIn(BaseModel):
    """Sale row as submitted by a platform import; the owner is implicit"""
    book_id: str = Field(min_length=1, max_length=64)
    date: date
    revenue: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    units: int = Field(ge=0)


class SaleRecordOut(BaseModel):
    """Sale row as returned by the store"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    book_id: str
    platform: Platform
    date: date
    revenue: Decimal
    units: int
    synced_at: datetime

    @field_serializer("revenue")
    def serialize_revenue(self, value: Decimal) -> float:
        return float(value)


class PlatformTotals(BaseModel):
    revenue: float
    units: int


class DailyAggregateOut(BaseModel):
    """Derived totals for one user and day"""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    date: date
    total_revenue: Decimal
    total_units: int
    platform_breakdown: Dict[str, PlatformTotals]

    @field_serializer("total_revenue")
    def serialize_total_revenue(self, value: Decimal) -> float:
        return float(value)


class SyncLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    platform: Platform
    status: SyncStatus
    error_message: Optional[str]
    synced_at: datetime


class SalesResponse(BaseModel):
    sales: List[SaleRecordOut]
    aggregates: List[DailyAggregateOut]
    range: str
