"""
Ingestion request and result models.
"""

from datetime import date
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from authorstack.database.models import Platform, SyncStatus
from authorstack.sales.schemas import SaleRowIn


class ImportRequest(BaseModel):
    """One platform's batch of sale rows for the calling user"""
    platform: Platform
    rows: List[SaleRowIn] = Field(max_length=10000)


class IngestResult(BaseModel):
    platform: Platform
    status: SyncStatus
    rows: int
    days_recalculated: List[date]
    failed_days: List[date] = Field(default_factory=list)


class SyncRequest(BaseModel):
    platforms: List[Platform] = Field(min_length=1)
    credentials: Dict[str, Any] = Field(default_factory=dict)


class SyncAccepted(BaseModel):
    accepted: bool
    triggered: List[Platform]
    message: str
