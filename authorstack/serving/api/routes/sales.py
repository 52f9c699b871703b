"""
Sales API Endpoints

Raw sales, aggregates, imports, manual sync requests and the sync log.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from authorstack.database.models import Platform
from authorstack.errors import InputValidationError
from authorstack.ingestion.schemas import ImportRequest, IngestResult, SyncAccepted, SyncRequest
from authorstack.ingestion.sync import SyncService
from authorstack.sales.schemas import DailyAggregateOut, DateRange, SalesResponse, SyncLogOut
from authorstack.sales.store import SalesStore
from authorstack.sales.sync_log import SyncLog
from authorstack.serving.api.dependencies import (
    get_current_user_id,
    get_sales_store,
    get_sync_log,
    get_sync_service,
)

router = APIRouter()


class RecalculateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(alias="date")


def resolve_range(
    range_name: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
) -> tuple:
    """Return (DateRange, label) from either a named range or explicit bounds"""
    if start_date or end_date:
        if not (start_date and end_date):
            raise InputValidationError(
                "Both start_date and end_date are required",
                field_errors={"start_date" if not start_date else "end_date": "required"},
            )
        try:
            date_range = DateRange(start=start_date, end=end_date)
        except ValidationError as e:
            raise InputValidationError.from_pydantic(e, "Invalid date range") from e
        return date_range, f"{start_date.isoformat()}/{end_date.isoformat()}"

    name = range_name or "30d"
    try:
        return DateRange.named(name), name
    except ValueError as e:
        raise InputValidationError("Invalid range", field_errors={"range": str(e)}) from e


@router.get("", response_model=SalesResponse)
async def get_sales(
    range: Optional[str] = Query(None, description="7d, 30d, 90d or 1y"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    platform: Optional[Platform] = None,
    book_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    store: SalesStore = Depends(get_sales_store),
) -> SalesResponse:
    """
    Sale rows and daily aggregates for a date range.

    Aggregates cover every platform; the platform and book filters apply to
    the raw rows only.
    """
    date_range, label = resolve_range(range, start_date, end_date)

    sales = await store.get_sales(user_id, date_range, platform=platform, book_id=book_id)
    aggregates = await store.get_daily_aggregates(user_id, date_range)

    return SalesResponse(sales=sales, aggregates=aggregates, range=label)


@router.post("/sync", response_model=SyncAccepted, status_code=202)
async def request_sync(
    body: SyncRequest,
    user_id: str = Depends(get_current_user_id),
    service: SyncService = Depends(get_sync_service),
) -> SyncAccepted:
    """Queue a manual sync for the given platforms"""
    return await service.request_sync(user_id, body.platforms, body.credentials)


@router.post("/import", response_model=IngestResult)
async def import_sales(
    body: ImportRequest,
    user_id: str = Depends(get_current_user_id),
    service: SyncService = Depends(get_sync_service),
) -> IngestResult:
    return await service.ingest(user_id, body.platform, body.rows)


@router.post("/aggregates/recalculate", response_model=DailyAggregateOut)
async def recalculate_aggregate(
    body: RecalculateRequest,
    user_id: str = Depends(get_current_user_id),
    store: SalesStore = Depends(get_sales_store),
) -> DailyAggregateOut:
    return await store.recalculate_aggregate(user_id, body.day)


@router.get("/sync-logs", response_model=List[SyncLogOut])
async def get_sync_logs(
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    sync_log: SyncLog = Depends(get_sync_log),
) -> List[SyncLogOut]:
    return await sync_log.get_sync_logs(user_id, limit=limit)
