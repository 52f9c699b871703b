"""
Sales Ingestion

Write path for platform imports:
1. upsert the batch (one transaction)
2. recompute the aggregate of every affected day
3. append a sync log entry describing the outcome

Recomputation starts only after the insert has committed.
"""

from typing import List, Optional, Sequence

import structlog

from authorstack.config.settings import FeatureSettings
from authorstack.database.models import Platform, SyncStatus
from authorstack.errors import InputValidationError, StoreError
from authorstack.ingestion.schemas import IngestResult, SyncAccepted
from authorstack.sales.schemas import SaleRecordIn, SaleRowIn
from authorstack.sales.store import SalesStore
from authorstack.sales.sync_log import SyncLog

logger = structlog.get_logger(__name__)


class SyncService:
    """
    Example:
        service = SyncService(sales_store, sync_log, settings.features)
        result = await service.ingest("u1", Platform.KDP, rows)
    """

    def __init__(self, sales_store: SalesStore, sync_log: SyncLog, features: FeatureSettings):
        self.sales_store = sales_store
        self.sync_log = sync_log
        self.features = features

    async def ingest(self, user_id: str, platform: Platform, rows: Sequence[SaleRowIn]) -> IngestResult:
        """
        Ingest one batch.

        Outcome logged to the sync log:
        - success: rows stored and every affected day recomputed
        - partial: rows stored, some days could not be recomputed
        - failed: the insert failed; the error is re-raised after logging

        Raises:
            StoreError: the batch could not be stored
        """
        platform = Platform(platform)
        records = [
            SaleRecordIn(user_id=user_id, platform=platform, **row.model_dump())
            for row in rows
        ]

        try:
            written = await self.sales_store.insert_sales(records)
        except StoreError as e:
            await self.sync_log.log_sync(user_id, platform, SyncStatus.FAILED, e.message)
            logger.error("Sales ingest failed", user_id=user_id, platform=platform.value, rows=len(records))
            raise

        days = sorted({record.date for record in records})
        failed_days = []
        for day in days:
            try:
                await self.sales_store.recalculate_aggregate(user_id, day)
            except StoreError as e:
                failed_days.append(day)
                logger.warning(
                    "Aggregate recalculation failed",
                    user_id=user_id,
                    date=day.isoformat(),
                    error=e.message,
                )

        error_message: Optional[str] = None
        if failed_days:
            status = SyncStatus.PARTIAL
            error_message = "Failed to recalculate aggregates for: " + ", ".join(
                day.isoformat() for day in failed_days
            )
        else:
            status = SyncStatus.SUCCESS

        await self.sync_log.log_sync(user_id, platform, status, error_message)

        logger.info(
            "Sales ingested",
            user_id=user_id,
            platform=platform.value,
            rows=written,
            days=len(days),
            status=status.value,
        )
        return IngestResult(
            platform=platform,
            status=status,
            rows=written,
            days_recalculated=[day for day in days if day not in failed_days],
            failed_days=failed_days,
        )

    async def request_sync(
        self,
        user_id: str,
        platforms: List[Platform],
        credentials: Optional[dict] = None,
    ) -> SyncAccepted:
        """
        Acknowledge a manual sync request.

        Fetching from platform APIs happens out of process; this validates the
        request and reports which platforms will be synced.

        Raises:
            InputValidationError: a requested platform is not enabled
        """
        requested = [Platform(p) for p in platforms]
        disabled = [p.value for p in requested if not self.features.platform_enabled(p.value)]
        if disabled:
            raise InputValidationError(
                "Platform sync not enabled",
                field_errors={"platforms": f"not enabled: {', '.join(disabled)}"},
                code="PLATFORM_DISABLED",
            )

        triggered = list(dict.fromkeys(requested))
        logger.info(
            "Manual sync requested",
            user_id=user_id,
            platforms=[p.value for p in triggered],
            with_credentials=sorted((credentials or {}).keys()),
        )
        return SyncAccepted(
            accepted=True,
            triggered=triggered,
            message=f"Sync queued for {len(triggered)} platform(s)",
        )
