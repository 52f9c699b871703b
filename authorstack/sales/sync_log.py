"""
Sync Log

Append-only audit trail of platform sync attempts. Writing an entry never
raises: a failed write is logged and counted so ingestion does not depend on
audit-log availability.
"""

from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from authorstack.database.connection import Database
from authorstack.database.models import Platform, SyncLogEntry, SyncStatus
from authorstack.errors import StoreError
from authorstack.metrics import SYNC_LOG_WRITE_FAILURES
from authorstack.sales.schemas import SyncLogOut

logger = structlog.get_logger(__name__)


class SyncLog:
    """Reads and appends sync_logs rows"""

    def __init__(self, database: Database):
        self.db = database

    async def log_sync(
        self,
        user_id: str,
        platform: Platform,
        status: SyncStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Append one entry with a server-assigned timestamp.

        Returns:
            True if written, False if the write failed (never raises)
        """
        try:
            async with self.db.session() as session:
                session.add(
                    SyncLogEntry(
                        user_id=user_id,
                        platform=platform,
                        status=status,
                        error_message=error_message,
                    )
                )
        except Exception as e:
            platform_label = getattr(platform, "value", str(platform))
            SYNC_LOG_WRITE_FAILURES.labels(platform=platform_label).inc()
            logger.error(
                "Log sync error",
                user_id=user_id,
                platform=platform_label,
                status=getattr(status, "value", str(status)),
                error=str(e),
            )
            return False
        return True

    async def get_sync_logs(self, user_id: str, limit: int = 10) -> List[SyncLogOut]:
        """Most recent ``limit`` entries for the user, newest first"""
        query = (
            select(SyncLogEntry)
            .where(SyncLogEntry.user_id == user_id)
            .order_by(SyncLogEntry.synced_at.desc(), SyncLogEntry.id.desc())
            .limit(limit)
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Get sync logs error", user_id=user_id, error=str(e))
            raise StoreError("Failed to get sync logs", code="SYNC_LOGS_FETCH_FAILED") from e

        return [SyncLogOut.model_validate(row) for row in rows]
