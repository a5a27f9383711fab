"""Writes one api_sync_logs row per sync run."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.models.sync_log import ApiSyncLog, SyncStatus

logger = logging.getLogger(__name__)

MAX_LOGGED_ERRORS = 5


def summarize_errors(errors: Sequence[Any]) -> Optional[str]:
    if not errors:
        return None
    return "; ".join(str(error) for error in errors[:MAX_LOGGED_ERRORS])


def status_for(errors: Sequence[Any], failed: bool = False) -> SyncStatus:
    if failed:
        return SyncStatus.FAILED
    return SyncStatus.PARTIAL if errors else SyncStatus.SUCCESS


class SyncLogService:
    """Audit trail for sync runs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        channel: str,
        sync_type: str,
        records_count: int,
        errors: Sequence[Any] = (),
        details: Optional[Dict[str, Any]] = None,
        started_at: Optional[datetime] = None,
        failed: bool = False,
    ) -> Optional[ApiSyncLog]:
        """
        Add a log row in a savepoint.

        A failure here is logged and swallowed; the audit trail must not undo
        a sync that already succeeded.
        """
        entry = ApiSyncLog(
            channel=channel,
            sync_type=sync_type,
            status=status_for(errors, failed).value,
            records_count=records_count,
            error_message=summarize_errors(list(errors)),
            details=details,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        try:
            async with self.db.begin_nested():
                self.db.add(entry)
                await self.db.flush()
        except Exception as e:
            logger.error(f"Failed to write sync log for {channel}/{sync_type}: {e}")
            return None
        return entry

    async def recent(self, channel: Optional[str] = None, limit: int = 50) -> List[ApiSyncLog]:
        query = select(ApiSyncLog).order_by(ApiSyncLog.completed_at.desc()).limit(limit)
        if channel:
            query = query.where(ApiSyncLog.channel == channel)
        result = await self.db.execute(query)
        return list(result.scalars().all())
