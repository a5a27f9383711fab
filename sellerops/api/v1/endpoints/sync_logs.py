"""Sync run audit trail."""
from typing import Optional

from fastapi import APIRouter, Query

from sellerops.api.deps import DB
from sellerops.schemas.sync import SyncLogResponse
from sellerops.services.sync_log_service import SyncLogService

router = APIRouter()


@router.get("")
async def list_sync_logs(
    db: DB,
    channel: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
):
    logs = await SyncLogService(db).recent(channel=channel, limit=limit)
    return {
        "success": True,
        "logs": [SyncLogResponse.model_validate(log) for log in logs],
        "count": len(logs),
    }
