"""Naver SmartStore sync endpoints."""
from typing import Optional

from fastapi import APIRouter, Body, HTTPException

from sellerops.api.deps import SyncService
from sellerops.schemas.sync import OptionalSyncRangeRequest, SyncRunResponse

router = APIRouter()


@router.post("/orders/sync", response_model=SyncRunResponse)
async def sync_naver_orders(
    service: SyncService,
    request: Optional[OptionalSyncRangeRequest] = Body(None),
):
    """Product orders paid in range; defaults to the last 7 days up to yesterday."""
    request = request or OptionalSyncRangeRequest()
    try:
        return await service.sync_naver_orders(request.from_date, request.to_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/orders/sync-cron", response_model=SyncRunResponse)
async def sync_naver_cron(service: SyncService):
    return await service.sync_naver_cron()
