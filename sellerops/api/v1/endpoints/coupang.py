"""Coupang sync endpoints (seller-shipped, Rocket Growth, revenue)."""
from fastapi import APIRouter, HTTPException, Query

from sellerops.api.deps import SyncService
from sellerops.schemas.sync import SyncRangeRequest, SyncRunResponse
from sellerops.services.sync_service import SELLER_ORDER_STATUSES
from sellerops.services.window_partitioner import parse_date

router = APIRouter()


# ==================== Seller-shipped orders ====================

@router.get("/sync-chunk", response_model=SyncRunResponse)
async def sync_seller_chunk(
    service: SyncService,
    date: str = Query(..., description="KST day, YYYY-MM-DD"),
    status: str = Query(..., description=", ".join(SELLER_ORDER_STATUSES)),
):
    """
    Sync one day and one status for every account.

    Sized for a single serverless invocation; callers walk a long range
    chunk by chunk.
    """
    try:
        day = parse_date(date)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {date}")
    if status not in SELLER_ORDER_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Supported: {SELLER_ORDER_STATUSES}"
        )
    return await service.sync_seller_chunk(day, status)


@router.get("/sync-cron", response_model=SyncRunResponse)
async def sync_seller_cron(service: SyncService):
    """Yesterday and today, every status, inside the cron time budget."""
    return await service.sync_seller_cron()


# ==================== Rocket Growth ====================

@router.post("/rocket/sync", response_model=SyncRunResponse)
async def sync_rocket_orders(request: SyncRangeRequest, service: SyncService):
    return await service.sync_rocket_orders(request.from_date, request.to_date)


@router.get("/rocket/sync-cron", response_model=SyncRunResponse)
async def sync_rocket_cron(service: SyncService):
    return await service.sync_rocket_cron()


# ==================== Revenue ====================

@router.post("/revenue/sync", response_model=SyncRunResponse)
async def sync_revenue(request: SyncRangeRequest, service: SyncService):
    """Revenue history; long ranges are split into 30-day requests."""
    return await service.sync_revenue(request.from_date, request.to_date)
