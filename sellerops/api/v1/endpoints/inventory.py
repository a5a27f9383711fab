"""Inventory endpoints."""
from uuid import UUID

from fastapi import APIRouter, Query

from sellerops.api.deps import DB, SyncService
from sellerops.schemas.inventory import InventoryLogResponse
from sellerops.services.inventory_service import InventoryService

router = APIRouter()


@router.post("/sync-coupang")
async def sync_coupang_inventory(db: DB, service: SyncService):
    """Pull Coupang fulfillment-center stock into the coupang location."""
    return await InventoryService(db).sync_coupang_inventory(service.coupang_clients())


@router.get("/logs")
async def inventory_logs(
    db: DB,
    inventory_id: UUID = Query(...),
    days: int = Query(7, ge=1, le=365),
    limit: int = Query(50, ge=1, le=500),
):
    logs = await InventoryService(db).logs(inventory_id, days=days, limit=limit)
    return {
        "success": True,
        "logs": [InventoryLogResponse.model_validate(log) for log in logs],
        "count": len(logs),
        "days": days,
    }
