"""Data-quality reports over synced orders."""
from fastapi import APIRouter

from sellerops.api.deps import DB
from sellerops.services.anomaly_service import AnomalyService

router = APIRouter()


@router.get("/anomalies")
async def order_anomalies(db: DB):
    """Suspected misclassified orders, duplicate items, orphans and mapping conflicts."""
    report = await AnomalyService(db).report()
    return {"success": True, **report}


@router.post("/cleanup-duplicates")
async def cleanup_duplicate_items(db: DB):
    deleted = await AnomalyService(db).cleanup_duplicate_items()
    return {"success": True, "deleted": deleted, "total_deleted": sum(deleted.values())}
