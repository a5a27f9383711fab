"""Sales aggregation endpoints."""
from fastapi import APIRouter, HTTPException, Query

from sellerops.api.deps import DB
from sellerops.services.sales_summary_service import SalesSummaryService
from sellerops.services.window_partitioner import parse_date

router = APIRouter()


@router.get("/summary")
async def sales_summary(
    db: DB,
    from_date: str = Query(..., alias="from", description="KST day, YYYY-MM-DD"),
    to_date: str = Query(..., alias="to", description="KST day, YYYY-MM-DD"),
):
    """Quantities per product and channel; unmatched lines are listed separately."""
    try:
        start, end = parse_date(from_date), parse_date(to_date)
        return await SalesSummaryService(db).summarize(start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
