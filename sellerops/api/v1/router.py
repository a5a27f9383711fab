from fastapi import APIRouter

from sellerops.api.v1.endpoints import (
    # Marketplace sync
    coupang,
    naver,
    sync_logs,
    # Catalog resolution
    mappings,
    # Reports
    sales,
    orders,
    inventory,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(coupang.router, prefix="/coupang", tags=["Coupang Sync"])
api_router.include_router(naver.router, prefix="/naver", tags=["Naver Sync"])
api_router.include_router(sync_logs.router, prefix="/sync-logs", tags=["Sync Logs"])
api_router.include_router(mappings.router, prefix="/mappings", tags=["Product Mappings"])
api_router.include_router(sales.router, prefix="/sales", tags=["Sales"])
api_router.include_router(orders.router, prefix="/orders", tags=["Order Quality"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])
