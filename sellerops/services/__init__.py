# Services module
from sellerops.services.sync_service import MarketplaceSyncService
from sellerops.services.product_resolver import ProductResolver
from sellerops.services.order_reconciler import OrderReconciler
from sellerops.services.mapping_service import MappingService
from sellerops.services.inventory_service import InventoryService
from sellerops.services.sales_summary_service import SalesSummaryService
from sellerops.services.anomaly_service import AnomalyService
from sellerops.services.sync_log_service import SyncLogService

__all__ = [
    "MarketplaceSyncService",
    "ProductResolver",
    "OrderReconciler",
    "MappingService",
    "InventoryService",
    "SalesSummaryService",
    "AnomalyService",
    "SyncLogService",
]
