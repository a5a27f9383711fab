from sellerops.models.product import Marketplace, Product, ProductMapping
from sellerops.models.marketplace_order import (
    CoupangOrder,
    CoupangOrderItem,
    RocketGrowthOrder,
    RocketGrowthOrderItem,
    NaverOrder,
    CoupangRevenue,
)
from sellerops.models.inventory import (
    Inventory,
    InventoryLog,
    InventoryLocation,
    InventoryChangeType,
    InventorySource,
)
from sellerops.models.sync_log import ApiSyncLog, SyncStatus

__all__ = [
    "Marketplace",
    "Product",
    "ProductMapping",
    "CoupangOrder",
    "CoupangOrderItem",
    "RocketGrowthOrder",
    "RocketGrowthOrderItem",
    "NaverOrder",
    "CoupangRevenue",
    "Inventory",
    "InventoryLog",
    "InventoryLocation",
    "InventoryChangeType",
    "InventorySource",
    "ApiSyncLog",
    "SyncStatus",
]
