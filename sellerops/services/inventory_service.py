"""
Inventory snapshots fed from marketplace stock APIs.

Coupang fulfillment-center stock is pulled from the Rocket Growth inventory
summaries, resolved to catalog products and written to the `coupang`
location. Every quantity change is appended to inventory_logs.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.models.inventory import (
    Inventory,
    InventoryChangeType,
    InventoryLocation,
    InventoryLog,
    InventorySource,
)
from sellerops.models.product import Marketplace
from sellerops.services.marketplace_service import MarketplaceError, iterate_pages
from sellerops.services.product_resolver import ProductResolver, ResolutionQuery

logger = logging.getLogger(__name__)


def orderable_quantity(item: Dict[str, Any]) -> int:
    details = item.get("inventoryDetails") or {}
    try:
        return int(details.get("totalOrderableQuantity") or 0)
    except (TypeError, ValueError):
        return 0


class InventoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_create(self, product_id: uuid.UUID, location: str) -> Inventory:
        result = await self.db.execute(
            select(Inventory).where(Inventory.product_id == product_id, Inventory.location == location)
        )
        inventory = result.scalar_one_or_none()
        if inventory is None:
            inventory = Inventory(product_id=product_id, location=location, quantity=0)
            self.db.add(inventory)
            await self.db.flush()
        return inventory

    async def set_quantity(
        self,
        product_id: uuid.UUID,
        location: str,
        quantity: int,
        source: InventorySource = InventorySource.MANUAL,
        reason: Optional[str] = None,
    ) -> Optional[InventoryLog]:
        """
        Overwrite the stock of one product at one location.

        Returns the appended log row, or None when the quantity did not change.
        """
        inventory = await self.get_or_create(product_id, location)
        before = inventory.quantity or 0
        if before == quantity:
            return None

        inventory.quantity = quantity
        log = InventoryLog(
            inventory_id=inventory.id,
            change_type=InventoryChangeType.ADJUST.value,
            change_qty=quantity - before,
            before_qty=before,
            after_qty=quantity,
            reason=reason,
            source=source.value,
        )
        self.db.add(log)
        await self.db.flush()
        return log

    async def sync_coupang_inventory(
        self,
        clients: Mapping[str, Any],
        resolver: Optional[ProductResolver] = None,
    ) -> Dict[str, Any]:
        """
        Pull fulfillment-center stock for every account into the coupang location.

        A product listed under several accounts keeps the largest orderable
        quantity. Items that resolve to no product are returned, not stored.
        """
        resolver = resolver or ProductResolver(self.db)
        quantities: Dict[uuid.UUID, int] = {}
        unmatched: List[Dict[str, Any]] = []
        errors: List[str] = []
        fetched = 0

        for account_name, client in clients.items():
            try:
                items: List[Dict[str, Any]] = []
                async for page in iterate_pages(client.fetch_rocket_inventory):
                    items.extend(page.records)
            except MarketplaceError as e:
                logger.error(f"[coupang_inventory] {account_name} fetch failed: {e.message}")
                errors.append(f"{account_name}: {e.message}")
                continue

            fetched += len(items)
            for item in items:
                resolution = await resolver.resolve(
                    ResolutionQuery.build(
                        Marketplace.COUPANG.value,
                        option_id=item.get("vendorItemId"),
                        sku=item.get("externalSkuId"),
                    )
                )
                quantity = orderable_quantity(item)
                if not resolution.matched:
                    unmatched.append({
                        "account": account_name,
                        "vendor_item_id": str(item.get("vendorItemId")),
                        "quantity": quantity,
                    })
                    continue
                quantities[resolution.product_id] = max(quantities.get(resolution.product_id, 0), quantity)

        changed = 0
        for product_id, quantity in quantities.items():
            log = await self.set_quantity(
                product_id,
                InventoryLocation.COUPANG.value,
                quantity,
                source=InventorySource.COUPANG_SYNC,
                reason="Coupang fulfillment-center stock sync",
            )
            if log is not None:
                changed += 1

        logger.info(
            f"[coupang_inventory] fetched={fetched} products={len(quantities)} "
            f"changed={changed} unmatched={len(unmatched)}"
        )
        return {
            "success": True,
            "fetched": fetched,
            "products": len(quantities),
            "changed": changed,
            "unmatched": unmatched,
            "errors": errors,
        }

    async def logs(self, inventory_id: uuid.UUID, days: int = 7, limit: int = 50) -> List[InventoryLog]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        result = await self.db.execute(
            select(InventoryLog)
            .where(InventoryLog.inventory_id == inventory_id, InventoryLog.created_at >= since)
            .order_by(InventoryLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
