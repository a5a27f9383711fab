"""
Data-quality checks over synced orders.

Coupang's seller ordersheet feed occasionally carries Rocket Growth orders:
for those the API reports a shipment_box_id equal to the order_id, or the
orderer/receiver name carries the Rocket marker. We only detect and report
them; reclassifying would mean guessing upstream intent.

Also reported: duplicate item rows left by retried item inserts, orders whose
item insert failed, and option ids mapped to more than one product.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.config import settings
from sellerops.models.marketplace_order import (
    CoupangOrder,
    CoupangOrderItem,
    RocketGrowthOrder,
    RocketGrowthOrderItem,
)
from sellerops.models.product import ProductMapping

logger = logging.getLogger(__name__)


def is_suspected_rocket_order(raw: Dict[str, Any], marker: Optional[str] = None) -> bool:
    """Heuristic for a fulfillment-center order sitting in the seller feed."""
    marker = marker or settings.MISCLASSIFICATION_NAME_MARKER
    order_id = raw.get("orderId")
    box_id = raw.get("shipmentBoxId")
    if order_id is not None and box_id is not None and str(order_id) == str(box_id):
        return True
    names = [(raw.get("orderer") or {}).get("name"), (raw.get("receiver") or {}).get("name")]
    return any(marker in name for name in names if name)


class AnomalyService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def suspected_misclassified_orders(self, limit: int = 200) -> List[Dict[str, Any]]:
        marker = f"%{settings.MISCLASSIFICATION_NAME_MARKER}%"
        result = await self.db.execute(
            select(CoupangOrder)
            .where(
                or_(
                    CoupangOrder.shipment_box_id == CoupangOrder.order_id,
                    CoupangOrder.orderer_name.like(marker),
                    CoupangOrder.receiver_name.like(marker),
                )
            )
            .order_by(CoupangOrder.ordered_at.desc())
            .limit(limit)
        )
        return [
            {
                "id": str(order.id),
                "order_id": order.order_id,
                "shipment_box_id": order.shipment_box_id,
                "orderer_name": order.orderer_name,
                "receiver_name": order.receiver_name,
                "status": order.status,
                "reason": (
                    "shipment_box_id equals order_id"
                    if order.shipment_box_id == order.order_id
                    else "name contains rocket marker"
                ),
            }
            for order in result.scalars().all()
        ]

    async def duplicate_items(self) -> List[Dict[str, Any]]:
        """Item rows repeated for the same (order, vendor_item_id)."""
        duplicates = []
        for channel, item_model, fk in (
            ("coupang_seller", CoupangOrderItem, CoupangOrderItem.coupang_order_id),
            ("coupang_rocket", RocketGrowthOrderItem, RocketGrowthOrderItem.rocket_growth_order_id),
        ):
            result = await self.db.execute(
                select(fk, item_model.vendor_item_id, func.count(item_model.id))
                .group_by(fk, item_model.vendor_item_id)
                .having(func.count(item_model.id) > 1)
            )
            for order_id, vendor_item_id, count in result.all():
                duplicates.append({
                    "channel": channel,
                    "order_id": str(order_id),
                    "vendor_item_id": vendor_item_id,
                    "count": count,
                })
        return duplicates

    async def orders_without_items(self, limit: int = 200) -> List[Dict[str, Any]]:
        orphans = []
        for channel, order_model, item_model, fk in (
            ("coupang_seller", CoupangOrder, CoupangOrderItem, CoupangOrderItem.coupang_order_id),
            ("coupang_rocket", RocketGrowthOrder, RocketGrowthOrderItem, RocketGrowthOrderItem.rocket_growth_order_id),
        ):
            result = await self.db.execute(
                select(order_model.id, order_model.order_id)
                .outerjoin(item_model, fk == order_model.id)
                .where(item_model.id.is_(None))
                .limit(limit)
            )
            orphans.extend(
                {"channel": channel, "id": str(row_id), "order_id": order_id}
                for row_id, order_id in result.all()
            )
        return orphans

    async def conflicting_mappings(self) -> List[Dict[str, Any]]:
        """Option ids whose active mappings point at more than one product."""
        result = await self.db.execute(
            select(
                ProductMapping.marketplace,
                ProductMapping.external_option_id,
                func.count(func.distinct(ProductMapping.product_id)),
            )
            .where(ProductMapping.is_active.is_(True), ProductMapping.external_option_id.is_not(None))
            .group_by(ProductMapping.marketplace, ProductMapping.external_option_id)
            .having(func.count(func.distinct(ProductMapping.product_id)) > 1)
        )
        return [
            {"marketplace": marketplace, "external_option_id": option_id, "product_count": count}
            for marketplace, option_id, count in result.all()
        ]

    async def report(self) -> Dict[str, Any]:
        misclassified = await self.suspected_misclassified_orders()
        duplicates = await self.duplicate_items()
        orphans = await self.orders_without_items()
        conflicts = await self.conflicting_mappings()
        return {
            "suspected_misclassified": misclassified,
            "duplicate_items": duplicates,
            "orders_without_items": orphans,
            "conflicting_mappings": conflicts,
            "counts": {
                "suspected_misclassified": len(misclassified),
                "duplicate_items": len(duplicates),
                "orders_without_items": len(orphans),
                "conflicting_mappings": len(conflicts),
            },
        }

    async def cleanup_duplicate_items(self) -> Dict[str, int]:
        """
        Keep one row per (order, vendor_item_id) and delete the rest.

        Explicit cleanup tooling; nothing calls this during sync.
        """
        deleted = {}
        for channel, item_model, fk_name in (
            ("coupang_seller", CoupangOrderItem, "coupang_order_id"),
            ("coupang_rocket", RocketGrowthOrderItem, "rocket_growth_order_id"),
        ):
            fk = getattr(item_model, fk_name)
            rows = await self.db.execute(
                select(item_model.id, fk, item_model.vendor_item_id).order_by(fk, item_model.vendor_item_id, item_model.id)
            )
            seen = set()
            doomed = []
            for item_id, order_id, vendor_item_id in rows.all():
                key = (order_id, vendor_item_id)
                if key in seen:
                    doomed.append(item_id)
                else:
                    seen.add(key)
            if doomed:
                await self.db.execute(delete(item_model).where(item_model.id.in_(doomed)))
            deleted[channel] = len(doomed)
            logger.info(f"[{channel}] removed {len(doomed)} duplicate item rows")
        await self.db.flush()
        return deleted
