"""
Sales quantities per product across all channels.

Rows without a stored product_id are resolved on the fly; anything that still
does not resolve is reported in `unmatched` and counted in the totals, so the
summary never under-reports sales because a mapping is missing.
"""
import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.models.marketplace_order import (
    CoupangOrder,
    CoupangOrderItem,
    NaverOrder,
    RocketGrowthOrder,
    RocketGrowthOrderItem,
)
from sellerops.models.product import Product
from sellerops.services.product_resolver import (
    ProductResolver,
    ResolutionQuery,
    query_for_coupang_item,
    query_for_naver_order,
    query_for_rocket_item,
)
from sellerops.services.window_partitioner import KST

logger = logging.getLogger(__name__)

SALES_CHANNELS = ("coupang_seller", "coupang_rocket", "naver")

# Naver product orders that never turned into a sale
NAVER_EXCLUDED_STATUSES = ("CANCELED", "RETURNED", "CANCELED_BY_NOPAYMENT")


def kst_day_bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    """[start 00:00 KST, end+1 00:00 KST) expressed in UTC."""
    lower = datetime.combine(start, time.min, tzinfo=KST).astimezone(timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=KST).astimezone(timezone.utc)
    return lower, upper


class SalesSummaryService:
    def __init__(self, db: AsyncSession, resolver: Optional[ProductResolver] = None):
        self.db = db
        self.resolver = resolver or ProductResolver(db)

    async def _lines(self, lower: datetime, upper: datetime) -> List[Tuple[str, Optional[uuid.UUID], ResolutionQuery, int]]:
        """(channel, product_id, query, quantity) for every sold line in range."""
        lines = []

        seller = await self.db.execute(
            select(CoupangOrderItem)
            .join(CoupangOrder, CoupangOrderItem.coupang_order_id == CoupangOrder.id)
            .where(CoupangOrder.ordered_at >= lower, CoupangOrder.ordered_at < upper)
        )
        for item in seller.scalars().all():
            lines.append(("coupang_seller", item.product_id, query_for_coupang_item(item), item.shipping_count or 0))

        rocket = await self.db.execute(
            select(RocketGrowthOrderItem)
            .join(RocketGrowthOrder, RocketGrowthOrderItem.rocket_growth_order_id == RocketGrowthOrder.id)
            .where(RocketGrowthOrder.paid_at >= lower, RocketGrowthOrder.paid_at < upper)
        )
        for item in rocket.scalars().all():
            lines.append(("coupang_rocket", item.product_id, query_for_rocket_item(item), item.sales_quantity or 0))

        naver = await self.db.execute(
            select(NaverOrder).where(
                NaverOrder.payment_date >= lower,
                NaverOrder.payment_date < upper,
                NaverOrder.status.is_(None) | NaverOrder.status.not_in(NAVER_EXCLUDED_STATUSES),
            )
        )
        for order in naver.scalars().all():
            lines.append(("naver", order.product_id, query_for_naver_order(order), order.quantity or 0))

        return lines

    async def summarize(self, start: date, end: date) -> Dict[str, Any]:
        if start > end:
            raise ValueError("from must not be after to")

        lower, upper = kst_day_bounds(start, end)
        per_product: Dict[uuid.UUID, Dict[str, int]] = defaultdict(lambda: dict.fromkeys(SALES_CHANNELS, 0))
        unmatched: Dict[Tuple[str, Optional[str], Optional[str], Optional[str]], int] = defaultdict(int)

        for channel, product_id, query, quantity in await self._lines(lower, upper):
            if product_id is None:
                resolution = await self.resolver.resolve(query)
                product_id = resolution.product_id
            if product_id is None:
                key = (channel, query.external_option_id, query.external_product_name, query.external_option_name)
                unmatched[key] += quantity
            else:
                per_product[product_id][channel] += quantity

        products = {}
        if per_product:
            result = await self.db.execute(select(Product).where(Product.id.in_(list(per_product))))
            products = {product.id: product for product in result.scalars().all()}

        rows = []
        for product_id, by_channel in per_product.items():
            product = products.get(product_id)
            rows.append({
                "product_id": str(product_id),
                "sku": product.sku if product else None,
                "name": product.name if product else None,
                "by_channel": by_channel,
                "total": sum(by_channel.values()),
            })
        rows.sort(key=lambda row: (-row["total"], row["name"] or ""))

        unmatched_rows = [
            {
                "channel": channel,
                "external_option_id": option_id,
                "product_name": product_name,
                "option_name": option_name,
                "quantity": quantity,
            }
            for (channel, option_id, product_name, option_name), quantity in unmatched.items()
        ]
        unmatched_rows.sort(key=lambda row: -row["quantity"])

        matched_quantity = sum(row["total"] for row in rows)
        unmatched_quantity = sum(row["quantity"] for row in unmatched_rows)
        if unmatched_rows:
            logger.warning(
                f"Sales summary {start}..{end}: {len(unmatched_rows)} unmatched lines, quantity {unmatched_quantity}"
            )

        return {
            "success": True,
            "period": {"from": start.isoformat(), "to": end.isoformat()},
            "products": rows,
            "unmatched": unmatched_rows,
            "matched_quantity": matched_quantity,
            "unmatched_quantity": unmatched_quantity,
            "total_quantity": matched_quantity + unmatched_quantity,
        }
