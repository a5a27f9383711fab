"""
Dedup & Upsert Engine.

Reconciles a batch of raw marketplace records against the channel's order
table using the record's natural key:

- duplicates inside the batch collapse to the last occurrence
- existing rows are fetched with one IN query per key chunk
- existing + mutable field changed -> update; unchanged -> skipped
  (the raw payload is refreshed either way)
- new -> order row in its own savepoint, then its items in a second one

Writes are best-effort, not atomic: if the item savepoint fails the order row
stays and the error is reported (at-least-once). The anomaly pass lists orders
that ended up without items. One bad record never fails the batch.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from sqlalchemy import select, tuple_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.config import settings
from sellerops.models.marketplace_order import (
    CoupangOrder,
    CoupangOrderItem,
    CoupangRevenue,
    NaverOrder,
    RocketGrowthOrder,
    RocketGrowthOrderItem,
)
from sellerops.services.product_resolver import (
    ProductResolver,
    ResolutionQuery,
    query_for_coupang_item,
    query_for_naver_order,
    query_for_rocket_item,
)
from sellerops.services.window_partitioner import to_kst

logger = logging.getLogger(__name__)

LOOKUP_CHUNK_SIZE = 500


class OrderChannel(str, Enum):
    COUPANG_SELLER = "coupang_seller"
    COUPANG_ROCKET = "coupang_rocket"
    NAVER = "naver"
    COUPANG_REVENUE = "coupang_revenue"


@dataclass(frozen=True)
class RecordContext:
    """Account a batch was fetched with."""
    account_name: Optional[str] = None
    vendor_id: Optional[str] = None


@dataclass
class ReconcileError:
    external_id: str
    message: str

    def __str__(self) -> str:
        return f"{self.external_id}: {self.message}"


@dataclass
class ReconcileResult:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    deferred: int = 0
    duplicates: int = 0
    errors: List[ReconcileError] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return self.inserted + self.updated

    def merge(self, other: "ReconcileResult") -> "ReconcileResult":
        self.inserted += other.inserted
        self.updated += other.updated
        self.skipped += other.skipped
        self.deferred += other.deferred
        self.duplicates += other.duplicates
        self.errors.extend(other.errors)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synced": self.synced,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "deferred": self.deferred,
            "duplicates": self.duplicates,
            "errors": [str(error) for error in self.errors],
        }


# ==================== Value helpers ====================

def _str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        # Coupang money objects look like {"units": 12000, "nanos": 0, "currencyCode": "KRW"}
        value = value.get("units", 0)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _utc(value: Any) -> Optional[datetime]:
    """Marketplace timestamp -> aware UTC datetime."""
    stamp = to_kst(value)
    return stamp.astimezone(timezone.utc) if stamp else None


def _values_equal(current: Any, incoming: Any) -> bool:
    if isinstance(current, datetime) and isinstance(incoming, datetime):
        # SQLite hands back naive UTC wall time for timezone-aware columns
        if current.tzinfo is None or incoming.tzinfo is None:
            current = current.astimezone(timezone.utc).replace(tzinfo=None) if current.tzinfo else current
            incoming = incoming.astimezone(timezone.utc).replace(tzinfo=None) if incoming.tzinfo else incoming
        return current == incoming
    if current is not None and incoming is not None and (isinstance(current, Decimal) or isinstance(incoming, Decimal)):
        return Decimal(str(current)) == Decimal(str(incoming))
    return current == incoming


# ==================== Channel definitions ====================

KeyFn = Callable[[Dict[str, Any], RecordContext], Tuple[Optional[str], ...]]
RowFn = Callable[[Dict[str, Any], RecordContext], Dict[str, Any]]
ItemsFn = Callable[[Dict[str, Any]], List[Dict[str, Any]]]


@dataclass(frozen=True)
class ChannelSpec:
    """How one channel's raw records map onto its tables."""
    channel: OrderChannel
    model: Type
    key_columns: Tuple[str, ...]
    key_fn: KeyFn
    build_row: RowFn
    mutable_fields: Tuple[str, ...] = ()
    item_model: Optional[Type] = None
    item_fk: Optional[str] = None
    build_items: Optional[ItemsFn] = None
    item_query: Optional[Callable[[Any], ResolutionQuery]] = None
    order_query: Optional[Callable[[Any], ResolutionQuery]] = None


def _seller_key(raw, ctx):
    return (_str(raw.get("shipmentBoxId")),)


def _seller_row(raw, ctx):
    orderer = raw.get("orderer") or {}
    receiver = raw.get("receiver") or {}
    address = " ".join(part for part in (receiver.get("addr1"), receiver.get("addr2")) if part)
    return {
        "order_id": _str(raw.get("orderId")),
        "shipment_box_id": _str(raw.get("shipmentBoxId")),
        "vendor_id": ctx.vendor_id or _str(raw.get("vendorId")),
        "account_name": ctx.account_name,
        "ordered_at": _utc(raw.get("orderedAt")),
        "paid_at": _utc(raw.get("paidAt")),
        "status": raw.get("status"),
        "orderer_name": orderer.get("name") or settings.MASKED_ORDERER_NAME,
        "orderer_phone": orderer.get("safeNumber") or orderer.get("ordererNumber"),
        "receiver_name": receiver.get("name"),
        "receiver_phone": receiver.get("safeNumber") or receiver.get("receiverNumber"),
        "receiver_address": address or None,
        "shipping_price": _decimal(raw.get("shippingPrice")),
        "raw_data": raw,
    }


def _seller_items(raw):
    return [
        {
            "vendor_item_id": _str(item.get("vendorItemId")),
            "vendor_item_name": item.get("vendorItemName"),
            "shipping_count": _int(item.get("shippingCount")),
            "sales_price": _decimal(item.get("salesPrice")),
            "order_price": _decimal(item.get("orderPrice")),
            "discount_price": _decimal(item.get("discountPrice")),
            "external_vendor_sku_code": _str(item.get("externalVendorSkuCode")),
            "seller_product_id": _str(item.get("sellerProductId")),
            "seller_product_name": item.get("sellerProductName"),
            "seller_product_item_name": item.get("sellerProductItemName"),
        }
        for item in raw.get("orderItems") or []
    ]


def _rocket_key(raw, ctx):
    return (ctx.vendor_id or _str(raw.get("vendorId")), _str(raw.get("orderId")))


def _rocket_row(raw, ctx):
    return {
        "order_id": _str(raw.get("orderId")),
        "vendor_id": ctx.vendor_id or _str(raw.get("vendorId")),
        "account_name": ctx.account_name,
        "paid_at": _utc(raw.get("paidAt")),
        "raw_data": raw,
    }


def _rocket_items(raw):
    return [
        {
            "vendor_item_id": _str(item.get("vendorItemId")),
            "product_name": item.get("productName"),
            "sales_quantity": _int(item.get("salesQuantity")),
            "sales_price": _decimal(item.get("salesPrice")),
            "currency": item.get("currency"),
        }
        for item in raw.get("orderItems") or []
    ]


def _naver_key(raw, ctx):
    return (_str(raw.get("productOrderId")),)


def _naver_row(raw, ctx):
    content = raw.get("content") or {}
    order = content.get("order") or {}
    product_order = content.get("productOrder") or {}
    return {
        "product_order_id": _str(raw.get("productOrderId")),
        "order_id": _str(order.get("orderId")),
        "account_name": ctx.account_name,
        "order_date": _utc(order.get("orderDate")),
        "payment_date": _utc(order.get("paymentDate") or order.get("orderDate")),
        "status": product_order.get("productOrderStatus"),
        "product_name": product_order.get("productName"),
        "product_option": product_order.get("productOption") or None,
        "channel_product_id": _str(product_order.get("productId")),
        "external_option_id": _str(product_order.get("optionCode")),
        "quantity": _int(product_order.get("quantity")),
        "total_payment_amount": _decimal(product_order.get("totalPaymentAmount")),
        "raw_data": raw,
    }


def _revenue_key(raw, ctx):
    return (
        _str(raw.get("orderId")),
        ctx.vendor_id or _str(raw.get("vendorId")),
        _str(raw.get("vendorItemId")),
    )


def _revenue_row(raw, ctx):
    return {
        "order_id": _str(raw.get("orderId")),
        "vendor_id": ctx.vendor_id or _str(raw.get("vendorId")),
        "vendor_item_id": _str(raw.get("vendorItemId")),
        "vendor_item_name": raw.get("vendorItemName"),
        "quantity": _int(raw.get("quantity")),
        "sale_price": _decimal(raw.get("salePrice")),
        "discount_price": _decimal(raw.get("discountPrice")),
        "settlement_price": _decimal(raw.get("settlementPrice")),
        "recognized_at": _utc(raw.get("recognizedAt")),
        "ordered_at": _utc(raw.get("orderedAt")),
        "delivered_at": _utc(raw.get("deliveredAt")),
        "shipment_type": raw.get("shipmentType"),
        "seller_product_id": _str(raw.get("sellerProductId")),
        "seller_product_name": raw.get("sellerProductName"),
        "raw_data": raw,
    }


CHANNELS: Dict[OrderChannel, ChannelSpec] = {
    OrderChannel.COUPANG_SELLER: ChannelSpec(
        channel=OrderChannel.COUPANG_SELLER,
        model=CoupangOrder,
        key_columns=("shipment_box_id",),
        key_fn=_seller_key,
        build_row=_seller_row,
        mutable_fields=("status",),
        item_model=CoupangOrderItem,
        item_fk="coupang_order_id",
        build_items=_seller_items,
        item_query=query_for_coupang_item,
    ),
    OrderChannel.COUPANG_ROCKET: ChannelSpec(
        channel=OrderChannel.COUPANG_ROCKET,
        model=RocketGrowthOrder,
        key_columns=("vendor_id", "order_id"),
        key_fn=_rocket_key,
        build_row=_rocket_row,
        item_model=RocketGrowthOrderItem,
        item_fk="rocket_growth_order_id",
        build_items=_rocket_items,
        item_query=query_for_rocket_item,
    ),
    OrderChannel.NAVER: ChannelSpec(
        channel=OrderChannel.NAVER,
        model=NaverOrder,
        key_columns=("product_order_id",),
        key_fn=_naver_key,
        build_row=_naver_row,
        mutable_fields=("status",),
        order_query=query_for_naver_order,
    ),
    OrderChannel.COUPANG_REVENUE: ChannelSpec(
        channel=OrderChannel.COUPANG_REVENUE,
        model=CoupangRevenue,
        key_columns=("order_id", "vendor_id", "vendor_item_id"),
        key_fn=_revenue_key,
        build_row=_revenue_row,
        mutable_fields=("quantity", "settlement_price", "recognized_at", "delivered_at"),
    ),
}


# ==================== Engine ====================

class OrderReconciler:
    """Natural-key reconcile of one channel's raw records."""

    def __init__(self, db: AsyncSession, channel: OrderChannel, resolver: Optional[ProductResolver] = None):
        self.db = db
        self.spec = CHANNELS[channel]
        self.resolver = resolver

    @staticmethod
    def _format_key(key: Tuple[Optional[str], ...]) -> str:
        return "/".join(part or "?" for part in key)

    def dedupe(self, records: Sequence[Dict[str, Any]], context: RecordContext, result: ReconcileResult):
        """Collapse repeated natural keys; the last occurrence wins."""
        unique: Dict[Tuple[str, ...], Dict[str, Any]] = {}
        for raw in records:
            key = self.spec.key_fn(raw, context)
            if any(part is None for part in key):
                result.errors.append(ReconcileError(self._format_key(key), "record has no natural key"))
                continue
            if key in unique:
                result.duplicates += 1
                result.skipped += 1
                del unique[key]
            unique[key] = raw
        return unique

    async def load_existing(self, keys: List[Tuple[str, ...]]) -> Dict[Tuple[str, ...], Any]:
        """
        Existing rows by natural key, one IN query per chunk of keys.

        Composite keys are matched as row values, so only the requested rows
        come back.
        """
        model = self.spec.model
        columns = self.spec.key_columns
        key_columns = [getattr(model, column) for column in columns]
        found: Dict[Tuple[str, ...], Any] = {}

        ordered = sorted(set(keys))
        for start in range(0, len(ordered), LOOKUP_CHUNK_SIZE):
            chunk = ordered[start:start + LOOKUP_CHUNK_SIZE]
            if len(key_columns) == 1:
                condition = key_columns[0].in_([key[0] for key in chunk])
            else:
                condition = tuple_(*key_columns).in_(chunk)
            rows = await self.db.execute(select(model).where(condition))
            for row in rows.scalars().all():
                found[tuple(getattr(row, column) for column in columns)] = row
        return found

    async def _resolve_product(self, query: ResolutionQuery):
        resolution = await self.resolver.resolve(query)
        return resolution.product_id

    async def _update(self, existing: Any, row: Dict[str, Any], result: ReconcileResult) -> None:
        changed = {
            name: row[name]
            for name in self.spec.mutable_fields
            if name in row and not _values_equal(getattr(existing, name), row[name])
        }
        async with self.db.begin_nested():
            existing.raw_data = row.get("raw_data")
            existing.synced_at = datetime.now(timezone.utc)
            for name, value in changed.items():
                setattr(existing, name, value)
            await self.db.flush()

        if changed:
            result.updated += 1
        else:
            result.skipped += 1

    async def _insert(self, key_label: str, raw: Dict[str, Any], row: Dict[str, Any], result: ReconcileResult) -> None:
        spec = self.spec
        order = spec.model(**row)
        if self.resolver is not None and spec.order_query is not None:
            order.product_id = await self._resolve_product(spec.order_query(order))

        try:
            async with self.db.begin_nested():
                self.db.add(order)
                await self.db.flush()
        except IntegrityError:
            # Another run inserted the same key between our lookup and insert
            logger.warning(f"[{spec.channel.value}] {key_label} inserted concurrently, skipping")
            result.skipped += 1
            return

        result.inserted += 1
        if spec.build_items is None:
            return

        try:
            items = []
            for data in spec.build_items(raw):
                item = spec.item_model(**{spec.item_fk: order.id, **data})
                if self.resolver is not None and spec.item_query is not None:
                    item.product_id = await self._resolve_product(spec.item_query(item))
                items.append(item)
            async with self.db.begin_nested():
                self.db.add_all(items)
                await self.db.flush()
        except Exception as e:
            logger.error(f"[{spec.channel.value}] {key_label} items failed, order kept: {e}")
            result.errors.append(ReconcileError(key_label, f"items: {e}"))

    async def reconcile(
        self,
        records: Sequence[Dict[str, Any]],
        context: Optional[RecordContext] = None,
        budget: Any = None,
    ) -> ReconcileResult:
        """Insert, update or skip each record; never raises for a single bad record."""
        context = context or RecordContext()
        result = ReconcileResult()

        unique = self.dedupe(records, context, result)
        if not unique:
            return result

        keys = list(unique.keys())
        existing = await self.load_existing(keys)

        for position, key in enumerate(keys):
            if budget is not None and budget.exhausted:
                result.deferred += len(keys) - position
                logger.warning(f"[{self.spec.channel.value}] budget exhausted, {result.deferred} records deferred")
                break

            raw = unique[key]
            key_label = self._format_key(key)
            try:
                row = self.spec.build_row(raw, context)
                if key in existing:
                    await self._update(existing[key], row, result)
                else:
                    await self._insert(key_label, raw, row, result)
            except Exception as e:
                logger.error(f"[{self.spec.channel.value}] {key_label} failed: {e}")
                result.errors.append(ReconcileError(key_label, str(e)))

        logger.info(
            f"[{self.spec.channel.value}] reconciled {len(records)} records: "
            f"{result.inserted} inserted, {result.updated} updated, {result.skipped} skipped, "
            f"{len(result.errors)} errors"
        )
        return result


async def assign_products(db: AsyncSession, channel: OrderChannel, resolver: ProductResolver) -> Dict[str, Any]:
    """
    Batch resolution pass: fill product_id where it is still empty.

    Run after mappings are curated so earlier unmatched rows pick them up.
    """
    spec = CHANNELS[channel]
    if spec.item_model is not None and spec.item_query is not None:
        model, to_query = spec.item_model, spec.item_query
    elif spec.order_query is not None:
        model, to_query = spec.model, spec.order_query
    else:
        raise ValueError(f"Channel {channel.value} has no product resolution")

    rows = (await db.execute(select(model).where(model.product_id.is_(None)))).scalars().all()
    resolved = 0
    for row in rows:
        resolution = await resolver.resolve(to_query(row))
        if resolution.matched:
            row.product_id = resolution.product_id
            resolved += 1
    await db.flush()

    logger.info(f"[{channel.value}] product assignment: {resolved}/{len(rows)} resolved")
    return {"channel": channel.value, "checked": len(rows), "resolved": resolved, "unmatched": len(rows) - resolved}
