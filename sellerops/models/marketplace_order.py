"""Marketplace order models, one table family per fulfillment channel.

- coupang_orders / coupang_order_items: seller-shipped orders (ordersheets API)
- rocket_growth_orders / rocket_growth_order_items: Coupang fulfillment-center orders
- naver_orders: SmartStore product orders (item-grained feed, items inline)
- coupang_revenues: recognised revenue lines (both Coupang channels)

Every table carries a unique constraint on its natural key so two overlapping
sync runs cannot insert the same marketplace record twice.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sellerops.database import Base
from sellerops.db_types import JSONType, UUIDType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Coupang seller-shipped ====================

class CoupangOrder(Base):
    """Seller-shipped Coupang order, keyed by shipment box."""
    __tablename__ = "coupang_orders"
    __table_args__ = (
        UniqueConstraint("shipment_box_id", name="uq_coupang_order_shipment_box"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    order_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    shipment_box_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Natural key; equals order_id for some fulfillment types"
    )
    vendor_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    ordered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        index=True,
        comment="ACCEPT, INSTRUCT, DEPARTURE, DELIVERING, FINAL_DELIVERY"
    )

    orderer_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    orderer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    receiver_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    receiver_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    receiver_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    shipping_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    raw_data: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Raw ordersheet from Coupang"
    )
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    items: Mapped[List["CoupangOrderItem"]] = relationship(
        "CoupangOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<CoupangOrder(box={self.shipment_box_id}, status={self.status})>"


class CoupangOrderItem(Base):
    """Line item of a seller-shipped order."""
    __tablename__ = "coupang_order_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    coupang_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("coupang_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    vendor_item_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    vendor_item_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    shipping_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sales_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    order_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    discount_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    external_vendor_sku_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    seller_product_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    seller_product_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    seller_product_item_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    order: Mapped["CoupangOrder"] = relationship("CoupangOrder", back_populates="items")


# ==================== Coupang fulfillment center (Rocket Growth) ====================

class RocketGrowthOrder(Base):
    """Order fulfilled from the Coupang warehouse."""
    __tablename__ = "rocket_growth_orders"
    __table_args__ = (
        UniqueConstraint("vendor_id", "order_id", name="uq_rocket_growth_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    order_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    vendor_id: Mapped[str] = mapped_column(String(50), nullable=False)
    account_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    raw_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    items: Mapped[List["RocketGrowthOrderItem"]] = relationship(
        "RocketGrowthOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
    )


class RocketGrowthOrderItem(Base):
    __tablename__ = "rocket_growth_order_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    rocket_growth_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("rocket_growth_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    vendor_item_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    product_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sales_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sales_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    order: Mapped["RocketGrowthOrder"] = relationship("RocketGrowthOrder", back_populates="items")


# ==================== Naver SmartStore ====================

class NaverOrder(Base):
    """One SmartStore product order (the feed is already item-grained)."""
    __tablename__ = "naver_orders"
    __table_args__ = (
        UniqueConstraint("product_order_id", name="uq_naver_product_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    product_order_id: Mapped[str] = mapped_column(String(50), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    account_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    order_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    status: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        index=True,
        comment="PAYED, DELIVERING, DELIVERED, PURCHASE_DECIDED, CANCELED, RETURNED, ..."
    )

    product_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    product_option: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    channel_product_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    external_option_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="optionCode of the SmartStore listing"
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_payment_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    raw_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


# ==================== Coupang revenue ====================

class CoupangRevenue(Base):
    """Recognised revenue line from the revenue-history API."""
    __tablename__ = "coupang_revenues"
    __table_args__ = (
        UniqueConstraint("order_id", "vendor_id", "vendor_item_id", name="uq_coupang_revenue_line"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    order_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    vendor_id: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_item_id: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_item_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sale_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    discount_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    settlement_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    recognized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    ordered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    shipment_type: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        comment="ROCKET_GROWTH, THIRD_PARTY"
    )
    seller_product_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    seller_product_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    raw_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
