"""Internal product catalog and marketplace mapping rules."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sellerops.database import Base
from sellerops.db_types import UUIDType


class Marketplace(str, Enum):
    """Marketplaces a mapping can be scoped to."""
    COUPANG = "coupang"
    NAVER = "naver"


class Product(Base):
    """
    Internal catalog entity.

    `sku` doubles as the primary Coupang option identifier, so SKU strategies
    of the resolver compare marketplace option ids against it directly.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Packing metadata
    cbm: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 4),
        nullable=True,
        comment="Cubic metres per box"
    )
    units_per_pallet: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    mappings: Mapped[List["ProductMapping"]] = relationship(
        "ProductMapping",
        back_populates="product",
    )

    def __repr__(self) -> str:
        return f"<Product(sku='{self.sku}', name='{self.name}')>"


class ProductMapping(Base):
    """
    Resolution rule from a marketplace listing to an internal product.

    Many mappings may point at one product (variants, spellings). Only active
    rows take part in resolution; deletes are soft.
    """
    __tablename__ = "product_mappings"
    __table_args__ = (
        UniqueConstraint(
            "marketplace", "external_product_id", "external_option_id",
            name="uq_product_mapping_external",
        ),
        Index("ix_product_mappings_option", "marketplace", "external_option_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    marketplace: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="coupang, naver"
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    external_product_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    external_product_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    external_option_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    external_option_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    product: Mapped["Product"] = relationship("Product", back_populates="mappings")

    def __repr__(self) -> str:
        return (
            f"<ProductMapping(marketplace='{self.marketplace}', "
            f"option='{self.external_option_id}', product_id={self.product_id})>"
        )
