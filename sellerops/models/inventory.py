"""Per-location stock snapshots and their append-only change log."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sellerops.database import Base
from sellerops.db_types import UUIDType


class InventoryLocation(str, Enum):
    """Where a stock quantity is held."""
    WAREHOUSE = "warehouse"
    COUPANG = "coupang"
    NAVER = "naver"
    IN_TRANSIT = "in_transit"


class InventoryChangeType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUST = "adjust"
    TRANSFER = "transfer"


class InventorySource(str, Enum):
    """What caused an inventory mutation."""
    MANUAL = "manual"
    EXCEL = "excel"
    COUPANG_SYNC = "coupang_sync"
    NAVER_SYNC = "naver_sync"


class Inventory(Base):
    """
    Stock of one product at one location.

    Warehouse stock is often counted as pallets; when pallet fields are set the
    derived total is pallet_count * per_pallet_qty + extra_boxes_qty.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("product_id", "location", name="uq_inventory_product_location"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    location: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="warehouse, coupang, naver, in_transit"
    )

    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pallet_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    per_pallet_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    extra_boxes_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    logs: Mapped[List["InventoryLog"]] = relationship(
        "InventoryLog",
        back_populates="inventory",
        cascade="all, delete-orphan",
    )

    @property
    def total_quantity(self) -> int:
        if self.pallet_count is not None and self.per_pallet_qty is not None:
            return self.pallet_count * self.per_pallet_qty + (self.extra_boxes_qty or 0)
        return self.quantity


class InventoryLog(Base):
    """Append-only record of a single inventory mutation."""
    __tablename__ = "inventory_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    inventory_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("inventory.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    change_type: Mapped[str] = mapped_column(String(20), nullable=False)
    change_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    before_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    after_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(20), default=InventorySource.MANUAL.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    inventory: Mapped["Inventory"] = relationship("Inventory", back_populates="logs")
