"""Audit trail of marketplace sync runs."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from sellerops.database import Base
from sellerops.db_types import JSONType, UUIDType


class SyncStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ApiSyncLog(Base):
    """
    One row per sync run.

    error_message keeps only the first few errors; the full list lives in the
    run's API response and in the application log.
    """
    __tablename__ = "api_sync_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    channel: Mapped[str] = mapped_column(String(20), nullable=False, index=True, comment="coupang, naver")
    sync_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="seller_orders_chunk, seller_orders_cron, rocket_growth_orders, revenue, naver_orders, ..."
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    records_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<ApiSyncLog({self.channel}/{self.sync_type} {self.status} {self.records_count})>"
