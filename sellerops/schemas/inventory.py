"""Inventory schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import computed_field

from sellerops.schemas.base import BaseResponseSchema

CHANGE_TYPE_LABELS = {
    "in": "입고",
    "out": "출고",
    "adjust": "조정",
    "transfer": "이동",
}

SOURCE_LABELS = {
    "manual": "수동 조정",
    "excel": "엑셀 업로드",
    "coupang_sync": "쿠팡 동기화",
    "naver_sync": "네이버 동기화",
}


class InventoryLogResponse(BaseResponseSchema):
    id: UUID
    inventory_id: UUID
    change_type: str
    change_qty: int
    before_qty: int
    after_qty: int
    reason: Optional[str] = None
    source: str
    created_at: datetime

    @computed_field
    @property
    def change_type_label(self) -> str:
        return CHANGE_TYPE_LABELS.get(self.change_type, self.change_type)

    @computed_field
    @property
    def source_label(self) -> str:
        return SOURCE_LABELS.get(self.source, self.source)
