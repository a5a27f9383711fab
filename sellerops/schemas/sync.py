"""Sync request/response schemas."""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from sellerops.schemas.base import BaseCreateSchema, BaseResponseSchema
from sellerops.services.window_partitioner import parse_date


class SyncRangeRequest(BaseCreateSchema):
    """Inclusive KST date range; accepts YYYY-MM-DD or YYYYMMDD."""
    from_date: date = Field(..., alias="from")
    to_date: date = Field(..., alias="to")

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def parse_compact_date(cls, v):
        if isinstance(v, str):
            return parse_date(v)
        return v

    @model_validator(mode="after")
    def check_order(self):
        if self.from_date > self.to_date:
            raise ValueError("from must not be after to")
        return self


class OptionalSyncRangeRequest(BaseCreateSchema):
    """Range with defaults filled in by the service."""
    from_date: Optional[date] = Field(None, alias="from")
    to_date: Optional[date] = Field(None, alias="to")

    @field_validator("from_date", "to_date", mode="before")
    @classmethod
    def parse_compact_date(cls, v):
        if isinstance(v, str) and v:
            return parse_date(v)
        return v or None


class SyncRunResponse(BaseResponseSchema):
    """Counts of one sync run; skipped cells can be resumed from next_cell."""
    success: bool
    sync_type: str
    period: Dict[str, Any]
    synced: int
    inserted: int
    updated: int
    skipped: int
    deferred: int
    fetched: int
    cells_completed: int
    cells_total: int
    skipped_cells: List[Dict[str, Any]] = []
    next_cell: Optional[Dict[str, Any]] = None
    budget_exhausted: bool
    elapsed_seconds: float
    errors: List[str] = []


class SyncLogResponse(BaseResponseSchema):
    id: UUID
    channel: str
    sync_type: str
    status: str
    records_count: int
    error_message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: datetime
