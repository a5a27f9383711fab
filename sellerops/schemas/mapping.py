"""Product mapping schemas for API requests/responses."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from sellerops.models.product import Marketplace
from sellerops.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


class MappingCreate(BaseCreateSchema):
    """Resolution rule from a marketplace listing to a catalog product."""
    marketplace: Marketplace = Field(..., description="coupang or naver")
    product_id: UUID = Field(..., description="Catalog product the listing resolves to")
    external_product_id: Optional[str] = Field(None, max_length=100)
    external_product_name: Optional[str] = Field(None, max_length=500)
    external_option_id: Optional[str] = Field(None, max_length=100, description="vendorItemId / optionCode")
    external_option_name: Optional[str] = Field(None, max_length=500)


class MappingUpdate(BaseUpdateSchema):
    id: UUID
    product_id: Optional[UUID] = None
    external_product_id: Optional[str] = Field(None, max_length=100)
    external_product_name: Optional[str] = Field(None, max_length=500)
    external_option_id: Optional[str] = Field(None, max_length=100)
    external_option_name: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class MappingResponse(BaseResponseSchema):
    id: UUID
    marketplace: str
    product_id: UUID
    external_product_id: Optional[str] = None
    external_product_name: Optional[str] = None
    external_option_id: Optional[str] = None
    external_option_name: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class MappingListResponse(BaseResponseSchema):
    success: bool = True
    mappings: List[MappingResponse]
    count: int


class MappingFindRequest(BaseCreateSchema):
    """Ad-hoc lookup of a raw marketplace listing."""
    marketplace: Marketplace
    external_product_id: Optional[str] = None
    external_option_id: Optional[str] = None
    product_name: Optional[str] = None
    option_name: Optional[str] = None
