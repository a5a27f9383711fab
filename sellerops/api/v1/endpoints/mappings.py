"""Product mapping management and lookup."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from sellerops.api.deps import DB
from sellerops.models.product import Marketplace, Product
from sellerops.schemas.mapping import (
    MappingCreate,
    MappingFindRequest,
    MappingListResponse,
    MappingResponse,
    MappingUpdate,
)
from sellerops.services.mapping_service import MappingService
from sellerops.services.order_reconciler import OrderChannel, assign_products
from sellerops.services.product_resolver import ProductResolver

router = APIRouter()


# ==================== CRUD ====================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_mapping(data: MappingCreate, db: DB):
    service = MappingService(db)

    if await db.get(Product, data.product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")

    duplicate = await service.find_duplicate(
        data.marketplace.value, data.external_product_id, data.external_option_id
    )
    if duplicate:
        raise HTTPException(
            status_code=409,
            detail="A mapping for this marketplace listing already exists. Use PUT to update."
        )

    mapping = await service.create(data.model_dump() | {"marketplace": data.marketplace.value})
    return {"success": True, "mapping": MappingResponse.model_validate(mapping)}


@router.get("", response_model=MappingListResponse)
async def list_mappings(
    db: DB,
    marketplace: Optional[Marketplace] = None,
    product_id: Optional[UUID] = None,
):
    """Active mappings, newest first."""
    mappings = await MappingService(db).list(marketplace.value if marketplace else None, product_id)
    return {
        "success": True,
        "mappings": [MappingResponse.model_validate(m) for m in mappings],
        "count": len(mappings),
    }


@router.put("")
async def update_mapping(data: MappingUpdate, db: DB):
    service = MappingService(db)
    mapping = await service.get(data.id)
    if not mapping:
        raise HTTPException(status_code=404, detail="Mapping not found")

    updates = data.model_dump(exclude_unset=True, exclude={"id"})

    listing = (
        updates.get("external_product_id", mapping.external_product_id),
        updates.get("external_option_id", mapping.external_option_id),
    )
    if listing != (mapping.external_product_id, mapping.external_option_id):
        duplicate = await service.find_duplicate(mapping.marketplace, *listing)
        if duplicate and duplicate.id != mapping.id:
            raise HTTPException(
                status_code=409,
                detail="Another mapping already covers this marketplace listing."
            )

    mapping = await service.update(mapping, updates)
    return {"success": True, "mapping": MappingResponse.model_validate(mapping)}


@router.delete("")
async def delete_mapping(db: DB, id: UUID = Query(...)):
    """Soft delete: the mapping stops taking part in resolution."""
    service = MappingService(db)
    mapping = await service.get(id)
    if not mapping:
        raise HTTPException(status_code=404, detail="Mapping not found")

    await service.deactivate(mapping)
    return {"success": True, "message": "Mapping deactivated"}


# ==================== Lookup ====================

@router.post("/find")
async def find_mapping(request: MappingFindRequest, db: DB):
    """
    Find the catalog product for a raw marketplace listing.

    match_type is one of exact_id, exact_name, resolved, partial_name, none.
    """
    result = await MappingService(db).find(
        request.marketplace.value,
        external_product_id=request.external_product_id,
        external_option_id=request.external_option_id,
        product_name=request.product_name,
        option_name=request.option_name,
    )
    return {"success": True, **result}


@router.post("/apply")
async def apply_mappings(db: DB, channel: OrderChannel = Query(...)):
    """Fill product_id on stored rows that are still unmatched."""
    try:
        result = await assign_products(db, channel, ProductResolver(db))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, **result}
