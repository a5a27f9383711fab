"""ProductMapping CRUD and ad-hoc lookup."""
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.models.product import Product, ProductMapping
from sellerops.services.product_resolver import MatchStrategy, ProductResolver, ResolutionQuery

logger = logging.getLogger(__name__)

PARTIAL_NAME_LENGTH = 20

MATCH_TYPES = {
    MatchStrategy.OPTION_ID: "exact_id",
    MatchStrategy.NAME_AND_OPTION: "exact_name",
    MatchStrategy.NAME: "exact_name",
    MatchStrategy.SKU: "resolved",
    MatchStrategy.SKU_PREFIX: "resolved",
}

UPDATABLE_FIELDS = (
    "product_id",
    "external_product_id",
    "external_product_name",
    "external_option_id",
    "external_option_name",
    "is_active",
)


def _product_dict(product: Optional[Product]) -> Optional[Dict[str, Any]]:
    if product is None:
        return None
    return {"id": str(product.id), "sku": product.sku, "name": product.name}


def _mapping_dict(mapping: Optional[ProductMapping]) -> Optional[Dict[str, Any]]:
    if mapping is None:
        return None
    return {
        "id": str(mapping.id),
        "marketplace": mapping.marketplace,
        "product_id": str(mapping.product_id),
        "external_product_id": mapping.external_product_id,
        "external_product_name": mapping.external_product_name,
        "external_option_id": mapping.external_option_id,
        "external_option_name": mapping.external_option_name,
    }


class MappingService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, mapping_id: uuid.UUID) -> Optional[ProductMapping]:
        return await self.db.get(ProductMapping, mapping_id)

    async def find_duplicate(
        self,
        marketplace: str,
        external_product_id: Optional[str],
        external_option_id: Optional[str],
    ) -> Optional[ProductMapping]:
        """Mapping with the same (marketplace, external product, external option)."""
        conditions = [ProductMapping.marketplace == marketplace]
        for column, value in (
            (ProductMapping.external_product_id, external_product_id),
            (ProductMapping.external_option_id, external_option_id),
        ):
            conditions.append(column.is_(None) if value is None else column == value)
        result = await self.db.execute(select(ProductMapping).where(and_(*conditions)).limit(1))
        return result.scalar_one_or_none()

    async def create(self, data: Dict[str, Any]) -> ProductMapping:
        mapping = ProductMapping(**data)
        self.db.add(mapping)
        await self.db.flush()
        await self.db.refresh(mapping)
        logger.info(f"Created mapping {mapping.marketplace}:{mapping.external_option_id} -> {mapping.product_id}")
        return mapping

    async def list(
        self,
        marketplace: Optional[str] = None,
        product_id: Optional[uuid.UUID] = None,
    ) -> List[ProductMapping]:
        query = select(ProductMapping).where(ProductMapping.is_active.is_(True))
        if marketplace:
            query = query.where(ProductMapping.marketplace == marketplace)
        if product_id:
            query = query.where(ProductMapping.product_id == product_id)
        result = await self.db.execute(query.order_by(ProductMapping.created_at.desc()))
        return list(result.scalars().all())

    async def update(self, mapping: ProductMapping, updates: Dict[str, Any]) -> ProductMapping:
        for name, value in updates.items():
            if name in UPDATABLE_FIELDS:
                setattr(mapping, name, value)
        await self.db.flush()
        await self.db.refresh(mapping)
        return mapping

    async def deactivate(self, mapping: ProductMapping) -> ProductMapping:
        """Soft delete; resolution only reads active mappings."""
        mapping.is_active = False
        await self.db.flush()
        return mapping

    async def find(
        self,
        marketplace: str,
        external_product_id: Optional[str] = None,
        external_option_id: Optional[str] = None,
        product_name: Optional[str] = None,
        option_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Manual lookup.

        Order: exact external product id, then the resolver's strategy chain,
        then a partial match on the first 20 characters of the product name.
        """
        if external_product_id:
            result = await self.db.execute(
                select(ProductMapping)
                .where(
                    ProductMapping.marketplace == marketplace,
                    ProductMapping.external_product_id == external_product_id,
                    ProductMapping.is_active.is_(True),
                )
                .order_by(ProductMapping.created_at.asc())
                .limit(1)
            )
            mapping = result.scalar_one_or_none()
            if mapping is not None:
                product = await self.db.get(Product, mapping.product_id)
                return {
                    "match_type": "exact_id",
                    "strategy": "external_product_id",
                    "product": _product_dict(product),
                    "mapping": _mapping_dict(mapping),
                    "candidates": [],
                }

        resolution = await ProductResolver(self.db).resolve(
            ResolutionQuery.build(
                marketplace,
                option_id=external_option_id,
                product_name=product_name,
                option_name=option_name,
            )
        )
        if resolution.matched:
            product = await self.db.get(Product, resolution.product_id)
            return {
                "match_type": MATCH_TYPES[resolution.strategy],
                "strategy": resolution.strategy.value,
                "product": _product_dict(product),
                "mapping": None,
                "candidates": [],
            }

        candidates: List[ProductMapping] = []
        if product_name:
            fragment = product_name.strip()[:PARTIAL_NAME_LENGTH]
            result = await self.db.execute(
                select(ProductMapping)
                .where(
                    ProductMapping.marketplace == marketplace,
                    ProductMapping.is_active.is_(True),
                    ProductMapping.external_product_name.ilike(f"%{fragment}%"),
                )
                .order_by(ProductMapping.created_at.asc())
                .limit(10)
            )
            candidates = list(result.scalars().all())

        if candidates:
            product = await self.db.get(Product, candidates[0].product_id)
            return {
                "match_type": "partial_name",
                "strategy": None,
                "product": _product_dict(product),
                "mapping": _mapping_dict(candidates[0]),
                "candidates": [_mapping_dict(candidate) for candidate in candidates],
                "reason": resolution.reason,
            }

        return {
            "match_type": "none",
            "strategy": None,
            "product": None,
            "mapping": None,
            "candidates": [],
            "reason": resolution.reason,
        }
