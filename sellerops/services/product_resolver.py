"""
Product Resolution Engine.

Maps a raw marketplace line item to an internal product through an ordered
chain of strategies. Curated mappings are consulted before catalog heuristics,
so a fuzzy SKU-prefix hit can never override an explicit mapping.

    1. OPTION_ID        (marketplace, external_option_id) -> active mapping
    2. NAME_AND_OPTION  (marketplace, product name, option name) -> active mapping
    3. NAME             (marketplace, product name) -> active mapping, then catalog name
    4. SKU              option id or external SKU code == product.sku
    5. SKU_PREFIX       first N characters equal (N = RESOLVER_SKU_PREFIX_LENGTH)

Each strategy is a pure function of (query, index). Index building is the only
step that touches the database.
"""
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.config import settings
from sellerops.models.product import Marketplace, Product, ProductMapping

logger = logging.getLogger(__name__)


class MatchStrategy(str, Enum):
    OPTION_ID = "option_id"
    NAME_AND_OPTION = "name_and_option"
    NAME = "name"
    SKU = "sku"
    SKU_PREFIX = "sku_prefix"


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ResolutionQuery:
    """What we know about a raw line item."""
    marketplace: str
    external_option_id: Optional[str] = None
    external_product_name: Optional[str] = None
    external_option_name: Optional[str] = None
    external_sku: Optional[str] = None

    @classmethod
    def build(cls, marketplace: str, option_id=None, product_name=None, option_name=None, sku=None) -> "ResolutionQuery":
        return cls(
            marketplace=marketplace,
            external_option_id=_clean(option_id),
            external_product_name=_clean(product_name),
            external_option_name=_clean(option_name),
            external_sku=_clean(sku),
        )


@dataclass(frozen=True)
class Resolution:
    product_id: Optional[uuid.UUID]
    strategy: Optional[MatchStrategy]
    reason: str

    @property
    def matched(self) -> bool:
        return self.product_id is not None


@dataclass
class MappingIndex:
    """Lookup tables for one marketplace, built from active mappings and products."""
    marketplace: str
    prefix_length: int = 9
    by_option_id: Dict[str, uuid.UUID] = field(default_factory=dict)
    by_name_option: Dict[Tuple[str, str], uuid.UUID] = field(default_factory=dict)
    by_name: Dict[str, uuid.UUID] = field(default_factory=dict)
    by_product_name: Dict[str, uuid.UUID] = field(default_factory=dict)
    by_sku: Dict[str, uuid.UUID] = field(default_factory=dict)
    by_sku_prefix: Dict[str, Set[uuid.UUID]] = field(default_factory=dict)
    conflicts: Dict[str, Set[uuid.UUID]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        marketplace: str,
        mappings: Iterable[Any],
        products: Iterable[Any],
        prefix_length: Optional[int] = None,
    ) -> "MappingIndex":
        """
        Mappings should arrive oldest first: on conflicting rules the oldest
        one wins and the conflict is recorded.
        """
        index = cls(marketplace=marketplace, prefix_length=prefix_length or settings.RESOLVER_SKU_PREFIX_LENGTH)

        for mapping in mappings:
            product_id = mapping.product_id
            option_id = _clean(mapping.external_option_id)
            name = _clean(mapping.external_product_name)
            option_name = _clean(mapping.external_option_name)

            if option_id:
                existing = index.by_option_id.setdefault(option_id, product_id)
                if existing != product_id:
                    index.conflicts.setdefault(option_id, {existing}).add(product_id)
            if name and option_name:
                index.by_name_option.setdefault((name, option_name), product_id)
            if name:
                index.by_name.setdefault(name, product_id)

        for product in products:
            sku = _clean(product.sku)
            name = _clean(product.name)
            if name:
                index.by_product_name.setdefault(name, product.id)
            if sku:
                index.by_sku.setdefault(sku, product.id)
                if len(sku) >= index.prefix_length:
                    index.by_sku_prefix.setdefault(sku[:index.prefix_length], set()).add(product.id)

        if index.conflicts:
            logger.warning(
                f"{marketplace}: {len(index.conflicts)} option ids map to more than one product; "
                f"oldest mapping wins"
            )
        return index


# ==================== Strategies ====================

def match_option_id(query: ResolutionQuery, index: MappingIndex) -> Optional[uuid.UUID]:
    if not query.external_option_id:
        return None
    return index.by_option_id.get(query.external_option_id)


def match_name_and_option(query: ResolutionQuery, index: MappingIndex) -> Optional[uuid.UUID]:
    if not query.external_product_name or not query.external_option_name:
        return None
    return index.by_name_option.get((query.external_product_name, query.external_option_name))


def match_name(query: ResolutionQuery, index: MappingIndex) -> Optional[uuid.UUID]:
    name = query.external_product_name
    if not name:
        return None
    return index.by_name.get(name) or index.by_product_name.get(name)


def match_sku(query: ResolutionQuery, index: MappingIndex) -> Optional[uuid.UUID]:
    for candidate in (query.external_option_id, query.external_sku):
        if candidate and candidate in index.by_sku:
            return index.by_sku[candidate]
    return None


def match_sku_prefix(query: ResolutionQuery, index: MappingIndex) -> Optional[uuid.UUID]:
    """Unique product whose SKU shares the first N characters; ambiguous prefixes do not match."""
    n = index.prefix_length
    for candidate in (query.external_option_id, query.external_sku):
        if not candidate or len(candidate) < n:
            continue
        products = index.by_sku_prefix.get(candidate[:n])
        if products and len(products) == 1:
            return next(iter(products))
    return None


STRATEGY_CHAIN: List[Tuple[MatchStrategy, Callable[[ResolutionQuery, MappingIndex], Optional[uuid.UUID]]]] = [
    (MatchStrategy.OPTION_ID, match_option_id),
    (MatchStrategy.NAME_AND_OPTION, match_name_and_option),
    (MatchStrategy.NAME, match_name),
    (MatchStrategy.SKU, match_sku),
    (MatchStrategy.SKU_PREFIX, match_sku_prefix),
]


def resolve(query: ResolutionQuery, index: MappingIndex) -> Resolution:
    """First strategy that returns a product wins."""
    for strategy, matcher in STRATEGY_CHAIN:
        product_id = matcher(query, index)
        if product_id is not None:
            return Resolution(product_id=product_id, strategy=strategy, reason=f"matched by {strategy.value}")

    tried = ", ".join(strategy.value for strategy, _ in STRATEGY_CHAIN)
    return Resolution(
        product_id=None,
        strategy=None,
        reason=(
            f"no match for option_id={query.external_option_id!r}, "
            f"name={query.external_product_name!r}, option={query.external_option_name!r} "
            f"(tried {tried})"
        ),
    )


# ==================== Row -> query ====================

def query_for_coupang_item(item: Any) -> ResolutionQuery:
    return ResolutionQuery.build(
        Marketplace.COUPANG.value,
        option_id=item.vendor_item_id,
        product_name=item.seller_product_name or item.vendor_item_name,
        option_name=item.seller_product_item_name,
        sku=item.external_vendor_sku_code,
    )


def query_for_rocket_item(item: Any) -> ResolutionQuery:
    return ResolutionQuery.build(
        Marketplace.COUPANG.value,
        option_id=item.vendor_item_id,
        product_name=item.product_name,
    )


def query_for_naver_order(order: Any) -> ResolutionQuery:
    return ResolutionQuery.build(
        Marketplace.NAVER.value,
        option_id=order.external_option_id,
        product_name=order.product_name,
        option_name=order.product_option,
    )


class ProductResolver:
    """
    Resolves queries against the database.

    Indexes are loaded once per marketplace per instance, so create one
    resolver per sync run to pick up mapping edits.
    """

    def __init__(self, db: AsyncSession, prefix_length: Optional[int] = None):
        self.db = db
        self.prefix_length = prefix_length or settings.RESOLVER_SKU_PREFIX_LENGTH
        self._indexes: Dict[str, MappingIndex] = {}

    async def get_index(self, marketplace: str) -> MappingIndex:
        if marketplace not in self._indexes:
            mappings = await self.db.execute(
                select(ProductMapping)
                .where(ProductMapping.marketplace == marketplace, ProductMapping.is_active.is_(True))
                .order_by(ProductMapping.created_at.asc(), ProductMapping.id.asc())
            )
            products = await self.db.execute(
                select(Product).where(Product.is_active.is_(True)).order_by(Product.created_at.asc())
            )
            self._indexes[marketplace] = MappingIndex.build(
                marketplace,
                mappings.scalars().all(),
                products.scalars().all(),
                self.prefix_length,
            )
        return self._indexes[marketplace]

    def invalidate(self) -> None:
        self._indexes.clear()

    async def resolve(self, query: ResolutionQuery) -> Resolution:
        index = await self.get_index(query.marketplace)
        return resolve(query, index)
