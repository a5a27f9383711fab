import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from sellerops.services.product_resolver import (
    MappingIndex,
    MatchStrategy,
    ProductResolver,
    ResolutionQuery,
    resolve,
)


def _product(sku, name):
    return SimpleNamespace(id=uuid.uuid4(), sku=sku, name=name)


def _mapping(product, option_id=None, name=None, option_name=None):
    return SimpleNamespace(
        product_id=product.id,
        external_option_id=option_id,
        external_product_name=name,
        external_option_name=option_name,
    )


def test_option_id_mapping_beats_sku_prefix_of_another_product():
    a = _product("A-001", "Desk Organizer")
    b = _product("903900961XX", "Monitor Stand")
    index = MappingIndex.build("coupang", [_mapping(a, option_id="90390096181")], [a, b])

    resolution = resolve(ResolutionQuery.build("coupang", option_id="90390096181"), index)

    assert resolution.product_id == a.id
    assert resolution.strategy == MatchStrategy.OPTION_ID


def test_sku_prefix_matches_only_when_unique():
    b = _product("903900961XX", "Monitor Stand")
    index = MappingIndex.build("coupang", [], [b])
    assert resolve(ResolutionQuery.build("coupang", option_id="90390096181"), index).strategy == MatchStrategy.SKU_PREFIX

    c = _product("903900961YY", "Monitor Stand XL")
    ambiguous = MappingIndex.build("coupang", [], [b, c])
    assert not resolve(ResolutionQuery.build("coupang", option_id="90390096181"), ambiguous).matched


def test_name_strategies_in_priority_order():
    by_pair = _product("P-1", "Shelf")
    by_name = _product("P-2", "Shelf Large")
    index = MappingIndex.build(
        "naver",
        [
            _mapping(by_pair, name="원목 선반", option_name="화이트"),
            _mapping(by_name, name="원목 선반"),
        ],
        [by_pair, by_name],
    )

    paired = resolve(ResolutionQuery.build("naver", product_name="원목 선반", option_name="화이트"), index)
    assert paired.product_id == by_pair.id
    assert paired.strategy == MatchStrategy.NAME_AND_OPTION

    catalog = resolve(ResolutionQuery.build("naver", product_name="Shelf Large"), index)
    assert catalog.product_id == by_name.id
    assert catalog.strategy == MatchStrategy.NAME


def test_external_sku_code_matches_product_sku():
    p = _product("CW-SHELF-01", "Shelf")
    index = MappingIndex.build("coupang", [], [p])

    resolution = resolve(ResolutionQuery.build("coupang", option_id="1234", sku="CW-SHELF-01"), index)

    assert resolution.product_id == p.id
    assert resolution.strategy == MatchStrategy.SKU


def test_unmatched_reason_lists_every_strategy():
    resolution = resolve(ResolutionQuery.build("coupang", option_id="1"), MappingIndex.build("coupang", [], []))

    assert resolution.product_id is None
    for strategy in MatchStrategy:
        assert strategy.value in resolution.reason


def test_conflicting_option_mappings_keep_oldest_and_are_reported():
    first, second = _product("X-1", "First"), _product("X-2", "Second")
    index = MappingIndex.build(
        "coupang",
        [_mapping(first, option_id="777"), _mapping(second, option_id="777")],
        [first, second],
    )

    assert resolve(ResolutionQuery.build("coupang", option_id="777"), index).product_id == first.id
    assert index.conflicts == {"777": {first.id, second.id}}


@pytest.mark.asyncio
async def test_resolver_reads_only_active_mappings_oldest_first(db, make_product, make_mapping):
    old = await make_product("OLD-1", "Old")
    new = await make_product("NEW-1", "New")
    now = datetime.now(timezone.utc)
    await make_mapping(new, external_option_id="555", created_at=now)
    await make_mapping(old, external_option_id="555", created_at=now - timedelta(days=1))
    await make_mapping(new, external_option_id="666", is_active=False)

    resolver = ProductResolver(db)

    assert (await resolver.resolve(ResolutionQuery.build("coupang", option_id="555"))).product_id == old.id
    assert not (await resolver.resolve(ResolutionQuery.build("coupang", option_id="666"))).matched
