import pytest

from sellerops.services.mapping_service import MappingService


@pytest.mark.asyncio
async def test_list_returns_active_mappings_only(db, make_product, make_mapping):
    product = await make_product("A-001", "Desk Organizer")
    await make_mapping(product, external_option_id="1")
    inactive = await make_mapping(product, external_option_id="2")
    await make_mapping(product, marketplace="naver", external_option_id="3")

    service = MappingService(db)
    await service.deactivate(inactive)

    coupang = await service.list(marketplace="coupang")
    assert [m.external_option_id for m in coupang] == ["1"]
    assert len(await service.list(product_id=product.id)) == 2


@pytest.mark.asyncio
async def test_find_duplicate_treats_missing_ids_as_equal(db, make_product, make_mapping):
    product = await make_product("A-001", "Desk Organizer")
    await make_mapping(product, external_option_id="1")
    service = MappingService(db)

    assert await service.find_duplicate("coupang", None, "1") is not None
    assert await service.find_duplicate("coupang", "P-1", "1") is None
    assert await service.find_duplicate("naver", None, "1") is None


@pytest.mark.asyncio
async def test_find_by_external_product_id(db, make_product, make_mapping):
    product = await make_product("A-001", "Desk Organizer")
    mapping = await make_mapping(product, external_product_id="SP-1", external_option_id="1")

    result = await MappingService(db).find("coupang", external_product_id="SP-1")

    assert result["match_type"] == "exact_id"
    assert result["product"]["sku"] == "A-001"
    assert result["mapping"]["id"] == str(mapping.id)


@pytest.mark.asyncio
async def test_find_falls_back_through_resolver_then_partial_name(db, make_product, make_mapping):
    shelf = await make_product("S-001", "Shelf")
    await make_mapping(shelf, external_product_name="컴팩트우디 원목 선반 3단 화이트 대형", external_option_id="10")
    stand = await make_product("903900961XX", "Monitor Stand")
    service = MappingService(db)

    by_name = await service.find("coupang", product_name="컴팩트우디 원목 선반 3단 화이트 대형")
    assert by_name["match_type"] == "exact_name"
    assert by_name["product"]["id"] == str(shelf.id)

    by_prefix = await service.find("coupang", external_option_id="90390096181")
    assert by_prefix["match_type"] == "resolved"
    assert by_prefix["strategy"] == "sku_prefix"
    assert by_prefix["product"]["id"] == str(stand.id)

    partial = await service.find("coupang", product_name="컴팩트우디 원목 선반 3단 화이트 대형 (리뉴얼)")
    assert partial["match_type"] == "partial_name"
    assert [c["external_option_id"] for c in partial["candidates"]] == ["10"]

    nothing = await service.find("coupang", product_name="전혀 다른 상품")
    assert nothing["match_type"] == "none"
    assert nothing["product"] is None
