import uuid

import httpx
import pytest
import pytest_asyncio

from sellerops.api.deps import get_sync_service
from sellerops.database import get_db
from sellerops.main import app
from sellerops.models.product import Product
from sellerops.services.sync_service import MarketplaceSyncService


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_sync_service():
        async with session_factory() as session:
            yield MarketplaceSyncService(session, coupang_clients=[], naver_clients=[])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_service] = override_sync_service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def product(session_factory):
    async with session_factory() as session:
        product = Product(id=uuid.uuid4(), sku="A-001", name="Desk Organizer")
        session.add(product)
        await session.commit()
    return product


@pytest.mark.asyncio
async def test_mapping_lifecycle(client, product):
    payload = {"marketplace": "coupang", "product_id": str(product.id), "external_option_id": "111"}

    created = await client.post("/api/v1/mappings", json=payload)
    assert created.status_code == 201
    mapping = created.json()["mapping"]
    assert mapping["marketplace"] == "coupang"
    assert mapping["is_active"] is True

    duplicate = await client.post("/api/v1/mappings", json=payload)
    assert duplicate.status_code == 409

    found = await client.post("/api/v1/mappings/find", json={"marketplace": "coupang", "external_option_id": "111"})
    assert found.json()["match_type"] == "exact_id"
    assert found.json()["product"]["sku"] == "A-001"

    updated = await client.put("/api/v1/mappings", json={"id": mapping["id"], "external_option_name": "Black"})
    assert updated.json()["mapping"]["external_option_name"] == "Black"

    deleted = await client.delete("/api/v1/mappings", params={"id": mapping["id"]})
    assert deleted.status_code == 200

    listed = await client.get("/api/v1/mappings", params={"marketplace": "coupang"})
    assert listed.json()["count"] == 0


@pytest.mark.asyncio
async def test_moving_a_mapping_onto_a_taken_listing_is_409(client, product):
    first = await client.post(
        "/api/v1/mappings",
        json={"marketplace": "coupang", "product_id": str(product.id), "external_option_id": "111"},
    )
    second = await client.post(
        "/api/v1/mappings",
        json={"marketplace": "coupang", "product_id": str(product.id), "external_option_id": "222"},
    )
    assert (first.status_code, second.status_code) == (201, 201)

    moved = await client.put(
        "/api/v1/mappings",
        json={"id": second.json()["mapping"]["id"], "external_option_id": "111"},
    )
    assert moved.status_code == 409

    renamed = await client.put(
        "/api/v1/mappings",
        json={"id": second.json()["mapping"]["id"], "external_option_id": "222", "external_option_name": "Oak"},
    )
    assert renamed.status_code == 200
    assert renamed.json()["mapping"]["external_option_name"] == "Oak"


@pytest.mark.asyncio
async def test_mapping_for_unknown_product_is_404(client):
    response = await client.post(
        "/api/v1/mappings",
        json={"marketplace": "naver", "product_id": str(uuid.uuid4()), "external_option_id": "N1"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_sales_summary_validates_range(client):
    empty = await client.get("/api/v1/sales/summary", params={"from": "2026-01-30", "to": "2026-01-30"})
    assert empty.status_code == 200
    assert empty.json()["total_quantity"] == 0

    inverted = await client.get("/api/v1/sales/summary", params={"from": "2026-01-31", "to": "2026-01-30"})
    assert inverted.status_code == 400


@pytest.mark.asyncio
async def test_seller_chunk_rejects_unknown_status(client):
    response = await client.get("/api/v1/coupang/sync-chunk", params={"date": "2026-01-30", "status": "SHIPPED"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_marketplace_errors_render_as_bad_gateway(client):
    response = await client.post("/api/v1/coupang/rocket/sync", json={"from": "2026-01-29", "to": "2026-01-30"})

    assert response.status_code == 502
    body = response.json()
    assert body["success"] is False
    assert body["marketplace"] == "coupang"
