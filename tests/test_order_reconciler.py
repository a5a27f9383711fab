import pytest
from sqlalchemy import func, select

from sellerops.models.marketplace_order import (
    CoupangOrder,
    CoupangOrderItem,
    CoupangRevenue,
    NaverOrder,
    RocketGrowthOrder,
)
from sellerops.services.order_reconciler import (
    OrderChannel,
    OrderReconciler,
    RecordContext,
    assign_products,
)
from sellerops.services.product_resolver import ProductResolver

CONTEXT = RecordContext(account_name="main", vendor_id="A00012345")


def _ordersheet(box_id, status="ACCEPT", vendor_item_id="90390096181", count=2):
    return {
        "orderId": f"O{box_id}",
        "shipmentBoxId": box_id,
        "orderedAt": "2026-01-30T10:00:00",
        "paidAt": "2026-01-30T10:01:00",
        "status": status,
        "orderer": {"name": "홍길동"},
        "receiver": {"name": "홍길동", "addr1": "서울", "addr2": "101호"},
        "orderItems": [
            {
                "vendorItemId": vendor_item_id,
                "vendorItemName": "원목 선반, 화이트",
                "shippingCount": count,
                "salesPrice": 12000,
                "orderPrice": {"units": 24000, "nanos": 0},
                "sellerProductName": "원목 선반",
                "sellerProductItemName": "화이트",
            }
        ],
    }


async def _count(db, model):
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_second_reconcile_of_same_batch_inserts_nothing(db):
    batch = [_ordersheet("B1"), _ordersheet("B2")]

    first = await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile(batch, CONTEXT)
    second = await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile(batch, CONTEXT)

    assert (first.inserted, first.skipped) == (2, 0)
    assert (second.inserted, second.updated, second.skipped) == (0, 0, 2)
    assert await _count(db, CoupangOrder) == 2
    assert await _count(db, CoupangOrderItem) == 2


@pytest.mark.asyncio
async def test_duplicate_keys_in_one_batch_persist_one_row_last_wins(db):
    batch = [_ordersheet("B1", status="ACCEPT"), _ordersheet("B1", status="INSTRUCT")]

    result = await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile(batch, CONTEXT)

    assert result.inserted == 1
    assert result.duplicates == 1
    order = (await db.execute(select(CoupangOrder))).scalar_one()
    assert order.status == "INSTRUCT"
    assert order.receiver_address == "서울 101호"


@pytest.mark.asyncio
async def test_status_change_counts_as_update(db):
    await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile([_ordersheet("B1")], CONTEXT)

    result = await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile(
        [_ordersheet("B1", status="FINAL_DELIVERY")], CONTEXT
    )

    assert (result.inserted, result.updated) == (0, 1)
    order = (await db.execute(select(CoupangOrder))).scalar_one()
    assert order.status == "FINAL_DELIVERY"
    assert order.raw_data["status"] == "FINAL_DELIVERY"


@pytest.mark.asyncio
async def test_records_without_natural_key_are_reported_not_raised(db):
    broken = _ordersheet("B1")
    broken.pop("shipmentBoxId")

    result = await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile([broken, _ordersheet("B2")], CONTEXT)

    assert result.inserted == 1
    assert len(result.errors) == 1


@pytest.mark.asyncio
async def test_new_items_are_resolved_through_mappings(db, make_product, make_mapping):
    product = await make_product("A-001", "Desk Organizer")
    await make_mapping(product, external_option_id="90390096181")

    await OrderReconciler(db, OrderChannel.COUPANG_SELLER, ProductResolver(db)).reconcile([_ordersheet("B1")], CONTEXT)

    item = (await db.execute(select(CoupangOrderItem))).scalar_one()
    assert item.product_id == product.id
    assert item.shipping_count == 2


@pytest.mark.asyncio
async def test_rocket_orders_are_keyed_by_vendor_and_order(db):
    raw = {
        "orderId": 1001,
        "paidAt": "2026-01-30T23:50:00+09:00",
        "orderItems": [{"vendorItemId": 111, "productName": "선반", "salesQuantity": 3, "salesPrice": 9900}],
    }
    other_vendor = RecordContext(account_name="second", vendor_id="A00099999")

    await OrderReconciler(db, OrderChannel.COUPANG_ROCKET).reconcile([raw], CONTEXT)
    await OrderReconciler(db, OrderChannel.COUPANG_ROCKET).reconcile([raw], other_vendor)
    again = await OrderReconciler(db, OrderChannel.COUPANG_ROCKET).reconcile([raw], CONTEXT)

    assert again.skipped == 1
    assert await _count(db, RocketGrowthOrder) == 2


@pytest.mark.asyncio
async def test_naver_orders_resolve_on_insert_and_track_status(db, make_product, make_mapping):
    product = await make_product("N-1", "Shelf")
    await make_mapping(product, marketplace="naver", external_option_id="OPT-1")
    raw = {
        "productOrderId": "PO-1",
        "content": {
            "order": {"orderId": "ORD-1", "paymentDate": "2026-01-30T12:00:00.000+09:00"},
            "productOrder": {
                "productOrderStatus": "PAYED",
                "productName": "원목 선반",
                "optionCode": "OPT-1",
                "quantity": 2,
                "totalPaymentAmount": 30000,
            },
        },
    }

    await OrderReconciler(db, OrderChannel.NAVER, ProductResolver(db)).reconcile([raw], RecordContext("store"))
    raw["content"]["productOrder"]["productOrderStatus"] = "DELIVERED"
    result = await OrderReconciler(db, OrderChannel.NAVER, ProductResolver(db)).reconcile([raw], RecordContext("store"))

    order = (await db.execute(select(NaverOrder))).scalar_one()
    assert result.updated == 1
    assert order.status == "DELIVERED"
    assert order.product_id == product.id
    assert order.quantity == 2


@pytest.mark.asyncio
async def test_revenue_lines_update_settlement(db):
    raw = {
        "orderId": "R1",
        "vendorItemId": "V1",
        "quantity": 1,
        "settlementPrice": 10000,
        "recognizedAt": "2026-01-30",
    }

    await OrderReconciler(db, OrderChannel.COUPANG_REVENUE).reconcile([raw], CONTEXT)
    unchanged = await OrderReconciler(db, OrderChannel.COUPANG_REVENUE).reconcile([raw], CONTEXT)
    changed = await OrderReconciler(db, OrderChannel.COUPANG_REVENUE).reconcile([dict(raw, settlementPrice=9000)], CONTEXT)

    assert unchanged.skipped == 1
    assert changed.updated == 1
    assert await _count(db, CoupangRevenue) == 1


@pytest.mark.asyncio
async def test_assign_products_fills_rows_left_unmatched(db, make_product, make_mapping):
    await OrderReconciler(db, OrderChannel.COUPANG_SELLER, ProductResolver(db)).reconcile([_ordersheet("B1")], CONTEXT)
    product = await make_product("A-001", "Desk Organizer")
    await make_mapping(product, external_option_id="90390096181")

    result = await assign_products(db, OrderChannel.COUPANG_SELLER, ProductResolver(db))

    assert result == {"channel": "coupang_seller", "checked": 1, "resolved": 1, "unmatched": 0}
    item = (await db.execute(select(CoupangOrderItem))).scalar_one()
    assert item.product_id == product.id


@pytest.mark.asyncio
async def test_composite_key_lookup_reads_only_the_requested_rows(db, monkeypatch):
    db.add_all(RocketGrowthOrder(vendor_id="A00012345", order_id=str(n)) for n in range(300))
    await db.flush()

    fetched = []
    execute = db.execute

    async def counting_execute(statement, *args, **kwargs):
        result = await execute(statement, *args, **kwargs)
        frozen = result.freeze()
        fetched.append(len(frozen().all()))
        return frozen()

    monkeypatch.setattr(db, "execute", counting_execute)
    found = await OrderReconciler(db, OrderChannel.COUPANG_ROCKET).load_existing([("A00012345", "1")])

    assert fetched == [1]
    assert list(found) == [("A00012345", "1")]


@pytest.mark.asyncio
async def test_item_failure_keeps_the_order_and_reports_the_items(db):
    result = await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile(
        [_ordersheet("B1", count="many")], CONTEXT
    )

    assert result.inserted == 1
    assert len(result.errors) == 1
    assert result.errors[0].message.startswith("items:")
    assert await _count(db, CoupangOrder) == 1
    assert await _count(db, CoupangOrderItem) == 0


@pytest.mark.asyncio
async def test_row_inserted_by_another_run_is_counted_as_skipped(db, monkeypatch):
    await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile([_ordersheet("B1")], CONTEXT)

    reconciler = OrderReconciler(db, OrderChannel.COUPANG_SELLER)

    async def stale_lookup(keys):
        return {}

    monkeypatch.setattr(reconciler, "load_existing", stale_lookup)
    result = await reconciler.reconcile([_ordersheet("B1"), _ordersheet("B2")], CONTEXT)

    assert (result.inserted, result.skipped) == (1, 1)
    assert result.errors == []
    assert await _count(db, CoupangOrder) == 2


class _Budget:
    def __init__(self, checks):
        self.checks = checks

    @property
    def exhausted(self):
        self.checks -= 1
        return self.checks < 0


@pytest.mark.asyncio
async def test_budget_exhaustion_defers_the_rest_of_the_batch(db):
    batch = [_ordersheet("B1"), _ordersheet("B2"), _ordersheet("B3")]

    result = await OrderReconciler(db, OrderChannel.COUPANG_SELLER).reconcile(batch, CONTEXT, budget=_Budget(1))

    assert (result.inserted, result.deferred) == (1, 2)
    assert await _count(db, CoupangOrder) == 1
