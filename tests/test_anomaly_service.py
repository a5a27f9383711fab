import pytest
from sqlalchemy import func, select

from sellerops.models.marketplace_order import CoupangOrder, CoupangOrderItem
from sellerops.services.anomaly_service import AnomalyService, is_suspected_rocket_order


def test_suspected_rocket_order_heuristics():
    assert is_suspected_rocket_order({"orderId": 100, "shipmentBoxId": "100"})
    assert is_suspected_rocket_order({"orderId": 1, "shipmentBoxId": 2, "receiver": {"name": "쿠팡 로켓그로스"}})
    assert not is_suspected_rocket_order({"orderId": 1, "shipmentBoxId": 2, "orderer": {"name": "홍*동"}})
    assert not is_suspected_rocket_order({"orderId": 1})


async def _order(db, order_id, box_id, **kwargs):
    order = CoupangOrder(order_id=order_id, shipment_box_id=box_id, **kwargs)
    db.add(order)
    await db.flush()
    return order


@pytest.mark.asyncio
async def test_report_collects_every_anomaly(db, make_product, make_mapping):
    await _order(db, "100", "100", receiver_name="홍*동")
    await _order(db, "200", "201", orderer_name="로켓 주문자")
    normal = await _order(db, "300", "301", orderer_name="홍*동")
    db.add_all([
        CoupangOrderItem(coupang_order_id=normal.id, vendor_item_id="111", shipping_count=1),
        CoupangOrderItem(coupang_order_id=normal.id, vendor_item_id="111", shipping_count=1),
    ])
    first = await make_product("A-001", "Desk Organizer")
    second = await make_product("A-002", "Desk Organizer Large")
    await make_mapping(first, external_product_id="P1", external_option_id="555")
    await make_mapping(second, external_product_id="P2", external_option_id="555")
    await db.flush()

    report = await AnomalyService(db).report()

    misclassified = {row["order_id"]: row["reason"] for row in report["suspected_misclassified"]}
    assert misclassified == {
        "100": "shipment_box_id equals order_id",
        "200": "name contains rocket marker",
    }
    assert report["duplicate_items"] == [
        {"channel": "coupang_seller", "order_id": str(normal.id), "vendor_item_id": "111", "count": 2}
    ]
    assert {row["order_id"] for row in report["orders_without_items"]} == {"100", "200"}
    assert report["conflicting_mappings"] == [
        {"marketplace": "coupang", "external_option_id": "555", "product_count": 2}
    ]
    assert report["counts"]["duplicate_items"] == 1


@pytest.mark.asyncio
async def test_cleanup_keeps_one_row_per_item(db):
    order = await _order(db, "300", "301")
    db.add_all([
        CoupangOrderItem(coupang_order_id=order.id, vendor_item_id="111", shipping_count=1),
        CoupangOrderItem(coupang_order_id=order.id, vendor_item_id="111", shipping_count=1),
        CoupangOrderItem(coupang_order_id=order.id, vendor_item_id="111", shipping_count=1),
        CoupangOrderItem(coupang_order_id=order.id, vendor_item_id="222", shipping_count=1),
    ])
    await db.flush()

    deleted = await AnomalyService(db).cleanup_duplicate_items()

    assert deleted == {"coupang_seller": 2, "coupang_rocket": 0}
    remaining = await db.execute(select(func.count(CoupangOrderItem.id)))
    assert remaining.scalar_one() == 2
    assert await AnomalyService(db).duplicate_items() == []
