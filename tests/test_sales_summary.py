from datetime import date

import pytest

from sellerops.services.order_reconciler import OrderChannel, OrderReconciler, RecordContext
from sellerops.services.product_resolver import ProductResolver
from sellerops.services.sales_summary_service import SalesSummaryService, kst_day_bounds

CONTEXT = RecordContext(account_name="main", vendor_id="A00012345")


def _ordersheet(box_id, vendor_item_id, count, ordered_at="2026-01-30T10:00:00"):
    return {
        "orderId": f"O{box_id}",
        "shipmentBoxId": box_id,
        "orderedAt": ordered_at,
        "status": "FINAL_DELIVERY",
        "orderItems": [{
            "vendorItemId": vendor_item_id,
            "vendorItemName": "이름 없는 상품",
            "sellerProductName": "이름 없는 상품",
            "shippingCount": count,
        }],
    }


def _naver(product_order_id, option_code, quantity, status="PAYED"):
    return {
        "productOrderId": product_order_id,
        "content": {
            "order": {"orderId": f"O-{product_order_id}", "paymentDate": "2026-01-30T09:00:00.000+09:00"},
            "productOrder": {
                "productOrderStatus": status,
                "productName": "원목 선반",
                "optionCode": option_code,
                "quantity": quantity,
            },
        },
    }


def test_kst_day_bounds_are_expressed_in_utc():
    lower, upper = kst_day_bounds(date(2026, 1, 30), date(2026, 1, 30))

    assert lower.isoformat() == "2026-01-29T15:00:00+00:00"
    assert upper.isoformat() == "2026-01-30T15:00:00+00:00"


@pytest.mark.asyncio
async def test_unmatched_items_are_counted_in_totals(db, make_product, make_mapping):
    product = await make_product("A-001", "Desk Organizer")
    await make_mapping(product, external_option_id="111")
    await make_mapping(product, marketplace="naver", external_option_id="N-OPT")

    await OrderReconciler(db, OrderChannel.COUPANG_SELLER, ProductResolver(db)).reconcile(
        [
            _ordersheet("B1", "111", 2),
            _ordersheet("B2", "999", 5),
            _ordersheet("B3", "111", 7, ordered_at="2026-02-02T10:00:00"),
        ],
        CONTEXT,
    )
    await OrderReconciler(db, OrderChannel.NAVER, ProductResolver(db)).reconcile(
        [_naver("P1", "N-OPT", 3), _naver("P2", "N-OPT", 4, status="CANCELED")],
        RecordContext("store"),
    )

    summary = await SalesSummaryService(db).summarize(date(2026, 1, 30), date(2026, 1, 30))

    assert summary["matched_quantity"] == 5
    assert summary["unmatched_quantity"] == 5
    assert summary["total_quantity"] == 10
    [row] = summary["products"]
    assert row["sku"] == "A-001"
    assert row["by_channel"] == {"coupang_seller": 2, "coupang_rocket": 0, "naver": 3}
    [unmatched] = summary["unmatched"]
    assert unmatched["channel"] == "coupang_seller"
    assert unmatched["external_option_id"] == "999"
    assert unmatched["quantity"] == 5


@pytest.mark.asyncio
async def test_rows_synced_before_mapping_resolve_on_the_fly(db, make_product, make_mapping):
    await OrderReconciler(db, OrderChannel.COUPANG_SELLER, ProductResolver(db)).reconcile(
        [_ordersheet("B1", "222", 4)], CONTEXT
    )
    product = await make_product("B-002", "Monitor Stand")
    await make_mapping(product, external_option_id="222")

    summary = await SalesSummaryService(db).summarize(date(2026, 1, 30), date(2026, 1, 30))

    assert summary["unmatched"] == []
    assert summary["products"][0]["product_id"] == str(product.id)
    assert summary["total_quantity"] == 4


@pytest.mark.asyncio
async def test_inverted_range_is_rejected(db):
    with pytest.raises(ValueError):
        await SalesSummaryService(db).summarize(date(2026, 1, 31), date(2026, 1, 30))
