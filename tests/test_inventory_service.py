from types import SimpleNamespace

import pytest

from sellerops.models.inventory import InventoryLocation, InventorySource
from sellerops.services.inventory_service import InventoryService, orderable_quantity
from sellerops.services.marketplace_service import FetchPage, MarketplaceFetchError


class _FakeInventoryClient:
    def __init__(self, name, pages=None, error=None):
        self.account = SimpleNamespace(name=name, vendor_id=f"V-{name}")
        self.pages = pages or {}
        self.error = error
        self.calls = []

    async def fetch_rocket_inventory(self, cursor=None):
        self.calls.append(cursor)
        if self.error:
            raise self.error
        return self.pages[cursor]


def _stock(vendor_item_id, quantity):
    return {"vendorItemId": vendor_item_id, "inventoryDetails": {"totalOrderableQuantity": quantity}}


def test_orderable_quantity_tolerates_missing_details():
    assert orderable_quantity(_stock(1, "7")) == 7
    assert orderable_quantity({"vendorItemId": 1}) == 0
    assert orderable_quantity({"inventoryDetails": {"totalOrderableQuantity": "n/a"}}) == 0


@pytest.mark.asyncio
async def test_set_quantity_logs_changes_only(db, make_product):
    product = await make_product("A-001", "Desk Organizer")
    service = InventoryService(db)

    log = await service.set_quantity(product.id, "warehouse", 12, reason="count")
    assert (log.before_qty, log.after_qty, log.change_qty) == (0, 12, 12)
    assert log.source == InventorySource.MANUAL.value

    assert await service.set_quantity(product.id, "warehouse", 12) is None

    log = await service.set_quantity(product.id, "warehouse", 5)
    assert log.change_qty == -7
    assert len(await service.logs(log.inventory_id)) == 2


@pytest.mark.asyncio
async def test_sync_keeps_largest_quantity_across_accounts(db, make_product, make_mapping):
    product = await make_product("A-001", "Desk Organizer")
    await make_mapping(product, external_option_id="111")
    main = _FakeInventoryClient("main", {
        None: FetchPage([_stock(111, 4), _stock(999, 2)], next_cursor="2"),
        "2": FetchPage([]),
    })
    second = _FakeInventoryClient("second", {None: FetchPage([_stock(111, 9)])})
    broken = _FakeInventoryClient("broken", error=MarketplaceFetchError("boom", marketplace="coupang"))

    service = InventoryService(db)
    result = await service.sync_coupang_inventory({"main": main, "second": second, "broken": broken})

    assert main.calls == [None, "2"]
    assert result["fetched"] == 3
    assert result["products"] == 1
    assert result["changed"] == 1
    assert result["unmatched"] == [{"account": "main", "vendor_item_id": "999", "quantity": 2}]
    assert result["errors"] == ["broken: boom"]

    inventory = await service.get_or_create(product.id, InventoryLocation.COUPANG.value)
    assert inventory.quantity == 9

    again = await service.sync_coupang_inventory({"second": second})
    assert again["changed"] == 0
