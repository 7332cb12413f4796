"""Integration tests for the SetInventory and ShowInventory use cases."""

import pytest

from ordercore.application.locks import LockManager
from ordercore.application.set_inventory import SetInventoryHandler
from ordercore.application.show_inventory import ShowInventoryHandler
from ordercore.domain.exceptions import ResourceNotFoundError, ValidationError
from tests.fakes import seeded_data


def _setup():
    data = seeded_data()
    return (
        data,
        SetInventoryHandler(data.uow_factory(), LockManager()),
        ShowInventoryHandler(data.uow_factory()),
    )


class TestSetInventory:

    def test_update_existing_location(self):
        data, set_inventory, _ = _setup()
        item = set_inventory.handle("p-1", 25)
        assert item.quantity == 25
        assert data.stock("p-1").quantity == 25

    def test_new_location_is_appended(self):
        data, set_inventory, _ = _setup()
        item = set_inventory.handle("p-1", 7, location="warehouse-2")
        assert item.position == 1
        assert data.stock("p-1", "warehouse-2").quantity == 7

    def test_cannot_drop_below_reserved(self):
        data, set_inventory, _ = _setup()
        data.stock("p-1").reserved_quantity = 6
        with pytest.raises(ValidationError, match="6 units are reserved"):
            set_inventory.handle("p-1", 5)
        assert data.stock("p-1").quantity == 10

    def test_negative_quantity_rejected(self):
        _, set_inventory, _ = _setup()
        with pytest.raises(ValidationError, match="cannot be negative"):
            set_inventory.handle("p-1", -1)

    def test_unknown_product_rejected(self):
        _, set_inventory, _ = _setup()
        with pytest.raises(ResourceNotFoundError, match="p-404"):
            set_inventory.handle("p-404", 1)


class TestShowInventory:

    def test_lists_locations_with_names(self):
        data, set_inventory, show_inventory = _setup()
        data.stock("p-1").reserved_quantity = 4
        set_inventory.handle("p-1", 3, location="overflow")

        lines = show_inventory.handle("p-1")

        assert [(ln.location, ln.total, ln.reserved, ln.available) for ln in lines] == [
            ("default", 10, 4, 6),
            ("overflow", 3, 0, 3),
        ]
        assert lines[0].product_name == "Widget"

    def test_lists_everything_sorted_by_product(self):
        _, _, show_inventory = _setup()
        assert [line.product_id for line in show_inventory.handle()] == ["p-1", "p-2"]
