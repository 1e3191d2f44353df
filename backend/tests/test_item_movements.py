"""Tests for item adjustments and item transfers."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TENANT, USER
from crud import inventory as inventory_crud
from crud import item_adjusts as item_adjusts_crud
from crud import item_transfers as item_transfers_crud
from crud import pricing
from exceptions import BusinessRuleError, InsufficientInventoryError
from models.item_adjusts import AdjustType
from models.item_prices import ItemPriceHistory

MOVE_DATE = date(2024, 5, 2)


class TestItemAdjusts:
    """Tests for item adjust documents."""

    def test_add_with_unit_cost_prices_item(self, db, warehouse, item):
        """Stock added at a unit cost becomes the first price of an unpriced item."""
        adjust = item_adjusts_crud.create_item_adjust(
            db, TENANT, {"warehouse_id": warehouse.id, "type": AdjustType.ADD, "date": MOVE_DATE},
            [{"item_id": item.id, "quantity": Decimal("5"), "unit_cost_usd": Decimal("2")}], USER,
        )

        assert adjust.code == "ADJ-000001"
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("5")
        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("2")

    def test_add_blends_into_existing_price(self, db, warehouse, item):
        """5 units at 2 plus 5 units at 4 average to 3."""
        for cost in ("2", "4"):
            item_adjusts_crud.create_item_adjust(
                db, TENANT, {"warehouse_id": warehouse.id, "type": AdjustType.ADD, "date": MOVE_DATE},
                [{"item_id": item.id, "quantity": Decimal("5"), "unit_cost_usd": Decimal(cost)}], USER,
            )

        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("3")

    def test_subtract_is_all_or_nothing(self, db, warehouse, item):
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 3)

        with pytest.raises(InsufficientInventoryError):
            item_adjusts_crud.create_item_adjust(
                db, TENANT, {"warehouse_id": warehouse.id, "type": AdjustType.SUBTRACT, "date": MOVE_DATE},
                [{"item_id": item.id, "quantity": Decimal("2")}, {"item_id": item.id, "quantity": Decimal("2")}],
                USER,
            )

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("3")

    def test_update_reverses_then_reapplies(self, db, warehouse, item):
        adjust = item_adjusts_crud.create_item_adjust(
            db, TENANT, {"warehouse_id": warehouse.id, "type": AdjustType.ADD, "date": MOVE_DATE},
            [{"item_id": item.id, "quantity": Decimal("5")}], USER,
        )

        item_adjusts_crud.update_item_adjust(db, adjust, {}, [{"item_id": item.id, "quantity": Decimal("3")}], USER)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("3")
        assert [line.quantity for line in adjust.items] == [Decimal("3")]

    def test_delete_reverses(self, db, warehouse, item):
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)
        adjust = item_adjusts_crud.create_item_adjust(
            db, TENANT, {"warehouse_id": warehouse.id, "type": AdjustType.SUBTRACT, "date": MOVE_DATE},
            [{"item_id": item.id, "quantity": Decimal("4")}], USER,
        )

        item_adjusts_crud.delete_item_adjust(db, adjust, USER)

        assert adjust.deleted_at is not None
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("10")

    def test_empty_adjust_rejected(self, db, warehouse):
        with pytest.raises(BusinessRuleError):
            item_adjusts_crud.create_item_adjust(
                db, TENANT, {"warehouse_id": warehouse.id, "type": AdjustType.ADD, "date": MOVE_DATE}, [], USER,
            )


def add_at_cost(db, warehouse, item, quantity, cost):
    return item_adjusts_crud.create_item_adjust(
        db, TENANT, {"warehouse_id": warehouse.id, "type": AdjustType.ADD, "date": MOVE_DATE},
        [{"item_id": item.id, "quantity": Decimal(quantity), "unit_cost_usd": Decimal(cost)}], USER,
    )


def history_count(db, item):
    return db.query(ItemPriceHistory).filter(ItemPriceHistory.item_id == item.id).count()


class TestItemAdjustPricing:
    """Tests for the price effect of editing and deleting costed adjusts."""

    def test_note_only_update_keeps_price(self, db, warehouse, item):
        """10 at 10 then 10 at 20 is 15; fixing a note neither moves stock nor reprices."""
        add_at_cost(db, warehouse, item, "10", "10")
        second = add_at_cost(db, warehouse, item, "10", "20")
        rows = history_count(db, item)

        item_adjusts_crud.update_item_adjust(db, second, {"note": "typo fix"}, None, USER)

        assert second.note == "typo fix"
        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("15")
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("20")
        assert history_count(db, item) == rows

    def test_delete_takes_cost_out_of_price(self, db, warehouse, item):
        """(20 x 15 - 10 x 20) / 10 brings the price back to 10."""
        add_at_cost(db, warehouse, item, "10", "10")
        second = add_at_cost(db, warehouse, item, "10", "20")

        item_adjusts_crud.delete_item_adjust(db, second, USER)

        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("10")
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("10")

    def test_cost_change_replaces_old_cost(self, db, warehouse, item):
        """Editing 10 at 20 into 10 at 30 prices the item as if 30 had been entered: (100 + 300) / 20."""
        add_at_cost(db, warehouse, item, "10", "10")
        second = add_at_cost(db, warehouse, item, "10", "20")

        item_adjusts_crud.update_item_adjust(
            db, second, {}, [{"item_id": item.id, "quantity": Decimal("10"), "unit_cost_usd": Decimal("30")}], USER,
        )

        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("20")

    def test_delete_of_only_stock_keeps_price(self, db, warehouse, item):
        adjust = add_at_cost(db, warehouse, item, "10", "10")

        item_adjusts_crud.delete_item_adjust(db, adjust, USER)

        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("10")


class TestItemTransfers:
    """Tests for item transfer documents."""

    def _transfer(self, db, warehouse, second_warehouse, item, quantity):
        return item_transfers_crud.create_item_transfer(
            db, TENANT,
            {"from_warehouse_id": warehouse.id, "to_warehouse_id": second_warehouse.id, "date": MOVE_DATE},
            [{"item_id": item.id, "quantity": Decimal(quantity)}], USER,
        )

    def test_transfer_moves_each_line(self, db, warehouse, second_warehouse, item):
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)

        transfer = self._transfer(db, warehouse, second_warehouse, item, "4")

        assert transfer.code == "TRF-000001"
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("6")
        assert inventory_crud.get_quantity(db, TENANT, item.id, second_warehouse.id) == Decimal("4")

    def test_same_warehouse_rejected(self, db, warehouse, item):
        with pytest.raises(BusinessRuleError):
            item_transfers_crud.create_item_transfer(
                db, TENANT, {"from_warehouse_id": warehouse.id, "to_warehouse_id": warehouse.id, "date": MOVE_DATE},
                [{"item_id": item.id, "quantity": Decimal("1")}], USER,
            )

    def test_update_quantity(self, db, warehouse, second_warehouse, item):
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)
        transfer = self._transfer(db, warehouse, second_warehouse, item, "4")

        item_transfers_crud.update_item_transfer(db, transfer, {}, [{"item_id": item.id, "quantity": Decimal("7")}],
                                                 USER)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("3")
        assert inventory_crud.get_quantity(db, TENANT, item.id, second_warehouse.id) == Decimal("7")

    def test_delete_fails_when_destination_spent(self, db, warehouse, second_warehouse, item):
        """The stock cannot go back once the destination has used it."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)
        transfer = self._transfer(db, warehouse, second_warehouse, item, "4")
        inventory_crud.subtract(db, TENANT, item.id, second_warehouse.id, 3)

        with pytest.raises(InsufficientInventoryError):
            item_transfers_crud.delete_item_transfer(db, transfer, USER)

    def test_delete_moves_stock_back(self, db, warehouse, second_warehouse, item):
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)
        transfer = self._transfer(db, warehouse, second_warehouse, item, "4")

        item_transfers_crud.delete_item_transfer(db, transfer, USER)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("10")
        assert inventory_crud.get_quantity(db, TENANT, item.id, second_warehouse.id) == Decimal("0")
