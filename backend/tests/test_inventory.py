"""Tests for the inventory ledger."""

from decimal import Decimal

import pytest

from conftest import OTHER_TENANT, TENANT, USER, make_item, make_warehouse
from crud import inventory as inventory_crud
from exceptions import InsufficientInventoryError, InvalidQuantityError, NotFoundError
from models.inventory_movements import InventoryMovement


class TestUpdateQuantity:
    """Tests for add/subtract/set/adjust."""

    def test_add_then_subtract_returns_to_start(self, db, item, warehouse):
        """Adding and then subtracting the same amount leaves the balance unchanged."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, Decimal("7.5"), user=USER)
        inventory_crud.subtract(db, TENANT, item.id, warehouse.id, Decimal("7.5"), user=USER)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("0")

    def test_first_movement_creates_row(self, db, item, warehouse):
        """A missing (item, warehouse) pair starts at zero."""
        assert not inventory_crud.exists(db, TENANT, item.id, warehouse.id)

        inventory = inventory_crud.add(db, TENANT, item.id, warehouse.id, 3)

        assert inventory.quantity == Decimal("3")
        assert inventory_crud.exists(db, TENANT, item.id, warehouse.id)

    def test_insufficient_subtract_leaves_balance(self, db, item, warehouse):
        """Subtracting more than available raises and changes nothing."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 5)

        with pytest.raises(InsufficientInventoryError) as exc_info:
            inventory_crud.subtract(db, TENANT, item.id, warehouse.id, 8)

        assert exc_info.value.details["available"] == "5"
        assert exc_info.value.message == "Insufficient inventory. Available: 5, Required: 8"
        assert exc_info.value.details["item_id"] == item.id
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("5")

    @pytest.mark.parametrize("operation,amount", [("add", 0), ("subtract", -1), ("set", -2)])
    def test_invalid_amounts_rejected(self, db, item, warehouse, operation, amount):
        """Non-positive add/subtract and negative set are invalid quantities."""
        with pytest.raises(InvalidQuantityError):
            inventory_crud.update_quantity(db, TENANT, item.id, warehouse.id, amount, operation)

    def test_set_and_adjust(self, db, item, warehouse):
        """set stores the absolute value, adjust applies a signed delta."""
        inventory_crud.set_quantity(db, TENANT, item.id, warehouse.id, 10)
        inventory_crud.adjust(db, TENANT, item.id, warehouse.id, -4)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("6")

        with pytest.raises(InvalidQuantityError):
            inventory_crud.adjust(db, TENANT, item.id, warehouse.id, -7)

    def test_movement_recorded(self, db, item, warehouse):
        """Every accepted change appends a movement row."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 4, reason="Opening stock", reference_type="manual",
                           user=USER)
        inventory_crud.subtract(db, TENANT, item.id, warehouse.id, 1, user=USER)

        movements = inventory_crud.get_movement_history(db, TENANT, item.id)
        assert len(movements) == 2
        total_change = sum((movement.change_amount for movement in movements), Decimal("0"))
        assert total_change == Decimal("3")

    def test_other_tenant_item_not_found(self, db, warehouse):
        """Items of another tenant are invisible."""
        foreign_item = make_item(db, "X1", "Foreign", tenant_id=OTHER_TENANT)

        with pytest.raises(NotFoundError):
            inventory_crud.add(db, TENANT, foreign_item.id, warehouse.id, 1)
        assert db.query(InventoryMovement).count() == 0


class TestTransfer:
    """Tests for moving stock between warehouses."""

    def test_transfer_moves_stock(self, db, item, warehouse, second_warehouse):
        """Source goes down and destination goes up by the same amount."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)

        result = inventory_crud.transfer(db, TENANT, item.id, warehouse.id, second_warehouse.id, 4, user=USER)

        assert result["from"].quantity == Decimal("6")
        assert result["to"].quantity == Decimal("4")
        assert inventory_crud.get_total_quantity(db, TENANT, item.id) == Decimal("10")

    def test_same_warehouse_rejected(self, db, item, warehouse):
        """A transfer needs two different warehouses."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)

        with pytest.raises(InvalidQuantityError):
            inventory_crud.transfer(db, TENANT, item.id, warehouse.id, warehouse.id, 1)

    def test_insufficient_source_touches_nothing(self, db, item, warehouse, second_warehouse):
        """A short source rejects the transfer before either side is written."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 2)

        with pytest.raises(InsufficientInventoryError):
            inventory_crud.transfer(db, TENANT, item.id, warehouse.id, second_warehouse.id, 3)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("2")
        assert inventory_crud.get_quantity(db, TENANT, item.id, second_warehouse.id) == Decimal("0")


class TestBatch:
    """Tests for batch updates."""

    def test_bad_entry_rejects_whole_batch(self, db, item, warehouse):
        """One short entry stops the batch before any balance changes."""
        other = make_item(db, "ITM2", "Gadget")
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 5)
        inventory_crud.add(db, TENANT, other.id, warehouse.id, 1)

        entries = [
            {"item_id": item.id, "warehouse_id": warehouse.id, "quantity": 2},
            {"item_id": other.id, "warehouse_id": warehouse.id, "quantity": 3},
        ]
        with pytest.raises(InsufficientInventoryError):
            inventory_crud.subtract_batch(db, TENANT, entries)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("5")
        assert inventory_crud.get_quantity(db, TENANT, other.id, warehouse.id) == Decimal("1")

    def test_repeated_pair_uses_projected_balance(self, db, item, warehouse):
        """Two entries for the same pair are checked against the running total."""
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 5)
        entries = [{"item_id": item.id, "warehouse_id": warehouse.id, "quantity": 3}] * 2

        with pytest.raises(InsufficientInventoryError):
            inventory_crud.subtract_batch(db, TENANT, entries)


class TestBalanceQueries:
    """Tests for balance and low stock reporting."""

    def test_balance_valued_at_current_price(self, db, warehouse):
        """Balance rows carry quantity times the current price."""
        priced = make_item(db, "P1", "Priced", starting_price="2.5")
        inventory_crud.add(db, TENANT, priced.id, warehouse.id, 4)

        rows = inventory_crud.get_inventory_balance(db, TENANT)

        assert len(rows) == 1
        assert rows[0]["quantity"] == Decimal("4")
        assert rows[0]["total_value_usd"] == Decimal("10")

    def test_low_stock(self, db, warehouse):
        """Items at or under their alert level are reported."""
        low = make_item(db, "L1", "Low", low_quantity_alert=Decimal("5"))
        plenty = make_item(db, "L2", "Plenty", low_quantity_alert=Decimal("5"))
        inventory_crud.add(db, TENANT, low.id, warehouse.id, 2)
        inventory_crud.add(db, TENANT, plenty.id, warehouse.id, 20)

        rows = inventory_crud.get_low_stock_items(db, TENANT)

        assert [row["item_id"] for row in rows] == [low.id]

    def test_warehouse_scoped_to_tenant(self, db, item):
        """A warehouse of another tenant cannot hold this tenant's stock."""
        foreign = make_warehouse(db, "FW", "Foreign", tenant_id=OTHER_TENANT)

        with pytest.raises(NotFoundError):
            inventory_crud.add(db, TENANT, item.id, foreign.id, 1)
