"""Tests for item pricing: weighted average, last cost and manual corrections."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TENANT, USER, make_item, purchase_data
from crud import inventory as inventory_crud
from crud import pricing
from crud import purchases as purchases_crud
from exceptions import BusinessRuleError
from models.items import CostCalculation
from models.purchases import PurchaseStatus


def deliver(db, supplier, warehouse, item, quantity, price):
    return purchases_crud.create_purchase(
        db, TENANT, purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
        [{"item_id": item.id, "price": Decimal(price), "quantity": Decimal(quantity)}], USER,
    )


def current_price(db, item):
    return pricing.get_current_price_value(db, TENANT, item.id)


class TestWeightedAverage:
    """Tests for weighted-average items."""

    def test_first_purchase_without_stock_takes_unit_cost(self, db, supplier, warehouse):
        """With no stock before it, a purchase sets the price to its unit cost."""
        item = make_item(db, "W1", "Bolt", starting_price="10")

        deliver(db, supplier, warehouse, item, "10", "20")

        assert current_price(db, item) == Decimal("20")

    def test_second_purchase_blends(self, db, supplier, warehouse):
        """10 units at 20 followed by 10 units at 10 average to 15."""
        item = make_item(db, "W1", "Bolt", starting_price="10")

        deliver(db, supplier, warehouse, item, "10", "20")
        deliver(db, supplier, warehouse, item, "10", "10")

        assert current_price(db, item) == Decimal("15")
        assert inventory_crud.get_total_quantity(db, TENANT, item.id) == Decimal("20")

    def test_history_row_per_change(self, db, supplier, warehouse):
        """Initial price plus one row for each price-changing purchase."""
        item = make_item(db, "W1", "Bolt", starting_price="10")
        deliver(db, supplier, warehouse, item, "10", "20")
        deliver(db, supplier, warehouse, item, "10", "10")

        history = pricing.get_price_history(db, TENANT, item.id)

        assert len(history) == 3
        newest = history[0]
        assert newest.latest_price == Decimal("20")
        assert newest.price_usd == Decimal("15")
        assert history[-1].latest_price == Decimal("0")

    def test_same_cost_adds_no_history(self, db, supplier, warehouse, item):
        """A purchase that leaves the average unchanged writes no history row."""
        deliver(db, supplier, warehouse, item, "5", "8")
        deliver(db, supplier, warehouse, item, "5", "8")

        assert len(pricing.get_price_history(db, TENANT, item.id)) == 1

    def test_edit_of_delivered_line_rebuilds_price(self, db, supplier, warehouse):
        """Raising a delivered line's quantity reprices from the other purchases."""
        item = make_item(db, "W1", "Bolt")
        deliver(db, supplier, warehouse, item, "10", "20")
        second = deliver(db, supplier, warehouse, item, "10", "10")
        line = second.items[0]

        purchases_crud.update_purchase(
            db, second, {},
            [{"id": line.id, "item_id": item.id, "price": Decimal("10"), "quantity": Decimal("20")}], USER,
        )

        # 10 @ 20 from the first purchase plus 20 @ 10 from the edited line
        assert round(current_price(db, item), 4) == Decimal("13.3333")
        assert inventory_crud.get_total_quantity(db, TENANT, item.id) == Decimal("30")

    def test_edit_after_sales_values_remainder_at_average_of_others(self, db, supplier, warehouse):
        """
        With part of the stock gone, the rest is valued at the other purchases' average cost.

        Stock is 15 after selling 5, so 5 units remain besides the edited line; that is less than
        the 10 the first purchase brought in, so they count at 20 each: (5 x 20 + 10 x 16) / 15.
        """
        item = make_item(db, "W1", "Bolt")
        deliver(db, supplier, warehouse, item, "10", "20")
        second = deliver(db, supplier, warehouse, item, "10", "10")
        inventory_crud.subtract(db, TENANT, item.id, warehouse.id, 5)
        line = second.items[0]

        purchases_crud.update_purchase(
            db, second, {},
            [{"id": line.id, "item_id": item.id, "price": Decimal("16"), "quantity": Decimal("10")}], USER,
        )

        assert round(current_price(db, item), 4) == Decimal("17.3333")
        assert inventory_crud.get_total_quantity(db, TENANT, item.id) == Decimal("15")

    def test_purchase_deletion_restores_average(self, db, supplier, warehouse):
        """Deleting the second purchase leaves the first purchase's cost."""
        item = make_item(db, "W1", "Bolt")
        deliver(db, supplier, warehouse, item, "10", "20")
        second = deliver(db, supplier, warehouse, item, "10", "10")

        purchases_crud.delete_purchase(db, second, USER)

        assert current_price(db, item) == Decimal("20")
        assert inventory_crud.get_total_quantity(db, TENANT, item.id) == Decimal("10")


class TestLastCost:
    """Tests for last-cost items."""

    def test_price_follows_latest_purchase(self, db, supplier, warehouse):
        """Each purchase replaces the price with its unit cost."""
        item = make_item(db, "L1", "Cable", cost_calculation=CostCalculation.LAST_COST)

        deliver(db, supplier, warehouse, item, "10", "12")
        assert current_price(db, item) == Decimal("12")

        deliver(db, supplier, warehouse, item, "3", "8")
        assert current_price(db, item) == Decimal("8")

    def test_landed_cost_includes_fees(self, db, supplier, warehouse):
        """A percent shipping fee is added to the unit cost."""
        item = make_item(db, "L1", "Cable", cost_calculation=CostCalculation.LAST_COST)

        purchases_crud.create_purchase(
            db, TENANT,
            purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED,
                          shipping_fee_usd_percent=Decimal("10")),
            [{"item_id": item.id, "price": Decimal("10"), "quantity": Decimal("4")}], USER,
        )

        assert current_price(db, item) == Decimal("11")


class TestManualPrice:
    """Tests for manual price corrections and starting prices."""

    def test_adjust_creates_price_when_missing(self, db, item):
        """An unpriced item gets its first price from a manual correction."""
        pricing.adjust_price(db, TENANT, item.id, Decimal("4.5"), note="Counted", effective_date=date(2024, 1, 1))

        assert current_price(db, item) == Decimal("4.5")

    def test_change_within_a_cent_ignored(self, db):
        """Manual changes of a cent or less write no history."""
        item = make_item(db, "M1", "Nut", starting_price="5")

        pricing.adjust_price(db, TENANT, item.id, Decimal("5.005"))
        assert len(pricing.get_price_history(db, TENANT, item.id)) == 1

        pricing.adjust_price(db, TENANT, item.id, Decimal("6"))
        assert len(pricing.get_price_history(db, TENANT, item.id)) == 2
        assert current_price(db, item) == Decimal("6")

    def test_negative_price_rejected(self, db, item):
        with pytest.raises(BusinessRuleError):
            pricing.adjust_price(db, TENANT, item.id, Decimal("-1"))

    def test_starting_price_locked_after_purchase(self, db, supplier, warehouse, item):
        """Once purchased, the starting price can no longer change."""
        assert pricing.can_update_starting_price(db, TENANT, item.id)

        deliver(db, supplier, warehouse, item, "1", "3")

        assert not pricing.can_update_starting_price(db, TENANT, item.id)
        with pytest.raises(BusinessRuleError) as exc_info:
            pricing.update_starting_price(db, item, Decimal("9"))
        assert exc_info.value.code == "STARTING_PRICE_LOCKED"

    def test_starting_price_initializes_price(self, db, item):
        """Setting a starting price on a fresh item creates its current price."""
        pricing.update_starting_price(db, item, Decimal("7"))

        assert current_price(db, item) == Decimal("7")

    def test_price_trend(self, db):
        """A rise beyond five percent inside the window is increasing."""
        item = make_item(db, "T1", "Trend", starting_price="10")
        pricing.adjust_price(db, TENANT, item.id, Decimal("12"), effective_date=item.created_at.date())

        trend = pricing.get_price_trend(db, TENANT, item.id, days=30)

        assert trend["trend"] == "increasing"
        assert trend["change_percent"] == Decimal("20.00")
