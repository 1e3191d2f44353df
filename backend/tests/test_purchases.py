"""Tests for the purchase service."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TENANT, USER, make_item, make_partner, purchase_data
from crud import inventory as inventory_crud
from crud import pricing
from crud import purchase_returns as purchase_returns_crud
from crud import purchases as purchases_crud
from crud import supplier_item_prices
from exceptions import BusinessRuleError, InsufficientInventoryError, InvalidQuantityError
from models.purchases import PurchaseStatus

RETURN_DATE = date(2024, 3, 5)


def line(item, quantity, price, **kwargs):
    return {"item_id": item.id, "quantity": Decimal(quantity), "price": Decimal(price), **kwargs}


class TestLineMath:
    """Tests for line amounts and fee apportionment."""

    def test_percent_discount_wins(self):
        """A discount percent overrides a fixed line discount."""
        amounts = purchases_crud.calculate_line_amounts(10, 5, discount_percent=10, discount_amount=3)

        assert amounts["discount_amount"] == Decimal("5")
        assert amounts["total_price"] == Decimal("45")

    def test_currency_rate_converts_to_usd(self):
        amounts = purchases_crud.calculate_line_amounts(100, 2, currency_rate=4)

        assert amounts["total_price_usd"] == Decimal("50")

    def test_zero_quantity_rejected(self):
        with pytest.raises(InvalidQuantityError):
            purchases_crud.calculate_line_amounts(10, 0)

    def test_fixed_fee_split_by_value(self):
        """A fixed fee is shared in proportion to each line's value."""
        assert purchases_crud.apportion_fee(75, 100, 20, 0) == Decimal("15")
        assert purchases_crud.apportion_fee(25, 100, 20, 0) == Decimal("5")


class TestCreatePurchase:
    """Tests for create_purchase()."""

    def test_waiting_purchase_moves_nothing(self, db, supplier, warehouse, item):
        """A purchase that is not delivered leaves stock and price alone."""
        purchase = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                                  [line(item, "4", "2.5")], USER)

        assert purchase.code == "PUR-000001"
        assert purchase.status == PurchaseStatus.WAITING
        assert purchase.total_usd == Decimal("10")
        assert inventory_crud.get_total_quantity(db, TENANT, item.id) == Decimal("0")
        assert pricing.get_current_price(db, TENANT, item.id) is None

    def test_codes_increase(self, db, supplier, warehouse, item):
        first = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                               [line(item, "1", "1")], USER)
        second = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                                [line(item, "1", "1")], USER)

        assert (first.code, second.code) == ("PUR-000001", "PUR-000002")

    def test_fixed_fee_goes_into_final_total(self, db, supplier, warehouse, item):
        """Totals carry the header discount and the landed fees."""
        purchase = purchases_crud.create_purchase(
            db, TENANT,
            purchase_data(supplier.id, warehouse.id, discount_amount_usd=Decimal("5"), shipping_fee_usd=Decimal("20")),
            [line(item, "10", "10")], USER,
        )

        assert purchase.sub_total_usd == Decimal("100")
        assert purchase.total_usd == Decimal("95")
        assert purchase.final_total_usd == Decimal("115")

    def test_delivered_purchase_moves_stock_and_prices(self, db, supplier, warehouse, item):
        """Delivered at creation: stock in, item priced, supplier price recorded."""
        purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                       [line(item, "6", "3")], USER)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("6")
        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("3")
        supplier_price = supplier_item_prices.get_current_price(db, TENANT, supplier.id, item.id)
        assert supplier_price.price_usd == Decimal("3")

    def test_customer_only_partner_rejected(self, db, customer, warehouse, item):
        """The supplier of a purchase must play the supplier role."""
        with pytest.raises(BusinessRuleError):
            purchases_crud.create_purchase(db, TENANT, purchase_data(customer.id, warehouse.id),
                                           [line(item, "1", "1")], USER)

    def test_delivered_without_items_rejected(self, db, supplier, warehouse):
        with pytest.raises(BusinessRuleError):
            purchases_crud.create_purchase(db, TENANT,
                                           purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED), [], USER)


class TestDeliverAndStatus:
    """Tests for deliver_purchase() and change_status()."""

    def test_deliver_once(self, db, supplier, warehouse, item):
        """Delivery applies stock once; a second delivery is refused."""
        purchase = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                                  [line(item, "5", "2")], USER)

        purchases_crud.deliver_purchase(db, purchase, USER)
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("5")

        with pytest.raises(BusinessRuleError):
            purchases_crud.deliver_purchase(db, purchase, USER)
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("5")

    def test_delivered_cannot_move_back(self, db, supplier, warehouse, item):
        purchase = purchases_crud.create_purchase(db, TENANT,
                                                  purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                                  [line(item, "5", "2")], USER)

        with pytest.raises(BusinessRuleError):
            purchases_crud.change_status(db, purchase, PurchaseStatus.SHIPPED, USER)

    def test_shipped_then_delivered(self, db, supplier, warehouse, item):
        purchase = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                                  [line(item, "2", "2")], USER)

        purchases_crud.change_status(db, purchase, PurchaseStatus.SHIPPED, USER)
        assert purchase.status == PurchaseStatus.SHIPPED

        purchases_crud.change_status(db, purchase, PurchaseStatus.DELIVERED, USER)
        assert purchase.status == PurchaseStatus.DELIVERED
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("2")


class TestUpdatePurchase:
    """Tests for update_purchase() line sync."""

    def test_reduction_below_sold_stock_rejected(self, db, supplier, warehouse, item):
        """A delivered line cannot shrink below what is still in stock."""
        purchase = purchases_crud.create_purchase(db, TENANT,
                                                  purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                                  [line(item, "10", "2")], USER)
        inventory_crud.subtract(db, TENANT, item.id, warehouse.id, 8, user=USER)
        existing = purchase.items[0]

        with pytest.raises(BusinessRuleError):
            purchases_crud.update_purchase(db, purchase, {}, [line(item, "1", "2", id=existing.id)], USER)

    def test_delivered_quantity_change_moves_difference(self, db, supplier, warehouse, item):
        purchase = purchases_crud.create_purchase(db, TENANT,
                                                  purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                                  [line(item, "10", "2")], USER)
        existing = purchase.items[0]

        purchases_crud.update_purchase(db, purchase, {}, [line(item, "7", "2", id=existing.id)], USER)

        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("7")
        assert purchase.total_usd == Decimal("14")

    def test_new_and_removed_lines_on_waiting_purchase(self, db, supplier, warehouse, item):
        """Lines missing from the list are removed, lines without an id are added."""
        other = make_item(db, "ITM2", "Gadget")
        purchase = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                                  [line(item, "1", "5")], USER)

        purchases_crud.update_purchase(db, purchase, {}, [line(other, "2", "3")], USER)

        assert [row.item_id for row in purchase.items] == [other.id]
        assert purchase.total_usd == Decimal("6")

    def test_foreign_line_id_rejected(self, db, supplier, warehouse, item):
        first = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                               [line(item, "1", "5")], USER)
        second = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                                [line(item, "1", "5")], USER)

        with pytest.raises(BusinessRuleError):
            purchases_crud.update_purchase(db, second, {}, [line(item, "1", "5", id=first.items[0].id)], USER)

    def test_delivered_warehouse_locked(self, db, supplier, warehouse, second_warehouse, item):
        purchase = purchases_crud.create_purchase(db, TENANT,
                                                  purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                                  [line(item, "1", "5")], USER)

        with pytest.raises(BusinessRuleError):
            purchases_crud.update_purchase(db, purchase, {"warehouse_id": second_warehouse.id}, None, USER)


class TestDeletePurchase:
    """Tests for delete_purchase()."""

    def test_delete_waiting_keeps_stock(self, db, supplier, warehouse, item):
        purchase = purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                                  [line(item, "3", "1")], USER)

        purchases_crud.delete_purchase(db, purchase, USER)

        assert purchase.deleted_at is not None
        assert inventory_crud.get_total_quantity(db, TENANT, item.id) == Decimal("0")

    def test_delete_delivered_with_sold_stock_rejected(self, db, supplier, warehouse, item):
        """A delivered purchase whose stock was partly used cannot be deleted."""
        purchase = purchases_crud.create_purchase(db, TENANT,
                                                  purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                                  [line(item, "3", "1")], USER)
        inventory_crud.subtract(db, TENANT, item.id, warehouse.id, 1)

        with pytest.raises(BusinessRuleError):
            purchases_crud.delete_purchase(db, purchase, USER)
        assert purchase.deleted_at is None

    def test_same_item_lines_checked_together(self, db, supplier, warehouse, item):
        """Two lines of 8 with 6 sold leave 10 on hand, less than the 16 the purchase brought in."""
        purchase = purchases_crud.create_purchase(db, TENANT,
                                                  purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                                  [line(item, "8", "1"), line(item, "8", "1")], USER)
        inventory_crud.subtract(db, TENANT, item.id, warehouse.id, 6)

        with pytest.raises(BusinessRuleError) as exc_info:
            purchases_crud.delete_purchase(db, purchase, USER)

        assert "Purchased quantity: 16" in exc_info.value.message
        assert purchase.deleted_at is None
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("10")


class TestPurchaseReturns:
    """Tests for purchase returns."""

    def test_return_takes_stock_out(self, db, supplier, warehouse, item):
        purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                       [line(item, "10", "4")], USER)

        purchase_return = purchase_returns_crud.create_purchase_return(
            db, TENANT, {"supplier_id": supplier.id, "warehouse_id": warehouse.id, "date": RETURN_DATE},
            [{"item_id": item.id, "quantity": Decimal("4"), "price_usd": Decimal("4")}], USER,
        )

        assert purchase_return.code == "PRT-000001"
        assert purchase_return.total_usd == Decimal("16")
        assert inventory_crud.get_quantity(db, TENANT, item.id, warehouse.id) == Decimal("6")
        # returned at cost, so the average is unchanged
        assert pricing.get_current_price_value(db, TENANT, item.id) == Decimal("4")

    def test_return_more_than_stock_rejected(self, db, supplier, warehouse, item):
        with pytest.raises(InsufficientInventoryError):
            purchase_returns_crud.create_purchase_return(
                db, TENANT,
                {"supplier_id": supplier.id, "warehouse_id": warehouse.id, "date": RETURN_DATE},
                [{"item_id": item.id, "quantity": Decimal("1"), "price_usd": Decimal("1")}], USER,
            )

    def test_return_of_other_suppliers_purchase_rejected(self, db, supplier, warehouse, item):
        other_supplier = make_partner(db, "SUP2", "Other", is_supplier=True, is_customer=False)
        purchase = purchases_crud.create_purchase(db, TENANT,
                                                  purchase_data(supplier.id, warehouse.id, PurchaseStatus.DELIVERED),
                                                  [line(item, "2", "4")], USER)

        with pytest.raises(BusinessRuleError):
            purchase_returns_crud.create_purchase_return(
                db, TENANT,
                {"supplier_id": other_supplier.id, "warehouse_id": warehouse.id, "purchase_id": purchase.id,
                 "date": purchase.date},
                [{"item_id": item.id, "quantity": Decimal("1"), "price_usd": Decimal("4")}], USER,
            )
