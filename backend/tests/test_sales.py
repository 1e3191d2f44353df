"""Tests for sales, customer returns and sell price suggestions."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TENANT, USER, make_item, make_partner
from crud import customer_returns as customer_returns_crud
from crud import inventory as inventory_crud
from crud import sales as sales_crud
from exceptions import BusinessRuleError, InsufficientInventoryError
from models.app_config import AppConfig
from models.price_lists import PriceList, PriceListItem

SALE_DATE = date(2024, 4, 10)


@pytest.fixture
def stocked_item(db, warehouse):
    """Item priced at 4 with 10 units in the main warehouse."""
    item = make_item(db, "S1", "Lamp", starting_price="4", tax_percent=Decimal("10"))
    inventory_crud.add(db, TENANT, item.id, warehouse.id, 10, user=USER)
    return item


def sale_data(customer, warehouse, **kwargs) -> dict:
    return {"customer_id": customer.id, "warehouse_id": warehouse.id, "date": SALE_DATE, **kwargs}


class TestSaleLine:
    """Tests for calculate_sale_line()."""

    def test_discount_tax_and_profit(self):
        """Discount comes off before tax; profit is net price minus cost."""
        amounts = sales_crud.calculate_sale_line(price=10, quantity=2, currency_rate=1, cost_price=4,
                                                 discount_percent=10, tax_percent=10)

        assert amounts["net_sell_price_usd"] == Decimal("9")
        assert amounts["tax_amount_usd"] == Decimal("0.9")
        assert amounts["total_price_usd"] == Decimal("19.8")
        assert amounts["total_profit"] == Decimal("10")

    def test_currency_rate(self):
        amounts = sales_crud.calculate_sale_line(price=50, quantity=1, currency_rate=5, cost_price=0)

        assert amounts["price_usd"] == Decimal("10")
        assert amounts["total_price"] == Decimal("50")


class TestCreateSale:
    """Tests for create_sale()."""

    def test_sale_takes_stock_and_costs_lines(self, db, customer, warehouse, stocked_item):
        """Stock leaves the warehouse and each line is costed at the current price."""
        sale = sales_crud.create_sale(db, TENANT, sale_data(customer, warehouse),
                                      [{"item_id": stocked_item.id, "quantity": Decimal("3"), "price": Decimal("10")}],
                                      USER)

        assert sale.code == "INV-000001"
        assert inventory_crud.get_quantity(db, TENANT, stocked_item.id, warehouse.id) == Decimal("7")
        assert sale.sub_total_usd == Decimal("30")
        assert sale.total_tax_amount_usd == Decimal("3")
        assert sale.total_usd == Decimal("33")
        assert sale.total_profit == Decimal("18")
        assert sale.items[0].cost_price == Decimal("4")

    def test_tax_free_sale_uses_own_prefix_and_no_tax(self, db, customer, warehouse, stocked_item):
        sale = sales_crud.create_sale(db, TENANT, sale_data(customer, warehouse, tax_free=True),
                                      [{"item_id": stocked_item.id, "quantity": Decimal("1"), "price": Decimal("10")}],
                                      USER)

        assert sale.code == "INX-000001"
        assert sale.total_tax_amount_usd == Decimal("0")

    def test_configured_prefix(self, db, customer, warehouse, stocked_item):
        """The sale prefix can be overridden per tenant."""
        db.add(AppConfig(tenant_id=TENANT, name="sale_prefix", value="FAC"))
        db.flush()

        sale = sales_crud.create_sale(db, TENANT, sale_data(customer, warehouse),
                                      [{"item_id": stocked_item.id, "quantity": Decimal("1"), "price": Decimal("10")}],
                                      USER)

        assert sale.code == "FAC-000001"

    def test_insufficient_stock_rejects_sale(self, db, customer, warehouse, stocked_item):
        """A short line rejects the sale before any stock moves."""
        with pytest.raises(InsufficientInventoryError):
            sales_crud.create_sale(db, TENANT, sale_data(customer, warehouse),
                                   [{"item_id": stocked_item.id, "quantity": Decimal("4"), "price": Decimal("1")},
                                    {"item_id": stocked_item.id, "quantity": Decimal("7"), "price": Decimal("1")}],
                                   USER)

        assert inventory_crud.get_quantity(db, TENANT, stocked_item.id, warehouse.id) == Decimal("10")

    def test_empty_sale_rejected(self, db, customer, warehouse):
        with pytest.raises(BusinessRuleError):
            sales_crud.create_sale(db, TENANT, sale_data(customer, warehouse), [], USER)

    def test_supplier_cannot_buy(self, db, supplier, warehouse, stocked_item):
        with pytest.raises(BusinessRuleError):
            sales_crud.create_sale(db, TENANT, sale_data(supplier, warehouse),
                                   [{"item_id": stocked_item.id, "quantity": Decimal("1"), "price": Decimal("1")}],
                                   USER)

    def test_delete_returns_stock(self, db, customer, warehouse, stocked_item):
        sale = sales_crud.create_sale(db, TENANT, sale_data(customer, warehouse),
                                      [{"item_id": stocked_item.id, "quantity": Decimal("3"), "price": Decimal("10")}],
                                      USER)

        sales_crud.delete_sale(db, sale, USER)

        assert sale.deleted_at is not None
        assert inventory_crud.get_quantity(db, TENANT, stocked_item.id, warehouse.id) == Decimal("10")


class TestSuggestSellPrice:
    """Tests for suggest_sell_price()."""

    def test_falls_back_to_base_sell_price(self, db):
        item = make_item(db, "P1", "Pen", base_sell_price=Decimal("2.5"))

        suggestion = sales_crud.suggest_sell_price(db, TENANT, item.id)

        assert suggestion == {"item_id": item.id, "price_usd": Decimal("2.5"), "source": "item",
                              "price_list_id": None}

    def test_default_price_list_wins(self, db):
        item = make_item(db, "P1", "Pen", base_sell_price=Decimal("2.5"))
        price_list = PriceList(tenant_id=TENANT, code="RETAIL", is_default=True)
        db.add(price_list)
        db.flush()
        db.add(PriceListItem(tenant_id=TENANT, price_list_id=price_list.id, item_id=item.id,
                             sell_price_usd=Decimal("3")))
        db.flush()

        suggestion = sales_crud.suggest_sell_price(db, TENANT, item.id)

        assert suggestion["source"] == "price_list"
        assert suggestion["price_usd"] == Decimal("3")


class TestCustomerReturns:
    """Tests for customer returns."""

    def _sale(self, db, customer, warehouse, item):
        return sales_crud.create_sale(db, TENANT, sale_data(customer, warehouse),
                                      [{"item_id": item.id, "quantity": Decimal("5"), "price": Decimal("10")}], USER)

    def test_stock_moves_only_when_received(self, db, customer, warehouse, stocked_item):
        """Creating a return moves nothing; receiving puts the goods back."""
        sale = self._sale(db, customer, warehouse, stocked_item)
        customer_return = customer_returns_crud.create_customer_return(
            db, TENANT,
            {"customer_id": customer.id, "warehouse_id": warehouse.id, "sale_id": sale.id, "date": SALE_DATE},
            [{"item_id": stocked_item.id, "quantity": Decimal("2"), "price_usd": Decimal("10")}], USER,
        )

        assert customer_return.code == "CRT-000001"
        assert customer_return.total_usd == Decimal("20")
        # cost taken from the sale line
        assert customer_return.total_profit == Decimal("12")
        assert inventory_crud.get_quantity(db, TENANT, stocked_item.id, warehouse.id) == Decimal("5")

        customer_returns_crud.mark_received(db, customer_return, USER)

        assert customer_return.is_received
        assert customer_return.received_by == USER
        assert inventory_crud.get_quantity(db, TENANT, stocked_item.id, warehouse.id) == Decimal("7")

    def test_receive_only_once(self, db, customer, warehouse, stocked_item):
        customer_return = customer_returns_crud.create_customer_return(
            db, TENANT, {"customer_id": customer.id, "warehouse_id": warehouse.id, "date": SALE_DATE},
            [{"item_id": stocked_item.id, "quantity": Decimal("1"), "price_usd": Decimal("10")}], USER,
        )
        customer_returns_crud.mark_received(db, customer_return, USER)

        with pytest.raises(BusinessRuleError):
            customer_returns_crud.mark_received(db, customer_return, USER)
        assert inventory_crud.get_quantity(db, TENANT, stocked_item.id, warehouse.id) == Decimal("11")

    def test_sale_of_other_customer_rejected(self, db, customer, warehouse, stocked_item):
        other = make_partner(db, "CUS2", "Other", is_customer=True)
        sale = self._sale(db, customer, warehouse, stocked_item)

        with pytest.raises(BusinessRuleError):
            customer_returns_crud.create_customer_return(
                db, TENANT,
                {"customer_id": other.id, "warehouse_id": warehouse.id, "sale_id": sale.id, "date": SALE_DATE},
                [{"item_id": stocked_item.id, "quantity": Decimal("1"), "price_usd": Decimal("10")}], USER,
            )

    def test_delete_received_takes_stock_back_out(self, db, customer, warehouse, stocked_item):
        customer_return = customer_returns_crud.create_customer_return(
            db, TENANT, {"customer_id": customer.id, "warehouse_id": warehouse.id, "date": SALE_DATE},
            [{"item_id": stocked_item.id, "quantity": Decimal("2"), "price_usd": Decimal("10")}], USER,
        )
        customer_returns_crud.mark_received(db, customer_return, USER)

        customer_returns_crud.delete_customer_return(db, customer_return, USER)

        assert inventory_crud.get_quantity(db, TENANT, stocked_item.id, warehouse.id) == Decimal("10")
