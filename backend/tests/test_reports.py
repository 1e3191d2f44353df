"""Tests for the capital, profit and expense reports."""

from datetime import date
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from conftest import OTHER_TENANT, TENANT, USER, make_item, make_partner, make_warehouse, purchase_data
from crud import capital_report
from crud import credit_debit_notes as notes_crud
from crud import customer_returns as customer_returns_crud
from crud import employees as employees_crud
from crud import expense_report
from crud import expenses as expenses_crud
from crud import inventory as inventory_crud
from crud import profit_report
from crud import purchases as purchases_crud
from crud import sales as sales_crud
from models.accounts import Account, AccountType
from models.app_config import AppConfig
from models.capital_snapshots import CapitalSnapshot
from models.credit_debit_notes import NoteType, PartnerRole
from tasks.capital_snapshot_tasks import take_monthly_capital_snapshots

APRIL = date(2024, 4, 15)


@pytest.fixture
def priced_stock(db, warehouse):
    """10 units priced at 4 in a warehouse counted in total stock."""
    item = make_item(db, "R1", "Router", starting_price="4")
    inventory_crud.add(db, TENANT, item.id, warehouse.id, 10)
    return item


class TestCapitalReport:
    """Tests for get_capital_report()."""

    def test_stock_and_default_vat(self, db, priced_stock):
        """Stock at current price with the default 11% VAT on top."""
        report = capital_report.get_capital_report(db, TENANT)

        assert report["stock"] == Decimal("40.00")
        assert report["vat_on_stock"] == Decimal("4.40")
        assert report["net_stock"] == Decimal("44.40")

    def test_configured_tax_percent(self, db, priced_stock):
        db.add(AppConfig(tenant_id=TENANT, name="default_tax_percent", value="5"))
        db.flush()

        assert capital_report.get_capital_report(db, TENANT)["vat_on_stock"] == Decimal("2.00")

    def test_excluded_warehouse_not_counted(self, db, priced_stock):
        outlet = make_warehouse(db, "OUT", "Consignment", include_in_total_stock=False)
        inventory_crud.add(db, TENANT, priced_stock.id, outlet.id, 5)

        assert capital_report.get_capital_report(db, TENANT)["stock"] == Decimal("40.00")

    def test_full_result(self, db, supplier, item, warehouse, priced_stock):
        """Pending purchases, unpaid customers and accounts roll up; debt comes off last."""
        purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                       [{"item_id": item.id, "quantity": Decimal("2"), "price": Decimal("5")}], USER)
        make_partner(db, "CUS7", "Owes us", is_customer=True, opening_balance=Decimal("50"))
        db.add_all([
            Account(tenant_id=TENANT, name="Bank", account_type=AccountType.BANK, current_balance=Decimal("100")),
            Account(tenant_id=TENANT, name="Loan", account_type=AccountType.DEBT, current_balance=Decimal("-30")),
            Account(tenant_id=TENANT, name="Petty", current_balance=Decimal("999"), include_in_total=False),
        ])
        db.flush()

        report = capital_report.get_capital_report(db, TENANT)

        assert report["pending_purchases"] == Decimal("10.00")
        assert report["net_stock"] == Decimal("54.40")
        assert report["unpaid_customers"] == Decimal("50.00")
        assert report["accounts_total"] == Decimal("100.00")
        assert report["net_capital"] == Decimal("204.40")
        assert report["debt_accounts"] == Decimal("-30.00")
        assert report["final_result"] == Decimal("174.40")

    def test_other_tenant_is_empty(self, db, priced_stock):
        report = capital_report.get_capital_report(db, OTHER_TENANT)

        assert report["final_result"] == Decimal("0.00")


class TestCapitalSnapshots:
    """Tests for month-end capital snapshots."""

    def test_snapshot_replaces_same_month(self, db, priced_stock, warehouse):
        first = capital_report.take_snapshot(db, TENANT, 2024, 4)
        inventory_crud.add(db, TENANT, priced_stock.id, warehouse.id, 10)

        second = capital_report.take_snapshot(db, TENANT, 2024, 4)

        assert first.id == second.id
        assert second.net_capital == Decimal("88.80")
        assert db.query(CapitalSnapshot).count() == 1
        assert second.payload["stock"] == "80.00"

    def test_history_in_month_order(self, db, priced_stock):
        for month in (3, 1, 2):
            capital_report.take_snapshot(db, TENANT, 2024, month)

        history = capital_report.get_history(db, TENANT, year=2024)

        assert [snapshot.month for snapshot in history] == [1, 2, 3]

    def test_tenants_from_warehouses_and_accounts(self, db, warehouse):
        db.add(Account(tenant_id=OTHER_TENANT, name="Cash"))
        db.flush()

        assert capital_report.get_tenant_ids(db) == [TENANT, OTHER_TENANT]


@pytest.fixture
def april_activity(db, warehouse, customer, priced_stock, account):
    """A month with a sale, a received return, expenses, a salary and a credit note."""
    sale = sales_crud.create_sale(db, TENANT, {"customer_id": customer.id, "warehouse_id": warehouse.id, "date": APRIL},
                                  [{"item_id": priced_stock.id, "quantity": Decimal("2"), "price": Decimal("10")}],
                                  USER)
    customer_return = customer_returns_crud.create_customer_return(
        db, TENANT, {"customer_id": customer.id, "warehouse_id": warehouse.id, "sale_id": sale.id, "date": APRIL},
        [{"item_id": priced_stock.id, "quantity": Decimal("1"), "price_usd": Decimal("10")}], USER,
    )
    customer_returns_crud.mark_received(db, customer_return, USER)
    # not yet received, so not in the report
    customer_returns_crud.create_customer_return(
        db, TENANT, {"customer_id": customer.id, "warehouse_id": warehouse.id, "date": APRIL},
        [{"item_id": priced_stock.id, "quantity": Decimal("1"), "price_usd": Decimal("10")}], USER,
    )

    office = expenses_crud.create_category(db, TENANT, {"name": "Office"}, USER)
    owner = expenses_crud.create_category(db, TENANT, {"name": "Owner draw", "exclude_from_profit": True}, USER)
    for category, amount in ((office, "5"), (owner, "100")):
        expenses_crud.create_transaction(db, TENANT, {"expense_category_id": category.id, "account_id": account.id,
                                                      "date": APRIL, "amount_usd": Decimal(amount)}, USER)

    employee = employees_crud.create_employee(db, TENANT, {"name": "Ana", "base_salary": Decimal("7")}, USER)
    employees_crud.create_salary(db, TENANT, {"employee_id": employee.id, "year": 2024, "month": 4}, USER)

    notes_crud.create_note(db, TENANT, {"partner_id": customer.id, "partner_role": PartnerRole.CUSTOMER,
                                        "type": NoteType.CREDIT, "date": APRIL, "amount_usd": Decimal("1")}, USER)
    return {"office": office, "owner": owner, "employee": employee}


class TestProfitReport:
    """Tests for the monthly profit report."""

    def test_april_row(self, db, april_activity):
        report = profit_report.get_monthly_profit_report(db, TENANT, 2024)
        april = report["months"][3]

        assert april["month"] == 4
        assert april["sales"] == Decimal("20")
        assert april["sales_profit"] == Decimal("12")
        assert april["returns"] == Decimal("10")
        assert april["net_profit"] == Decimal("6")
        assert april["expenses"] == Decimal("-5")
        assert april["salaries"] == Decimal("-7")
        assert april["credit_notes"] == Decimal("-1")
        assert april["final_profit"] == Decimal("-7")

    def test_totals_cover_the_year(self, db, april_activity):
        report = profit_report.get_monthly_profit_report(db, TENANT, 2024)

        assert len(report["months"]) == 12
        assert report["totals"]["final_profit"] == Decimal("-7")
        assert profit_report.get_monthly_profit_report(db, TENANT, 2023)["totals"]["sales"] == Decimal("0")

    def test_export_workbook(self, db, april_activity):
        output = profit_report.export_monthly_profit_report(db, TENANT, 2024)

        sheet = load_workbook(output).active
        assert sheet.title == "Profit 2024"
        assert sheet["A1"].value == "Month"
        assert sheet["A5"].value == "April"
        assert sheet["A14"].value == "TOTAL"
        assert sheet["K14"].value == -7


class TestExpenseReport:
    """Tests for the expense and salary reports."""

    def test_expenses_grouped_by_category(self, db, april_activity):
        report = expense_report.get_expense_report(db, TENANT, date(2024, 4, 1), date(2024, 4, 30))

        totals = {row["category_id"]: row["total"] for row in report["categories"]}
        assert totals[april_activity["office"].id] == Decimal("5")
        assert totals[april_activity["owner"].id] == Decimal("100")
        assert report["included_total"] == Decimal("5")
        assert report["excluded_total"] == Decimal("100")
        assert report["total"] == Decimal("105")

    def test_sub_category_rolls_into_parent(self, db, april_activity, account):
        paper = expenses_crud.create_category(db, TENANT, {"name": "Paper", "parent_id": april_activity["office"].id},
                                              USER)
        expenses_crud.create_transaction(db, TENANT, {"expense_category_id": paper.id, "account_id": account.id,
                                                      "date": APRIL, "amount_usd": Decimal("2")}, USER)

        report = expense_report.get_expense_report(db, TENANT, date(2024, 4, 1), date(2024, 4, 30))

        office = next(row for row in report["categories"] if row["category_id"] == april_activity["office"].id)
        assert office["total"] == Decimal("7")
        assert office["children"] == [{"category_name": "Paper", "total": Decimal("2")}]

    def test_salary_report(self, db, april_activity):
        report = expense_report.get_salary_report(db, TENANT, 2024)

        assert report["total"] == Decimal("7")


class TestSnapshotTask:
    """Tests for the month-end snapshot job."""

    def test_snapshots_every_tenant(self, db):
        make_warehouse(db, "WH1", "Main")
        make_warehouse(db, "WH1", "Main", tenant_id=OTHER_TENANT)
        db.commit()

        take_monthly_capital_snapshots(2024, 5)

        rows = db.query(CapitalSnapshot).order_by(CapitalSnapshot.tenant_id).all()
        assert [(row.tenant_id, row.year, row.month) for row in rows] == [(TENANT, 2024, 5), (OTHER_TENANT, 2024, 5)]
