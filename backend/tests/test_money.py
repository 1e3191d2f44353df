"""Tests for account balances, payments, notes, expenses, salaries and partner balances."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TENANT, USER, make_item, make_partner, purchase_data
from crud import credit_debit_notes as notes_crud
from crud import employees as employees_crud
from crud import expenses as expenses_crud
from crud import inventory as inventory_crud
from crud import partner_balances
from crud import payments as payments_crud
from crud import purchases as purchases_crud
from crud import sales as sales_crud
from exceptions import BusinessRuleError, ConflictError
from models.credit_debit_notes import NoteType, PartnerRole

PAY_DATE = date(2024, 6, 3)


def customer_payment(db, customer, account, amount):
    return payments_crud.create_customer_payment(
        db, TENANT,
        {"customer_id": customer.id, "account_id": account.id, "payment_date": PAY_DATE, "amount_usd": Decimal(amount)},
        USER,
    )


class TestPayments:
    """Tests for customer and supplier payments."""

    def test_customer_payment_raises_account(self, db, customer, account):
        customer_payment(db, customer, account, "50")

        assert account.current_balance == Decimal("50")

    def test_update_reverses_then_applies(self, db, customer, account):
        payment = customer_payment(db, customer, account, "50")

        payments_crud.update_customer_payment(db, payment, {"amount_usd": Decimal("30")}, USER)

        assert account.current_balance == Decimal("30")

    def test_delete_reverses(self, db, customer, account):
        payment = customer_payment(db, customer, account, "50")

        payments_crud.delete_customer_payment(db, payment, USER)

        assert account.current_balance == Decimal("0")
        assert payment.deleted_at is not None

    def test_supplier_payment_lowers_account(self, db, supplier, account):
        payments_crud.create_supplier_payment(
            db, TENANT,
            {"supplier_id": supplier.id, "account_id": account.id, "payment_date": PAY_DATE,
             "amount_usd": Decimal("20")},
            USER,
        )

        assert account.current_balance == Decimal("-20")

    def test_non_positive_amount_rejected(self, db, customer, account):
        with pytest.raises(BusinessRuleError):
            customer_payment(db, customer, account, "0")

    def test_inactive_account_rejected(self, db, customer, account):
        account.is_active = False
        db.flush()

        with pytest.raises(BusinessRuleError):
            customer_payment(db, customer, account, "10")


class TestExpensesAndSalaries:
    """Tests for expense transactions and salaries."""

    def test_expense_lowers_account(self, db, account):
        category = expenses_crud.create_category(db, TENANT, {"name": "Rent"}, USER)

        expense = expenses_crud.create_transaction(
            db, TENANT,
            {"expense_category_id": category.id, "account_id": account.id, "date": PAY_DATE,
             "amount_usd": Decimal("15")},
            USER,
        )
        assert account.current_balance == Decimal("-15")

        expenses_crud.delete_transaction(db, expense, USER)
        assert account.current_balance == Decimal("0")

    def test_duplicate_category_name_conflicts(self, db):
        expenses_crud.create_category(db, TENANT, {"name": "Rent"}, USER)

        with pytest.raises(ConflictError):
            expenses_crud.create_category(db, TENANT, {"name": "Rent"}, USER)

    def test_category_nesting_one_level(self, db):
        parent = expenses_crud.create_category(db, TENANT, {"name": "Office"}, USER)
        child = expenses_crud.create_category(db, TENANT, {"name": "Paper", "parent_id": parent.id}, USER)

        with pytest.raises(BusinessRuleError):
            expenses_crud.create_category(db, TENANT, {"name": "A4", "parent_id": child.id}, USER)
        assert expenses_crud.category_ids_with_children(db, TENANT, parent.id) == [parent.id, child.id]

    def test_salary_final_total_paid_from_account(self, db, account):
        employee = employees_crud.create_employee(db, TENANT, {"name": "Sam", "base_salary": Decimal("100")}, USER)

        salary = employees_crud.create_salary(
            db, TENANT,
            {"employee_id": employee.id, "account_id": account.id, "year": 2024, "month": 6,
             "bonus": Decimal("10"), "deduction": Decimal("5")},
            USER,
        )

        assert salary.base_amount == Decimal("100")
        assert salary.final_total == Decimal("105")
        assert account.current_balance == Decimal("-105")

    def test_one_salary_per_month(self, db):
        employee = employees_crud.create_employee(db, TENANT, {"name": "Sam", "base_salary": Decimal("100")}, USER)
        data = {"employee_id": employee.id, "year": 2024, "month": 6}
        employees_crud.create_salary(db, TENANT, dict(data), USER)

        with pytest.raises(ConflictError):
            employees_crud.create_salary(db, TENANT, dict(data), USER)

    def test_invalid_month_rejected(self, db):
        employee = employees_crud.create_employee(db, TENANT, {"name": "Sam"}, USER)

        with pytest.raises(BusinessRuleError):
            employees_crud.create_salary(db, TENANT, {"employee_id": employee.id, "year": 2024, "month": 13}, USER)


class TestPartnerBalances:
    """Tests for customer and supplier running balances."""

    def test_customer_balance(self, db, warehouse, account):
        customer = make_partner(db, "CUS9", "Balance Co", is_customer=True, opening_balance=Decimal("10"))
        item = make_item(db, "B1", "Brick", starting_price="1")
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 5)
        sales_crud.create_sale(db, TENANT, {"customer_id": customer.id, "warehouse_id": warehouse.id,
                                            "date": PAY_DATE},
                               [{"item_id": item.id, "quantity": Decimal("2"), "price": Decimal("10")}], USER)
        customer_payment(db, customer, account, "5")
        for note_type, amount in ((NoteType.CREDIT, "3"), (NoteType.DEBIT, "1")):
            notes_crud.create_note(db, TENANT, {"partner_id": customer.id, "partner_role": PartnerRole.CUSTOMER,
                                                "type": note_type, "date": PAY_DATE, "amount_usd": Decimal(amount)},
                                   USER)

        breakdown = partner_balances.get_partner_balances(db, TENANT, customer.id)["customer"]

        assert breakdown["sales"] == Decimal("20")
        assert breakdown["balance"] == Decimal("23")
        unpaid = partner_balances.get_unpaid_customers(db, TENANT)
        assert [row["customer_id"] for row in unpaid] == [customer.id]

    def test_supplier_balance_counts_undelivered_purchases(self, db, supplier, warehouse, item, account):
        purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                       [{"item_id": item.id, "quantity": Decimal("4"), "price": Decimal("10")}], USER)
        payments_crud.create_supplier_payment(
            db, TENANT,
            {"supplier_id": supplier.id, "account_id": account.id, "payment_date": PAY_DATE,
             "amount_usd": Decimal("15")},
            USER,
        )

        assert partner_balances.get_supplier_balance(db, TENANT, supplier.id) == Decimal("25")

    def test_note_codes_per_type(self, db, customer):
        credit = notes_crud.create_note(db, TENANT, {"partner_id": customer.id, "partner_role": PartnerRole.CUSTOMER,
                                                     "type": NoteType.CREDIT, "date": PAY_DATE,
                                                     "amount_usd": Decimal("1")}, USER)
        debit = notes_crud.create_note(db, TENANT, {"partner_id": customer.id, "partner_role": PartnerRole.CUSTOMER,
                                                    "type": NoteType.DEBIT, "date": PAY_DATE,
                                                    "amount_usd": Decimal("1")}, USER)

        assert (credit.code, debit.code) == ("CRN-000001", "DBN-000001")

    def test_note_for_wrong_role_rejected(self, db, customer):
        with pytest.raises(BusinessRuleError):
            notes_crud.create_note(db, TENANT, {"partner_id": customer.id, "partner_role": PartnerRole.SUPPLIER,
                                                "type": NoteType.CREDIT, "date": PAY_DATE,
                                                "amount_usd": Decimal("1")}, USER)
