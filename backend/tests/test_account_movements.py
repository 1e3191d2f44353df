"""Tests for account transfers, account adjusts, income and statements."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TENANT, USER, make_item, make_partner, purchase_data
from crud import account_movements as movements_crud
from crud import credit_debit_notes as notes_crud
from crud import employees as employees_crud
from crud import expenses as expenses_crud
from crud import inventory as inventory_crud
from crud import partner_balances
from crud import payments as payments_crud
from crud import purchases as purchases_crud
from crud import sales as sales_crud
from crud import statements
from exceptions import BusinessRuleError, ConflictError
from models.account_movements import AccountAdjustType
from models.accounts import Account
from models.credit_debit_notes import NoteType, PartnerRole

MOVE_DATE = date(2024, 6, 1)


def make_account(db, name, opening="0"):
    account = Account(tenant_id=TENANT, name=name, opening_balance=Decimal(opening), current_balance=Decimal(opening))
    db.add(account)
    db.flush()
    return account


@pytest.fixture
def bank(db):
    return make_account(db, "Bank", "100")


def transfer(db, source, target, sent, when=MOVE_DATE, **kwargs):
    return movements_crud.create_transfer(
        db, TENANT,
        {"date": when, "from_account_id": source.id, "to_account_id": target.id, "sent_amount": Decimal(sent),
         **kwargs},
        USER,
    )


def adjust(db, account, adjust_type, amount, when=MOVE_DATE):
    return movements_crud.create_adjust(
        db, TENANT, {"date": when, "account_id": account.id, "type": adjust_type, "amount": Decimal(amount)}, USER,
    )


def income(db, account, amount, when=MOVE_DATE):
    category = movements_crud.create_income_category(db, TENANT, {"name": f"Interest {amount}"}, USER)
    return movements_crud.create_income(
        db, TENANT,
        {"date": when, "income_category_id": category.id, "account_id": account.id, "amount": Decimal(amount)},
        USER,
    )


class TestAccountTransfers:
    """Tests for transfers between accounts."""

    def test_transfer_moves_both_balances(self, db, bank, account):
        moved = transfer(db, bank, account, "40")

        assert moved.code == "ATR-000001"
        assert bank.current_balance == Decimal("60")
        assert account.current_balance == Decimal("40")

    def test_received_amount_follows_rate(self, db, bank, account):
        """Without a received amount the sent amount is converted at the rate."""
        moved = transfer(db, bank, account, "10", currency_rate=Decimal("1.5"))

        assert moved.received_amount == Decimal("15")
        assert bank.current_balance == Decimal("90")
        assert account.current_balance == Decimal("15")

    def test_same_account_rejected(self, db, bank):
        with pytest.raises(BusinessRuleError):
            transfer(db, bank, bank, "10")

    def test_non_positive_amount_rejected(self, db, bank, account):
        with pytest.raises(BusinessRuleError):
            transfer(db, bank, account, "0")

    def test_update_reverses_then_applies(self, db, bank, account):
        moved = transfer(db, bank, account, "40")
        other = make_account(db, "Safe")

        movements_crud.update_transfer(db, moved, {"to_account_id": other.id, "sent_amount": Decimal("25"),
                                                   "received_amount": Decimal("25")}, USER)

        assert bank.current_balance == Decimal("75")
        assert account.current_balance == Decimal("0")
        assert other.current_balance == Decimal("25")

    def test_delete_restores_balances(self, db, bank, account):
        moved = transfer(db, bank, account, "40")

        movements_crud.delete_transfer(db, moved, USER)

        assert moved.deleted_at is not None
        assert bank.current_balance == Decimal("100")
        assert account.current_balance == Decimal("0")

    def test_inactive_account_rejected(self, db, bank, account):
        bank.is_active = False
        db.flush()

        with pytest.raises(BusinessRuleError):
            transfer(db, bank, account, "10")


class TestAccountAdjusts:
    """Tests for manual credit/debit corrections."""

    def test_credit_raises_and_debit_lowers(self, db, account):
        credit = adjust(db, account, AccountAdjustType.CREDIT, "30")
        debit = adjust(db, account, AccountAdjustType.DEBIT, "10")

        assert (credit.code, debit.code) == ("AAD-000001", "AAD-000002")
        assert account.current_balance == Decimal("20")

    def test_type_change_flips_effect(self, db, account):
        correction = adjust(db, account, AccountAdjustType.CREDIT, "30")

        movements_crud.update_adjust(db, correction, {"type": AccountAdjustType.DEBIT}, USER)

        assert account.current_balance == Decimal("-30")

    def test_delete_reverses(self, db, account):
        correction = adjust(db, account, AccountAdjustType.DEBIT, "12")

        movements_crud.delete_adjust(db, correction, USER)

        assert account.current_balance == Decimal("0")

    def test_zero_amount_rejected(self, db, account):
        with pytest.raises(BusinessRuleError):
            adjust(db, account, AccountAdjustType.CREDIT, "0")


class TestIncome:
    """Tests for income categories and income transactions."""

    def test_income_credits_account(self, db, account):
        received = income(db, account, "50")

        assert received.code == "INC-000001"
        assert account.current_balance == Decimal("50")

        movements_crud.update_income(db, received, {"amount": Decimal("20")}, USER)
        assert account.current_balance == Decimal("20")

        movements_crud.delete_income(db, received, USER)
        assert account.current_balance == Decimal("0")

    def test_duplicate_category_conflicts(self, db):
        movements_crud.create_income_category(db, TENANT, {"name": "Rent received"}, USER)

        with pytest.raises(ConflictError):
            movements_crud.create_income_category(db, TENANT, {"name": "Rent received"}, USER)


@pytest.fixture
def bank_history(db, bank, account, customer):
    """
    Opening 100, then: 20 May transfer out 40, 3 Jun customer payment 50, 10 Jun expense 15,
    15 Jun credit adjust 5, June salary 20 (booked 30 Jun), 1 Jul income 10. Ends at 90.
    """
    transfer(db, bank, account, "40", when=date(2024, 5, 20))
    payments_crud.create_customer_payment(
        db, TENANT, {"customer_id": customer.id, "account_id": bank.id, "payment_date": date(2024, 6, 3),
                     "amount_usd": Decimal("50")}, USER,
    )
    rent = expenses_crud.create_category(db, TENANT, {"name": "Rent"}, USER)
    expenses_crud.create_transaction(db, TENANT, {"expense_category_id": rent.id, "account_id": bank.id,
                                                  "date": date(2024, 6, 10), "amount_usd": Decimal("15")}, USER)
    adjust(db, bank, AccountAdjustType.CREDIT, "5", when=date(2024, 6, 15))
    employee = employees_crud.create_employee(db, TENANT, {"name": "Sam", "base_salary": Decimal("20")}, USER)
    employees_crud.create_salary(db, TENANT, {"employee_id": employee.id, "account_id": bank.id, "year": 2024,
                                              "month": 6}, USER)
    income(db, bank, "10", when=date(2024, 7, 1))
    return bank


class TestAccountStatement:
    """Tests for get_account_statement()."""

    def test_full_history_matches_balance(self, db, bank_history):
        statement = statements.get_account_statement(db, TENANT, bank_history.id)

        assert [row["type"] for row in statement["transactions"]] == [
            "Account Transfer (Sent)", "Customer Payment", "Expense", "Account Adjust (Credit)", "Salary", "Income",
        ]
        assert [row["balance"] for row in statement["transactions"]] == [
            Decimal("60"), Decimal("110"), Decimal("95"), Decimal("100"), Decimal("80"), Decimal("90"),
        ]
        assert statement["opening_balance"] == Decimal("100")
        assert statement["closing_balance"] == Decimal("90")
        assert statement["current_balance"] == Decimal("90")

    def test_window_folds_earlier_rows_into_opening(self, db, bank_history):
        """June only: the May transfer moves into the opening balance, July income is left out."""
        statement = statements.get_account_statement(db, TENANT, bank_history.id, date(2024, 6, 1),
                                                     date(2024, 6, 30))

        assert statement["opening_balance"] == Decimal("60")
        assert len(statement["transactions"]) == 4
        assert statement["total_credit"] == Decimal("55")
        assert statement["total_debit"] == Decimal("35")
        assert statement["closing_balance"] == Decimal("80")

    def test_receiving_side_of_transfer(self, db, bank_history, account):
        statement = statements.get_account_statement(db, TENANT, account.id)

        assert [(row["type"], row["credit"]) for row in statement["transactions"]] == [
            ("Account Transfer (Received)", Decimal("40")),
        ]

    def test_deleted_documents_left_out(self, db, bank, account):
        moved = transfer(db, bank, account, "40")
        movements_crud.delete_transfer(db, moved, USER)

        statement = statements.get_account_statement(db, TENANT, bank.id)

        assert statement["transactions"] == []
        assert statement["closing_balance"] == Decimal("100")


class TestPartnerStatement:
    """Tests for get_partner_statement()."""

    def test_customer_statement_closes_on_partner_balance(self, db, warehouse, account):
        """Opening 10 + sale 20 - payment 5 - credit note 3 + debit note 1."""
        customer = make_partner(db, "CUS9", "Balance Co", is_customer=True, opening_balance=Decimal("10"))
        item = make_item(db, "B1", "Brick", starting_price="1")
        inventory_crud.add(db, TENANT, item.id, warehouse.id, 5)
        sales_crud.create_sale(db, TENANT, {"customer_id": customer.id, "warehouse_id": warehouse.id,
                                            "date": date(2024, 6, 2)},
                               [{"item_id": item.id, "quantity": Decimal("2"), "price": Decimal("10")}], USER)
        payments_crud.create_customer_payment(
            db, TENANT, {"customer_id": customer.id, "account_id": account.id, "payment_date": date(2024, 6, 3),
                         "amount_usd": Decimal("5")}, USER,
        )
        for note_type, amount in ((NoteType.CREDIT, "3"), (NoteType.DEBIT, "1")):
            notes_crud.create_note(db, TENANT, {"partner_id": customer.id, "partner_role": PartnerRole.CUSTOMER,
                                                "type": note_type, "date": date(2024, 6, 4),
                                                "amount_usd": Decimal(amount)}, USER)

        statement = statements.get_partner_statement(db, TENANT, customer.id, "customer")

        assert statement["transactions"][0]["type"] == "Sale Invoice"
        assert statement["transactions"][0]["debit"] == Decimal("20")
        assert statement["total_debit"] == Decimal("21")
        assert statement["total_credit"] == Decimal("8")
        assert statement["closing_balance"] == Decimal("23")
        assert statement["closing_balance"] == partner_balances.get_customer_balance(db, TENANT, customer.id)

    def test_supplier_statement(self, db, supplier, warehouse, item, account):
        """A 40 purchase on 1 March and a 15 payment in June leave 25 owed."""
        purchases_crud.create_purchase(db, TENANT, purchase_data(supplier.id, warehouse.id),
                                       [{"item_id": item.id, "quantity": Decimal("4"), "price": Decimal("10")}], USER)
        payments_crud.create_supplier_payment(
            db, TENANT, {"supplier_id": supplier.id, "account_id": account.id, "payment_date": date(2024, 6, 3),
                         "amount_usd": Decimal("15")}, USER,
        )

        full = statements.get_partner_statement(db, TENANT, supplier.id, "supplier")
        from_april = statements.get_partner_statement(db, TENANT, supplier.id, "supplier", date(2024, 4, 1))

        assert full["closing_balance"] == Decimal("25")
        assert full["transactions"][0]["credit"] == Decimal("40")
        assert from_april["opening_balance"] == Decimal("40")
        assert [row["type"] for row in from_april["transactions"]] == ["Payment"]
        assert from_april["closing_balance"] == Decimal("25")

    def test_wrong_role_rejected(self, db, customer):
        with pytest.raises(BusinessRuleError):
            statements.get_partner_statement(db, TENANT, customer.id, "supplier")
