"""
Account and partner statements.

A statement lists every document that moved a balance, oldest first, with a
running balance. Documents dated before ``start_date`` are folded into the
opening balance, so a statement for any window closes on the same figure the
full history reaches on its ``end_date``.

Account statement: money in is ``credit``, money out is ``debit`` and the
balance is ``opening + credit - debit``.

Partner statement: follows the signs of ``partner_balances``. For a
customer, sales and debit notes are ``debit`` (the customer owes more) and
returns, payments and credit notes are ``credit``; for a supplier the sides
are swapped, so in both cases a positive balance is what is still owed.
"""

import calendar
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from crud.account_movements import signed_adjust_amount
from crud.lookups import get_account, get_partner
from exceptions import BusinessRuleError
from models.account_movements import AccountAdjust, AccountTransfer, IncomeTransaction
from models.credit_debit_notes import CreditDebitNote, NoteType, PartnerRole
from models.customer_payments import CustomerPayment
from models.customer_returns import CustomerReturn
from models.employees import Salary
from models.expenses import ExpenseTransaction
from models.purchase_returns import PurchaseReturn
from models.purchases import Purchase
from models.sales import Sale
from models.supplier_payments import SupplierPayment
from utils import to_decimal

logger = logging.getLogger("statements")

ZERO = Decimal("0")


def _entry(entry_date: date, entry_type: str, source: str, source_id: int, code: Optional[str],
           debit=ZERO, credit=ZERO, note: Optional[str] = None) -> dict:
    return {
        "date": entry_date,
        "type": entry_type,
        "code": code,
        "debit": to_decimal(debit),
        "credit": to_decimal(credit),
        "note": note,
        "source": source,
        "source_id": source_id,
    }


def salary_date(salary: Salary) -> date:
    """Salaries carry a period, not a date; they are booked on the last day of their month."""
    return date(salary.year, salary.month, calendar.monthrange(salary.year, salary.month)[1])


def _build_statement(entries: List[dict], opening, start_date: Optional[date], end_date: Optional[date],
                     increase: str) -> dict:
    """Sort, fold the entries before the window into the opening balance and run the balance."""
    decrease = "credit" if increase == "debit" else "debit"
    entries.sort(key=lambda entry: (entry["date"], entry["source"], entry["source_id"]))

    opening = to_decimal(opening)
    rows = []
    for entry in entries:
        if end_date is not None and entry["date"] > end_date:
            continue
        if start_date is not None and entry["date"] < start_date:
            opening += entry[increase] - entry[decrease]
            continue
        rows.append(entry)

    balance = opening
    for row in rows:
        balance += row[increase] - row[decrease]
        row["balance"] = balance

    return {
        "start_date": start_date,
        "end_date": end_date,
        "opening_balance": opening,
        "total_debit": sum((row["debit"] for row in rows), ZERO),
        "total_credit": sum((row["credit"] for row in rows), ZERO),
        "closing_balance": balance,
        "transactions": rows,
    }


def get_account_statement(db: Session, tenant_id: str, account_id: int, start_date: Optional[date] = None,
                          end_date: Optional[date] = None) -> dict:
    account = get_account(db, tenant_id, account_id)
    entries = []

    for payment in db.query(CustomerPayment).filter(CustomerPayment.tenant_id == tenant_id,
                                                    CustomerPayment.account_id == account.id):
        entries.append(_entry(payment.payment_date, "Customer Payment", "customer_payment", payment.id,
                              payment.reference_number, credit=payment.amount_usd, note=payment.notes))
    for payment in db.query(SupplierPayment).filter(SupplierPayment.tenant_id == tenant_id,
                                                    SupplierPayment.account_id == account.id):
        entries.append(_entry(payment.payment_date, "Supplier Payment", "supplier_payment", payment.id,
                              payment.reference_number, debit=payment.amount_usd, note=payment.notes))
    for expense in db.query(ExpenseTransaction).filter(ExpenseTransaction.tenant_id == tenant_id,
                                                       ExpenseTransaction.account_id == account.id):
        entries.append(_entry(expense.date, "Expense", "expense", expense.id, None, debit=expense.amount_usd,
                              note=expense.category.name if expense.category else expense.description))
    for salary in db.query(Salary).filter(Salary.tenant_id == tenant_id, Salary.account_id == account.id):
        entries.append(_entry(salary_date(salary), "Salary", "salary", salary.id, None, debit=salary.final_total,
                              note=salary.employee.name if salary.employee else None))
    for income in db.query(IncomeTransaction).filter(IncomeTransaction.tenant_id == tenant_id,
                                                     IncomeTransaction.account_id == account.id):
        entries.append(_entry(income.date, "Income", "income", income.id, income.code, credit=income.amount,
                              note=income.note))
    for transfer in db.query(AccountTransfer).filter(AccountTransfer.tenant_id == tenant_id,
                                                     AccountTransfer.from_account_id == account.id):
        entries.append(_entry(transfer.date, "Account Transfer (Sent)", "account_transfer", transfer.id,
                              transfer.code, debit=transfer.sent_amount, note=transfer.note))
    for transfer in db.query(AccountTransfer).filter(AccountTransfer.tenant_id == tenant_id,
                                                     AccountTransfer.to_account_id == account.id):
        entries.append(_entry(transfer.date, "Account Transfer (Received)", "account_transfer", transfer.id,
                              transfer.code, credit=transfer.received_amount, note=transfer.note))
    for adjust in db.query(AccountAdjust).filter(AccountAdjust.tenant_id == tenant_id,
                                                 AccountAdjust.account_id == account.id):
        signed = signed_adjust_amount(adjust)
        entries.append(_entry(adjust.date, f"Account Adjust ({adjust.type.value})", "account_adjust", adjust.id,
                              adjust.code, debit=max(-signed, ZERO), credit=max(signed, ZERO), note=adjust.note))

    statement = _build_statement(entries, account.opening_balance, start_date, end_date, increase="credit")
    statement.update(account_id=account.id, account_name=account.name,
                     current_balance=to_decimal(account.current_balance))
    logger.debug(f"Statement of account {account.id}: {len(statement['transactions'])} rows for tenant {tenant_id}")
    return statement


def _note_entries(db: Session, tenant_id: str, partner_id: int, role: PartnerRole, raises_balance: str):
    lowers_balance = "credit" if raises_balance == "debit" else "debit"
    entries = []
    for note in db.query(CreditDebitNote).filter(CreditDebitNote.tenant_id == tenant_id,
                                                 CreditDebitNote.partner_id == partner_id,
                                                 CreditDebitNote.partner_role == role):
        # debit notes raise what the partner balance says is owed, credit notes lower it
        side = raises_balance if note.type == NoteType.DEBIT else lowers_balance
        label = "Debit Note" if note.type == NoteType.DEBIT else "Credit Note"
        entries.append(_entry(note.date, label, "credit_debit_note", note.id, note.code,
                              note=note.note, **{side: note.amount_usd}))
    return entries


def get_partner_statement(db: Session, tenant_id: str, partner_id: int, role: str = "customer",
                          start_date: Optional[date] = None, end_date: Optional[date] = None) -> dict:
    partner_role = PartnerRole(role)
    partner = get_partner(db, tenant_id, partner_id)
    if not (partner.is_customer if partner_role == PartnerRole.CUSTOMER else partner.is_supplier):
        raise BusinessRuleError(f"Business partner '{partner.name}' is not a {partner_role.value}")

    if partner_role == PartnerRole.CUSTOMER:
        increase = "debit"
        entries = _note_entries(db, tenant_id, partner.id, partner_role, increase)
        for sale in db.query(Sale).filter(Sale.tenant_id == tenant_id, Sale.customer_id == partner.id):
            entries.append(_entry(sale.date, "Sale Invoice", "sale", sale.id, sale.code, debit=sale.total_usd,
                                  note=sale.note))
        for customer_return in db.query(CustomerReturn).filter(CustomerReturn.tenant_id == tenant_id,
                                                               CustomerReturn.customer_id == partner.id):
            entries.append(_entry(customer_return.date, "Sales Return", "customer_return", customer_return.id,
                                  customer_return.code, credit=customer_return.total_usd,
                                  note=customer_return.note))
        for payment in db.query(CustomerPayment).filter(CustomerPayment.tenant_id == tenant_id,
                                                        CustomerPayment.customer_id == partner.id):
            entries.append(_entry(payment.payment_date, "Payment", "customer_payment", payment.id,
                                  payment.reference_number, credit=payment.amount_usd, note=payment.notes))
    else:
        increase = "credit"
        entries = _note_entries(db, tenant_id, partner.id, partner_role, increase)
        for purchase in db.query(Purchase).filter(Purchase.tenant_id == tenant_id, Purchase.supplier_id == partner.id):
            entries.append(_entry(purchase.date, "Purchase", "purchase", purchase.id, purchase.code,
                                  credit=purchase.total_usd, note=purchase.note))
        for purchase_return in db.query(PurchaseReturn).filter(PurchaseReturn.tenant_id == tenant_id,
                                                               PurchaseReturn.supplier_id == partner.id):
            entries.append(_entry(purchase_return.date, "Purchase Return", "purchase_return", purchase_return.id,
                                  purchase_return.code, debit=purchase_return.total_usd, note=purchase_return.note))
        for payment in db.query(SupplierPayment).filter(SupplierPayment.tenant_id == tenant_id,
                                                        SupplierPayment.supplier_id == partner.id):
            entries.append(_entry(payment.payment_date, "Payment", "supplier_payment", payment.id,
                                  payment.reference_number, debit=payment.amount_usd, note=payment.notes))

    statement = _build_statement(entries, partner.opening_balance, start_date, end_date, increase=increase)
    statement.update(partner_id=partner.id, partner_name=partner.name, role=partner_role.value)
    return statement
