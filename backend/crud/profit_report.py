"""
Monthly profit report for one year.

For each month:
    net_sales    = sales - received customer returns
    net_profit   = sales profit - returns profit
    final_profit = net_profit - expenses - salaries - customer credit notes

Expenses in categories flagged ``exclude_from_profit`` are left out. Costs are
reported as negative numbers so the rows add up.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from io import BytesIO

from sqlalchemy.orm import Session

from models.credit_debit_notes import CreditDebitNote, NoteType, PartnerRole
from models.customer_returns import CustomerReturn
from models.employees import Salary
from models.expenses import ExpenseCategory, ExpenseTransaction
from models.sales import Sale
from utils import to_decimal
from utils.spreadsheets import build_workbook

MONTH_FIELDS = ("sales", "sales_profit", "returns", "returns_profit", "net_sales", "net_profit",
                "expenses", "salaries", "credit_notes", "final_profit")

EXPORT_HEADERS = ["Month", "Sales", "Sales profit", "Returns", "Returns profit", "Net sales", "Net profit",
                  "Expenses", "Salaries", "Credit notes", "Final profit"]


def _year_bounds(year: int):
    return date(year, 1, 1), date(year, 12, 31)


def get_monthly_profit_report(db: Session, tenant_id: str, year: int) -> dict:
    start, end = _year_bounds(year)
    months = {month: defaultdict(Decimal) for month in range(1, 13)}

    sales = db.query(Sale.date, Sale.total_usd, Sale.total_profit).filter(
        Sale.tenant_id == tenant_id,
        Sale.date.between(start, end),
    )
    for sale_date, total_usd, total_profit in sales:
        months[sale_date.month]["sales"] += to_decimal(total_usd)
        months[sale_date.month]["sales_profit"] += to_decimal(total_profit)

    returns = db.query(CustomerReturn.date, CustomerReturn.total_usd, CustomerReturn.total_profit).filter(
        CustomerReturn.tenant_id == tenant_id,
        CustomerReturn.is_received.is_(True),
        CustomerReturn.date.between(start, end),
    )
    for return_date, total_usd, total_profit in returns:
        months[return_date.month]["returns"] += to_decimal(total_usd)
        months[return_date.month]["returns_profit"] += to_decimal(total_profit)

    expenses = (
        db.query(ExpenseTransaction.date, ExpenseTransaction.amount_usd)
        .join(ExpenseCategory, ExpenseTransaction.expense_category_id == ExpenseCategory.id)
        .filter(
            ExpenseTransaction.tenant_id == tenant_id,
            ExpenseCategory.exclude_from_profit.is_(False),
            ExpenseTransaction.date.between(start, end),
        )
    )
    for expense_date, amount in expenses:
        months[expense_date.month]["expenses"] -= to_decimal(amount)

    salaries = db.query(Salary.month, Salary.final_total).filter(
        Salary.tenant_id == tenant_id,
        Salary.year == year,
    )
    for month, final_total in salaries:
        months[month]["salaries"] -= to_decimal(final_total)

    notes = db.query(CreditDebitNote.date, CreditDebitNote.amount_usd).filter(
        CreditDebitNote.tenant_id == tenant_id,
        CreditDebitNote.partner_role == PartnerRole.CUSTOMER,
        CreditDebitNote.type == NoteType.CREDIT,
        CreditDebitNote.date.between(start, end),
    )
    for note_date, amount in notes:
        months[note_date.month]["credit_notes"] -= to_decimal(amount)

    rows = []
    totals = defaultdict(Decimal)
    for month, values in months.items():
        values["net_sales"] = values["sales"] - values["returns"]
        values["net_profit"] = values["sales_profit"] - values["returns_profit"]
        values["final_profit"] = (values["net_profit"] + values["expenses"] + values["salaries"]
                                  + values["credit_notes"])
        row = {"month": month}
        for field in MONTH_FIELDS:
            row[field] = values[field]
            totals[field] += values[field]
        rows.append(row)

    return {"year": year, "months": rows, "totals": {field: totals[field] for field in MONTH_FIELDS}}


def export_monthly_profit_report(db: Session, tenant_id: str, year: int) -> BytesIO:
    report = get_monthly_profit_report(db, tenant_id, year)
    rows = [
        [date(year, row["month"], 1).strftime("%B")] + [float(row[field]) for field in MONTH_FIELDS]
        for row in report["months"]
    ]
    rows.append(["TOTAL"] + [float(report["totals"][field]) for field in MONTH_FIELDS])
    return build_workbook(f"Profit {year}", EXPORT_HEADERS, rows)
