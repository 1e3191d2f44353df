from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from models.employees import Employee, Salary
from models.expenses import ExpenseCategory, ExpenseTransaction
from utils import to_decimal


def get_expense_report(db: Session, tenant_id: str, start_date: date, end_date: date) -> dict:
    """
    Expenses between two dates per top-level category.

    Sub-category spending rolls up into its parent. Each category keeps its own
    ``exclude_from_profit`` flag, so a parent row carries separate included and
    excluded totals.
    """
    categories = {
        category.id: category
        for category in db.query(ExpenseCategory).execution_options(include_deleted=True).filter(
            ExpenseCategory.tenant_id == tenant_id,
        )
    }
    amounts = (
        db.query(ExpenseTransaction.expense_category_id, ExpenseTransaction.amount_usd)
        .filter(
            ExpenseTransaction.tenant_id == tenant_id,
            ExpenseTransaction.date.between(start_date, end_date),
        )
    )

    rows = {}
    for category_id, amount in amounts:
        category = categories[category_id]
        root = categories.get(category.parent_id, category) if category.parent_id else category
        row = rows.setdefault(root.id, {
            "category_id": root.id,
            "category_name": root.name,
            "included_total": Decimal("0"),
            "excluded_total": Decimal("0"),
            "children": defaultdict(Decimal),
        })
        amount = to_decimal(amount)
        if category.exclude_from_profit:
            row["excluded_total"] += amount
        else:
            row["included_total"] += amount
        if category.id != root.id:
            row["children"][category.name] += amount

    categories_out = []
    for row in sorted(rows.values(), key=lambda r: r["category_name"]):
        row["total"] = row["included_total"] + row["excluded_total"]
        row["children"] = [{"category_name": name, "total": total} for name, total in sorted(row["children"].items())]
        categories_out.append(row)

    included = sum((row["included_total"] for row in categories_out), Decimal("0"))
    excluded = sum((row["excluded_total"] for row in categories_out), Decimal("0"))
    return {
        "start_date": start_date,
        "end_date": end_date,
        "categories": categories_out,
        "included_total": included,
        "excluded_total": excluded,
        "total": included + excluded,
    }


def get_salary_report(db: Session, tenant_id: str, year: int, month: Optional[int] = None) -> dict:
    query = (
        db.query(Salary, Employee.name)
        .join(Employee, Salary.employee_id == Employee.id)
        .filter(Salary.tenant_id == tenant_id, Salary.year == year)
    )
    if month:
        query = query.filter(Salary.month == month)

    employees = {}
    for salary, name in query.order_by(Employee.name, Salary.month):
        row = employees.setdefault(salary.employee_id, {
            "employee_id": salary.employee_id,
            "employee_name": name,
            "base_amount": Decimal("0"),
            "bonus": Decimal("0"),
            "deduction": Decimal("0"),
            "final_total": Decimal("0"),
            "months": 0,
        })
        row["base_amount"] += to_decimal(salary.base_amount)
        row["bonus"] += to_decimal(salary.bonus)
        row["deduction"] += to_decimal(salary.deduction)
        row["final_total"] += to_decimal(salary.final_total)
        row["months"] += 1

    rows = list(employees.values())
    return {
        "year": year,
        "month": month,
        "employees": rows,
        "total": sum((row["final_total"] for row in rows), Decimal("0")),
    }
