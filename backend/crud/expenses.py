import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from crud import accounts as accounts_crud
from crud.audit_log import log_change
from exceptions import BusinessRuleError, ConflictError, NotFoundError, service_errors
from models.expenses import ExpenseCategory, ExpenseTransaction
from utils import sqlalchemy_to_dict, to_decimal

logger = logging.getLogger("expenses")

CATEGORY_FIELDS = ("name", "parent_id", "exclude_from_profit", "description")
TRANSACTION_FIELDS = ("expense_category_id", "account_id", "date", "amount_usd", "description", "document_path")


def get_category(db: Session, tenant_id: str, category_id: int, include_deleted: bool = False) -> ExpenseCategory:
    query = db.query(ExpenseCategory).filter(
        ExpenseCategory.id == category_id,
        ExpenseCategory.tenant_id == tenant_id,
    )
    if include_deleted:
        query = query.execution_options(include_deleted=True)
    category = query.first()
    if category is None:
        raise NotFoundError("Expense category", category_id)
    return category


def _validate_parent(db: Session, tenant_id: str, category_id: Optional[int], parent_id: Optional[int]):
    """Categories roll up one level: a parent must itself be a top-level category."""
    if parent_id is None:
        return
    if category_id is not None and parent_id == category_id:
        raise BusinessRuleError("A category cannot be its own parent")
    parent = get_category(db, tenant_id, parent_id)
    if parent.parent_id is not None:
        raise BusinessRuleError(f"Category '{parent.name}' is already a sub-category")


def _check_name(db: Session, tenant_id: str, name: str, exclude_id: Optional[int] = None):
    query = db.query(ExpenseCategory).execution_options(include_deleted=True).filter(
        ExpenseCategory.tenant_id == tenant_id,
        ExpenseCategory.name == name,
    )
    if exclude_id is not None:
        query = query.filter(ExpenseCategory.id != exclude_id)
    if query.first():
        raise ConflictError(f"Expense category '{name}' already exists")


def create_category(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> ExpenseCategory:
    _check_name(db, tenant_id, data["name"])
    _validate_parent(db, tenant_id, None, data.get("parent_id"))
    category = ExpenseCategory(tenant_id=tenant_id, created_by=user, **data)
    db.add(category)
    log_change(db, tenant_id, category, "CREATE", user)
    return category


def update_category(db: Session, category: ExpenseCategory, data: dict, user: Optional[str] = None) -> ExpenseCategory:
    old_values = sqlalchemy_to_dict(category)
    if data.get("name") and data["name"] != category.name:
        _check_name(db, category.tenant_id, data["name"], exclude_id=category.id)
    if "parent_id" in data:
        _validate_parent(db, category.tenant_id, category.id, data["parent_id"])
    for field in CATEGORY_FIELDS:
        if field in data:
            setattr(category, field, data[field])
    category.updated_by = user
    log_change(db, category.tenant_id, category, "UPDATE", user, old_values=old_values)
    return category


def delete_category(db: Session, category: ExpenseCategory, user: Optional[str] = None) -> ExpenseCategory:
    if category.children and any(child.deleted_at is None for child in category.children):
        raise BusinessRuleError(f"Category '{category.name}' still has sub-categories")
    category.soft_delete(user)
    log_change(db, category.tenant_id, category, "DELETE", user)
    return category


def force_delete_category(db: Session, category: ExpenseCategory, user: Optional[str] = None):
    used = db.query(ExpenseTransaction).execution_options(include_deleted=True).filter(
        ExpenseTransaction.expense_category_id == category.id,
    ).first()
    if used:
        raise BusinessRuleError(f"Category '{category.name}' has expense transactions and cannot be removed")
    log_change(db, category.tenant_id, category, "FORCE_DELETE", user)
    db.delete(category)
    db.flush()


def category_ids_with_children(db: Session, tenant_id: str, category_id: int) -> List[int]:
    children = db.query(ExpenseCategory.id).filter(
        ExpenseCategory.tenant_id == tenant_id,
        ExpenseCategory.parent_id == category_id,
    ).all()
    return [category_id] + [row.id for row in children]


def _validate_transaction(db: Session, tenant_id: str, data: dict):
    if "expense_category_id" in data:
        get_category(db, tenant_id, data["expense_category_id"])
    if "amount_usd" in data and to_decimal(data["amount_usd"]) <= 0:
        raise BusinessRuleError("Expense amount must be greater than 0")


def create_transaction(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> ExpenseTransaction:
    with service_errors(logger, "create expense"):
        _validate_transaction(db, tenant_id, data)
        expense = ExpenseTransaction(tenant_id=tenant_id, created_by=user, **data)
        db.add(expense)
        db.flush()
        accounts_crud.adjust_balance(db, tenant_id, expense.account_id, -to_decimal(expense.amount_usd),
                                     f"expense #{expense.id}")
        logger.info(f"Expense #{expense.id} of {expense.amount_usd} recorded for tenant {tenant_id}")
        return expense


def update_transaction(db: Session, expense: ExpenseTransaction, data: dict,
                       user: Optional[str] = None) -> ExpenseTransaction:
    with service_errors(logger, f"update expense #{expense.id}"):
        _validate_transaction(db, expense.tenant_id, data)
        accounts_crud.adjust_balance(db, expense.tenant_id, expense.account_id, expense.amount_usd,
                                     f"expense #{expense.id} reversed")
        for field in TRANSACTION_FIELDS:
            if field in data:
                setattr(expense, field, data[field])
        expense.updated_by = user
        db.flush()
        accounts_crud.adjust_balance(db, expense.tenant_id, expense.account_id, -to_decimal(expense.amount_usd),
                                     f"expense #{expense.id}")
        return expense


def delete_transaction(db: Session, expense: ExpenseTransaction, user: Optional[str] = None) -> ExpenseTransaction:
    with service_errors(logger, f"delete expense #{expense.id}"):
        accounts_crud.adjust_balance(db, expense.tenant_id, expense.account_id, expense.amount_usd,
                                     f"expense #{expense.id} deleted")
        expense.soft_delete(user)
        db.flush()
        return expense
