from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from models.expenses import ExpenseCategory as ExpenseCategoryModel, ExpenseTransaction as ExpenseTransactionModel
from schemas.expenses import (
    ExpenseCategory, ExpenseCategoryCreate, ExpenseCategoryUpdate,
    ExpenseTransaction, ExpenseTransactionCreate, ExpenseTransactionUpdate,
)
from crud import expenses as crud_expenses
from crud import soft_delete
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/expenses", tags=["Expenses"])
logger = logging.getLogger("expenses")

TRANSACTION_SORT_FIELDS = ("id", "date", "amount_usd", "created_at")


# --- Categories ---

@router.post("/categories", response_model=ExpenseCategory, status_code=status.HTTP_201_CREATED)
def create_category(
    category: ExpenseCategoryCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    try:
        db_category = crud_expenses.create_category(db, tenant_id, category.model_dump(), user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_category)
    logger.info(f"Expense category '{db_category.name}' created by user {user_id} for tenant {tenant_id}")
    return db_category


@router.get("/categories", response_model=List[ExpenseCategory])
def read_categories(parent_id: Optional[int] = None, db: Session = Depends(get_db),
                    tenant_id: str = Depends(get_tenant_id)):
    query = db.query(ExpenseCategoryModel).filter(ExpenseCategoryModel.tenant_id == tenant_id)
    if parent_id is not None:
        query = query.filter(ExpenseCategoryModel.parent_id == parent_id)
    return query.order_by(ExpenseCategoryModel.name).all()


@router.get("/categories/trashed")
def read_trashed_categories(page: int = 1, per_page: int = 15, db: Session = Depends(get_db),
                            tenant_id: str = Depends(get_tenant_id)):
    return paginate(soft_delete.list_trashed(db, ExpenseCategoryModel, tenant_id), page, per_page,
                    serializer=ExpenseCategory.model_validate)


@router.get("/categories/{category_id}", response_model=ExpenseCategory)
def read_category(category_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return crud_expenses.get_category(db, tenant_id, category_id)


@router.patch("/categories/{category_id}", response_model=ExpenseCategory)
def update_category(
    category_id: int,
    category: ExpenseCategoryUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_category = crud_expenses.get_category(db, tenant_id, category_id)
    user_id = get_user_identifier(user)
    try:
        crud_expenses.update_category(db, db_category, category.model_dump(exclude_unset=True), user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_category)
    logger.info(f"Expense category '{db_category.name}' updated by user {user_id} for tenant {tenant_id}")
    return db_category


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_category = crud_expenses.get_category(db, tenant_id, category_id)
    user_id = get_user_identifier(user)
    try:
        crud_expenses.delete_category(db, db_category, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Expense category '{db_category.name}' deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Expense category deleted successfully"}


@router.post("/categories/{category_id}/restore", response_model=ExpenseCategory)
def restore_category(category_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                     tenant_id: str = Depends(get_tenant_id)):
    try:
        db_category = soft_delete.restore(db, ExpenseCategoryModel, tenant_id, category_id,
                                          get_user_identifier(user), unique_fields=["name"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_category)
    return db_category


@router.delete("/categories/{category_id}/force")
def force_delete_category(category_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                          tenant_id: str = Depends(get_tenant_id)):
    db_category = soft_delete.get_trashed(db, ExpenseCategoryModel, tenant_id, category_id)
    try:
        crud_expenses.force_delete_category(db, db_category, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Expense category permanently deleted"}


# --- Transactions ---

def _get_transaction(db: Session, expense_id: int, tenant_id: str) -> ExpenseTransactionModel:
    db_expense = db.query(ExpenseTransactionModel).filter(
        ExpenseTransactionModel.id == expense_id, ExpenseTransactionModel.tenant_id == tenant_id
    ).first()
    if db_expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return db_expense


@router.post("/", response_model=ExpenseTransaction, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense: ExpenseTransactionCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Record an expense; the linked account is debited."""
    user_id = get_user_identifier(user)
    try:
        db_expense = crud_expenses.create_transaction(db, tenant_id, expense.model_dump(), user_id)
        log_change(db, tenant_id, db_expense, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_expense)
    logger.info(f"Expense #{db_expense.id} created by user {user_id} for tenant {tenant_id}")
    return db_expense


@router.get("/")
def read_expenses(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    category_id: Optional[int] = None,
    account_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(ExpenseTransactionModel).filter(ExpenseTransactionModel.tenant_id == tenant_id)
    if category_id:
        # a parent category also lists its sub-categories' expenses
        ids = crud_expenses.category_ids_with_children(db, tenant_id, category_id)
        query = query.filter(ExpenseTransactionModel.expense_category_id.in_(ids))
    if account_id:
        query = query.filter(ExpenseTransactionModel.account_id == account_id)
    if start_date:
        query = query.filter(ExpenseTransactionModel.date >= start_date)
    if end_date:
        query = query.filter(ExpenseTransactionModel.date <= end_date)
    query = apply_search(query, ExpenseTransactionModel, search, ("description",))
    query = apply_sort(query, ExpenseTransactionModel, sort_by, sort_direction, TRANSACTION_SORT_FIELDS,
                       default="date")
    return paginate(query, page, per_page, serializer=ExpenseTransaction.model_validate)


@router.get("/{expense_id}", response_model=ExpenseTransaction)
def read_expense(expense_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_transaction(db, expense_id, tenant_id)


@router.patch("/{expense_id}", response_model=ExpenseTransaction)
def update_expense(
    expense_id: int,
    expense: ExpenseTransactionUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_expense = _get_transaction(db, expense_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_expense)
    try:
        crud_expenses.update_transaction(db, db_expense, expense.model_dump(exclude_unset=True), user_id)
        log_change(db, tenant_id, db_expense, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_expense)
    logger.info(f"Expense #{expense_id} updated by user {user_id} for tenant {tenant_id}")
    return db_expense


@router.delete("/{expense_id}")
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_expense = _get_transaction(db, expense_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_expenses.delete_transaction(db, db_expense, user_id)
        log_change(db, tenant_id, db_expense, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Expense #{expense_id} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Expense deleted successfully"}
