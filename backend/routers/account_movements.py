from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from models.account_movements import (
    AccountAdjust as AccountAdjustModel, AccountAdjustType, AccountTransfer as AccountTransferModel,
    IncomeCategory as IncomeCategoryModel, IncomeTransaction as IncomeTransactionModel,
)
from schemas.account_movements import (
    AccountAdjust, AccountAdjustCreate, AccountAdjustUpdate,
    AccountTransfer, AccountTransferCreate, AccountTransferUpdate,
    IncomeCategory, IncomeCategoryCreate, IncomeCategoryUpdate,
    IncomeTransaction, IncomeTransactionCreate, IncomeTransactionUpdate,
)
from crud import account_movements as crud_movements
from crud import statements as crud_statements
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

# Mounted before routers.accounts so these paths win over /accounts/{account_id}
router = APIRouter(prefix="/accounts", tags=["Account movements"])
logger = logging.getLogger("account_movements")

SORT_FIELDS = ("id", "date", "code", "created_at")


def _date_range(query, model, start_date, end_date):
    if start_date:
        query = query.filter(model.date >= start_date)
    if end_date:
        query = query.filter(model.date <= end_date)
    return query


def _commit(db: Session, action):
    try:
        result = action()
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(result)
    return result


# --- Statements ---

@router.get("/statements/{account_id}")
def read_account_statement(
    account_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    """Every balance movement of the account with a running balance."""
    return crud_statements.get_account_statement(db, tenant_id, account_id, start_date, end_date)


# --- Transfers ---

@router.post("/transfers", response_model=AccountTransfer, status_code=status.HTTP_201_CREATED)
def create_transfer(
    transfer: AccountTransferCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    db_transfer = _commit(db, lambda: crud_movements.create_transfer(db, tenant_id, transfer.model_dump(), user_id))
    logger.info(f"Account transfer {db_transfer.code} created by user {user_id} for tenant {tenant_id}")
    return db_transfer


@router.get("/transfers")
def read_transfers(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    account_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(AccountTransferModel).filter(AccountTransferModel.tenant_id == tenant_id)
    if account_id:
        query = query.filter((AccountTransferModel.from_account_id == account_id)
                             | (AccountTransferModel.to_account_id == account_id))
    query = _date_range(query, AccountTransferModel, start_date, end_date)
    query = apply_search(query, AccountTransferModel, search, ("code", "note"))
    query = apply_sort(query, AccountTransferModel, sort_by, sort_direction,
                       SORT_FIELDS + ("sent_amount", "received_amount"), default="date")
    return paginate(query, page, per_page, serializer=AccountTransfer.model_validate)


@router.get("/transfers/{transfer_id}", response_model=AccountTransfer)
def read_transfer(transfer_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return crud_movements.get_transfer(db, tenant_id, transfer_id)


@router.patch("/transfers/{transfer_id}", response_model=AccountTransfer)
def update_transfer(
    transfer_id: int,
    transfer: AccountTransferUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_transfer = crud_movements.get_transfer(db, tenant_id, transfer_id)
    user_id = get_user_identifier(user)
    return _commit(db, lambda: crud_movements.update_transfer(db, db_transfer, transfer.model_dump(exclude_unset=True),
                                                              user_id))


@router.delete("/transfers/{transfer_id}")
def delete_transfer(
    transfer_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_transfer = crud_movements.get_transfer(db, tenant_id, transfer_id)
    user_id = get_user_identifier(user)
    try:
        crud_movements.delete_transfer(db, db_transfer, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Account transfer {db_transfer.code} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Account transfer deleted successfully"}


# --- Adjusts ---

@router.post("/adjusts", response_model=AccountAdjust, status_code=status.HTTP_201_CREATED)
def create_adjust(
    adjust: AccountAdjustCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    db_adjust = _commit(db, lambda: crud_movements.create_adjust(db, tenant_id, adjust.model_dump(), user_id))
    logger.info(f"Account adjust {db_adjust.code} created by user {user_id} for tenant {tenant_id}")
    return db_adjust


@router.get("/adjusts")
def read_adjusts(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    account_id: Optional[int] = None,
    type: Optional[AccountAdjustType] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(AccountAdjustModel).filter(AccountAdjustModel.tenant_id == tenant_id)
    if account_id:
        query = query.filter(AccountAdjustModel.account_id == account_id)
    if type:
        query = query.filter(AccountAdjustModel.type == type)
    query = _date_range(query, AccountAdjustModel, start_date, end_date)
    query = apply_search(query, AccountAdjustModel, search, ("code", "note"))
    query = apply_sort(query, AccountAdjustModel, sort_by, sort_direction, SORT_FIELDS + ("amount",), default="date")
    return paginate(query, page, per_page, serializer=AccountAdjust.model_validate)


@router.get("/adjusts/{adjust_id}", response_model=AccountAdjust)
def read_adjust(adjust_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return crud_movements.get_adjust(db, tenant_id, adjust_id)


@router.patch("/adjusts/{adjust_id}", response_model=AccountAdjust)
def update_adjust(
    adjust_id: int,
    adjust: AccountAdjustUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_adjust = crud_movements.get_adjust(db, tenant_id, adjust_id)
    user_id = get_user_identifier(user)
    return _commit(db, lambda: crud_movements.update_adjust(db, db_adjust, adjust.model_dump(exclude_unset=True),
                                                            user_id))


@router.delete("/adjusts/{adjust_id}")
def delete_adjust(
    adjust_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_adjust = crud_movements.get_adjust(db, tenant_id, adjust_id)
    try:
        crud_movements.delete_adjust(db, db_adjust, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Account adjust deleted successfully"}


# --- Income ---

@router.post("/income-categories", response_model=IncomeCategory, status_code=status.HTTP_201_CREATED)
def create_income_category(
    category: IncomeCategoryCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    return _commit(db, lambda: crud_movements.create_income_category(db, tenant_id, category.model_dump(), user_id))


@router.get("/income-categories", response_model=List[IncomeCategory])
def read_income_categories(db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return db.query(IncomeCategoryModel).filter(
        IncomeCategoryModel.tenant_id == tenant_id
    ).order_by(IncomeCategoryModel.name).all()


@router.patch("/income-categories/{category_id}", response_model=IncomeCategory)
def update_income_category(
    category_id: int,
    category: IncomeCategoryUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_category = crud_movements.get_income_category(db, tenant_id, category_id)
    user_id = get_user_identifier(user)
    return _commit(db, lambda: crud_movements.update_income_category(
        db, db_category, category.model_dump(exclude_unset=True), user_id))


@router.delete("/income-categories/{category_id}")
def delete_income_category(
    category_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_category = crud_movements.get_income_category(db, tenant_id, category_id)
    try:
        crud_movements.delete_income_category(db, db_category, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Income category deleted successfully"}


@router.post("/incomes", response_model=IncomeTransaction, status_code=status.HTTP_201_CREATED)
def create_income(
    income: IncomeTransactionCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Money received outside of sales; credited to the chosen account."""
    user_id = get_user_identifier(user)
    db_income = _commit(db, lambda: crud_movements.create_income(db, tenant_id, income.model_dump(), user_id))
    logger.info(f"Income {db_income.code} created by user {user_id} for tenant {tenant_id}")
    return db_income


@router.get("/incomes")
def read_incomes(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    account_id: Optional[int] = None,
    income_category_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(IncomeTransactionModel).filter(IncomeTransactionModel.tenant_id == tenant_id)
    if account_id:
        query = query.filter(IncomeTransactionModel.account_id == account_id)
    if income_category_id:
        query = query.filter(IncomeTransactionModel.income_category_id == income_category_id)
    query = _date_range(query, IncomeTransactionModel, start_date, end_date)
    query = apply_search(query, IncomeTransactionModel, search, ("code", "note"))
    query = apply_sort(query, IncomeTransactionModel, sort_by, sort_direction, SORT_FIELDS + ("amount",),
                       default="date")
    return paginate(query, page, per_page, serializer=IncomeTransaction.model_validate)


@router.get("/incomes/{income_id}", response_model=IncomeTransaction)
def read_income(income_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return crud_movements.get_income(db, tenant_id, income_id)


@router.patch("/incomes/{income_id}", response_model=IncomeTransaction)
def update_income(
    income_id: int,
    income: IncomeTransactionUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_income = crud_movements.get_income(db, tenant_id, income_id)
    user_id = get_user_identifier(user)
    return _commit(db, lambda: crud_movements.update_income(db, db_income, income.model_dump(exclude_unset=True),
                                                            user_id))


@router.delete("/incomes/{income_id}")
def delete_income(
    income_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_income = crud_movements.get_income(db, tenant_id, income_id)
    try:
        crud_movements.delete_income(db, db_income, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Income transaction deleted successfully"}
