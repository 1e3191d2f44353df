from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db
from models.accounts import Account as AccountModel, AccountType
from schemas.accounts import Account, AccountCreate, AccountUpdate
from crud import accounts as crud_accounts
from crud import soft_delete
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/accounts", tags=["Accounts"])
logger = logging.getLogger("accounts")

SORT_FIELDS = ("id", "name", "account_type", "current_balance", "created_at")


def _get_account(db: Session, account_id: int, tenant_id: str) -> AccountModel:
    db_account = db.query(AccountModel).filter(
        AccountModel.id == account_id, AccountModel.tenant_id == tenant_id
    ).first()
    if db_account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return db_account


def _check_name(db: Session, name: str, tenant_id: str):
    existing = db.query(AccountModel).execution_options(include_deleted=True).filter(
        AccountModel.name == name, AccountModel.tenant_id == tenant_id
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Account with this name already exists")


@router.post("/", response_model=Account, status_code=status.HTTP_201_CREATED)
def create_account(
    account: AccountCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    _check_name(db, account.name, tenant_id)
    user_id = get_user_identifier(user)
    db_account = AccountModel(**account.model_dump(), opening_balance=account.current_balance, tenant_id=tenant_id,
                              created_by=user_id)
    db.add(db_account)
    log_change(db, tenant_id, db_account, "CREATE", user_id)
    db.commit()
    db.refresh(db_account)
    logger.info(f"Account '{db_account.name}' created by user {user_id} for tenant {tenant_id}")
    return db_account


@router.get("/")
def read_accounts(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    account_type: Optional[AccountType] = None,
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(AccountModel).filter(AccountModel.tenant_id == tenant_id)
    if account_type:
        query = query.filter(AccountModel.account_type == account_type)
    if is_active is not None:
        query = query.filter(AccountModel.is_active == is_active)
    query = apply_search(query, AccountModel, search, ("name", "description"))
    query = apply_sort(query, AccountModel, sort_by, sort_direction, SORT_FIELDS, default="name",
                       default_direction="asc")
    return paginate(query, page, per_page, serializer=Account.model_validate)


@router.get("/total-balance")
def read_total_balance(db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return {"total_balance": crud_accounts.get_total_balance(db, tenant_id)}


@router.get("/trashed")
def read_trashed_accounts(page: int = 1, per_page: int = 15, db: Session = Depends(get_db),
                          tenant_id: str = Depends(get_tenant_id)):
    return paginate(soft_delete.list_trashed(db, AccountModel, tenant_id), page, per_page,
                    serializer=Account.model_validate)


@router.get("/{account_id}", response_model=Account)
def read_account(account_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_account(db, account_id, tenant_id)


@router.patch("/{account_id}", response_model=Account)
def update_account(
    account_id: int,
    account: AccountUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Edit account details. The balance only moves through payments, transfers and other money documents."""
    db_account = _get_account(db, account_id, tenant_id)
    if account.name is not None and account.name != db_account.name:
        _check_name(db, account.name, tenant_id)

    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_account)
    for key, value in account.model_dump(exclude_unset=True).items():
        setattr(db_account, key, value)
    db_account.updated_by = user_id
    log_change(db, tenant_id, db_account, "UPDATE", user_id, old_values=old_values)
    db.commit()
    db.refresh(db_account)
    logger.info(f"Account '{db_account.name}' (ID: {account_id}) updated by user {user_id} for tenant {tenant_id}")
    return db_account


@router.delete("/{account_id}")
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_account = _get_account(db, account_id, tenant_id)
    user_id = get_user_identifier(user)
    soft_delete.soft_delete(db, db_account, user_id)
    db.commit()
    logger.info(f"Account '{db_account.name}' (ID: {account_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Account deleted successfully"}


@router.post("/{account_id}/restore", response_model=Account)
def restore_account(account_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                    tenant_id: str = Depends(get_tenant_id)):
    try:
        db_account = soft_delete.restore(db, AccountModel, tenant_id, account_id, get_user_identifier(user),
                                         unique_fields=["name"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_account)
    return db_account


@router.delete("/{account_id}/force")
def force_delete_account(account_id: int, db: Session = Depends(get_db), user: dict = Depends(get_current_user),
                         tenant_id: str = Depends(get_tenant_id)):
    try:
        soft_delete.force_delete(db, AccountModel, tenant_id, account_id, get_user_identifier(user))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Account permanently deleted"}
