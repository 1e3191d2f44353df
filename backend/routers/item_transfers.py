from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.item_transfers import ItemTransfer as ItemTransferModel
from schemas.item_movements import ItemTransfer, ItemTransferCreate, ItemTransferUpdate
from crud import item_transfers as crud_item_transfers
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/item-transfers", tags=["Item Transfers"])
logger = logging.getLogger("item_transfers")

SORT_FIELDS = ("id", "code", "date", "created_at")


def _get_transfer(db: Session, transfer_id: int, tenant_id: str) -> ItemTransferModel:
    db_transfer = (
        db.query(ItemTransferModel)
        .filter(ItemTransferModel.id == transfer_id, ItemTransferModel.tenant_id == tenant_id)
        .options(selectinload(ItemTransferModel.items))
        .first()
    )
    if db_transfer is None:
        raise HTTPException(status_code=404, detail="Item transfer not found")
    return db_transfer


@router.post("/", response_model=ItemTransfer, status_code=status.HTTP_201_CREATED)
def create_item_transfer(
    item_transfer: ItemTransferCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    try:
        db_transfer = crud_item_transfers.create_item_transfer(
            db, tenant_id, item_transfer.model_dump(exclude={"items"}),
            [line.model_dump() for line in item_transfer.items], user_id,
        )
        log_change(db, tenant_id, db_transfer, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_transfer)
    logger.info(f"Item transfer {db_transfer.code} created by user {user_id} for tenant {tenant_id}")
    return db_transfer


@router.get("/")
def read_item_transfers(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    warehouse_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(ItemTransferModel).filter(ItemTransferModel.tenant_id == tenant_id).options(
        selectinload(ItemTransferModel.items)
    )
    if warehouse_id:
        query = query.filter(or_(ItemTransferModel.from_warehouse_id == warehouse_id,
                                 ItemTransferModel.to_warehouse_id == warehouse_id))
    if start_date:
        query = query.filter(ItemTransferModel.date >= start_date)
    if end_date:
        query = query.filter(ItemTransferModel.date <= end_date)
    query = apply_search(query, ItemTransferModel, search, ("code", "note"))
    query = apply_sort(query, ItemTransferModel, sort_by, sort_direction, SORT_FIELDS, default="date")
    return paginate(query, page, per_page, serializer=ItemTransfer.model_validate)


@router.get("/{transfer_id}", response_model=ItemTransfer)
def read_item_transfer(transfer_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_transfer(db, transfer_id, tenant_id)


@router.patch("/{transfer_id}", response_model=ItemTransfer)
def update_item_transfer(
    transfer_id: int,
    item_transfer: ItemTransferUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Reverse the stored movements, then apply the edited ones."""
    db_transfer = _get_transfer(db, transfer_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_transfer)
    items = [line.model_dump() for line in item_transfer.items] if item_transfer.items is not None else None
    try:
        crud_item_transfers.update_item_transfer(
            db, db_transfer, item_transfer.model_dump(exclude_unset=True, exclude={"items"}), items, user_id
        )
        log_change(db, tenant_id, db_transfer, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_transfer)
    logger.info(f"Item transfer {db_transfer.code} updated by user {user_id} for tenant {tenant_id}")
    return db_transfer


@router.delete("/{transfer_id}")
def delete_item_transfer(
    transfer_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_transfer = _get_transfer(db, transfer_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_item_transfers.delete_item_transfer(db, db_transfer, user_id)
        log_change(db, tenant_id, db_transfer, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Item transfer {db_transfer.code} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Item transfer deleted successfully"}
