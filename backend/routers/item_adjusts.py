from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.item_adjusts import ItemAdjust as ItemAdjustModel, AdjustType
from schemas.item_movements import ItemAdjust, ItemAdjustCreate, ItemAdjustUpdate
from crud import item_adjusts as crud_item_adjusts
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/item-adjusts", tags=["Item Adjusts"])
logger = logging.getLogger("item_adjusts")

SORT_FIELDS = ("id", "code", "date", "type", "created_at")


def _get_adjust(db: Session, adjust_id: int, tenant_id: str) -> ItemAdjustModel:
    db_adjust = (
        db.query(ItemAdjustModel)
        .filter(ItemAdjustModel.id == adjust_id, ItemAdjustModel.tenant_id == tenant_id)
        .options(selectinload(ItemAdjustModel.items))
        .first()
    )
    if db_adjust is None:
        raise HTTPException(status_code=404, detail="Item adjust not found")
    return db_adjust


@router.post("/", response_model=ItemAdjust, status_code=status.HTTP_201_CREATED)
def create_item_adjust(
    item_adjust: ItemAdjustCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Add or remove stock outside of purchases and sales (counts, breakage, gifts)."""
    user_id = get_user_identifier(user)
    try:
        db_adjust = crud_item_adjusts.create_item_adjust(
            db, tenant_id, item_adjust.model_dump(exclude={"items"}),
            [line.model_dump() for line in item_adjust.items], user_id,
        )
        log_change(db, tenant_id, db_adjust, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_adjust)
    logger.info(f"Item adjust {db_adjust.code} ({db_adjust.type.value}) created by user {user_id} for tenant {tenant_id}")
    return db_adjust


@router.get("/")
def read_item_adjusts(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    type: Optional[AdjustType] = None,
    warehouse_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(ItemAdjustModel).filter(ItemAdjustModel.tenant_id == tenant_id).options(
        selectinload(ItemAdjustModel.items)
    )
    if type:
        query = query.filter(ItemAdjustModel.type == type)
    if warehouse_id:
        query = query.filter(ItemAdjustModel.warehouse_id == warehouse_id)
    if start_date:
        query = query.filter(ItemAdjustModel.date >= start_date)
    if end_date:
        query = query.filter(ItemAdjustModel.date <= end_date)
    query = apply_search(query, ItemAdjustModel, search, ("code", "note"))
    query = apply_sort(query, ItemAdjustModel, sort_by, sort_direction, SORT_FIELDS, default="date")
    return paginate(query, page, per_page, serializer=ItemAdjust.model_validate)


@router.get("/{adjust_id}", response_model=ItemAdjust)
def read_item_adjust(adjust_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_adjust(db, adjust_id, tenant_id)


@router.patch("/{adjust_id}", response_model=ItemAdjust)
def update_item_adjust(
    adjust_id: int,
    item_adjust: ItemAdjustUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_adjust = _get_adjust(db, adjust_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_adjust)
    items = [line.model_dump() for line in item_adjust.items] if item_adjust.items is not None else None
    try:
        crud_item_adjusts.update_item_adjust(
            db, db_adjust, item_adjust.model_dump(exclude_unset=True, exclude={"items"}), items, user_id
        )
        log_change(db, tenant_id, db_adjust, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_adjust)
    logger.info(f"Item adjust {db_adjust.code} updated by user {user_id} for tenant {tenant_id}")
    return db_adjust


@router.delete("/{adjust_id}")
def delete_item_adjust(
    adjust_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_adjust = _get_adjust(db, adjust_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_item_adjusts.delete_item_adjust(db, db_adjust, user_id)
        log_change(db, tenant_id, db_adjust, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Item adjust {db_adjust.code} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Item adjust deleted successfully"}
