from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.purchase_returns import PurchaseReturn as PurchaseReturnModel
from schemas.purchase_returns import PurchaseReturn, PurchaseReturnCreate
from crud import purchase_returns as crud_purchase_returns
from crud.audit_log import log_change
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/purchase-returns", tags=["Purchase Returns"])
logger = logging.getLogger("purchase_returns")

SORT_FIELDS = ("id", "code", "date", "total_usd", "created_at")


def _get_return(db: Session, return_id: int, tenant_id: str) -> PurchaseReturnModel:
    db_return = (
        db.query(PurchaseReturnModel)
        .filter(PurchaseReturnModel.id == return_id, PurchaseReturnModel.tenant_id == tenant_id)
        .options(selectinload(PurchaseReturnModel.items))
        .first()
    )
    if db_return is None:
        raise HTTPException(status_code=404, detail="Purchase return not found")
    return db_return


@router.post("/", response_model=PurchaseReturn, status_code=status.HTTP_201_CREATED)
def create_purchase_return(
    purchase_return: PurchaseReturnCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Send goods back to a supplier. Stock leaves the warehouse and the item price is recomputed."""
    user_id = get_user_identifier(user)
    try:
        db_return = crud_purchase_returns.create_purchase_return(
            db, tenant_id, purchase_return.model_dump(exclude={"items"}),
            [line.model_dump() for line in purchase_return.items], user_id,
        )
        log_change(db, tenant_id, db_return, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_return)
    logger.info(f"Purchase return {db_return.code} created by user {user_id} for tenant {tenant_id}")
    return db_return


@router.get("/")
def read_purchase_returns(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    supplier_id: Optional[int] = None,
    purchase_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(PurchaseReturnModel).filter(PurchaseReturnModel.tenant_id == tenant_id).options(
        selectinload(PurchaseReturnModel.items)
    )
    if supplier_id:
        query = query.filter(PurchaseReturnModel.supplier_id == supplier_id)
    if purchase_id:
        query = query.filter(PurchaseReturnModel.purchase_id == purchase_id)
    if start_date:
        query = query.filter(PurchaseReturnModel.date >= start_date)
    if end_date:
        query = query.filter(PurchaseReturnModel.date <= end_date)
    query = apply_search(query, PurchaseReturnModel, search, ("code", "note"))
    query = apply_sort(query, PurchaseReturnModel, sort_by, sort_direction, SORT_FIELDS, default="date")
    return paginate(query, page, per_page, serializer=PurchaseReturn.model_validate)


@router.get("/{return_id}", response_model=PurchaseReturn)
def read_purchase_return(return_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_return(db, return_id, tenant_id)


@router.delete("/{return_id}")
def delete_purchase_return(
    return_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Trash a return; its quantities go back into the warehouse."""
    db_return = _get_return(db, return_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_purchase_returns.delete_purchase_return(db, db_return, user_id)
        log_change(db, tenant_id, db_return, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Purchase return {db_return.code} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Purchase return deleted successfully"}
