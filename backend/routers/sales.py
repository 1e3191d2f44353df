from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.sales import Sale as SaleModel, SaleStatus
from schemas.sales import Sale, SaleCreate, SaleStatusUpdate
from crud import sales as crud_sales
from crud.audit_log import log_change
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/sales", tags=["Sales"])
logger = logging.getLogger("sales")

SEARCH_FIELDS = ("code", "note")
SORT_FIELDS = ("id", "code", "date", "status", "total_usd", "total_profit", "created_at")


def _get_sale(db: Session, sale_id: int, tenant_id: str) -> SaleModel:
    db_sale = (
        db.query(SaleModel)
        .filter(SaleModel.id == sale_id, SaleModel.tenant_id == tenant_id)
        .options(selectinload(SaleModel.items))
        .first()
    )
    if db_sale is None:
        raise HTTPException(status_code=404, detail="Sale not found")
    return db_sale


@router.post("/", response_model=Sale, status_code=status.HTTP_201_CREATED)
def create_sale(
    sale: SaleCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """
    Create a sale.

    Each line is costed at the item's current price and its quantity is taken
    out of the warehouse. The whole sale is rejected if any line lacks stock.
    """
    user_id = get_user_identifier(user)
    try:
        db_sale = crud_sales.create_sale(
            db, tenant_id, sale.model_dump(exclude={"items"}), [line.model_dump() for line in sale.items], user_id
        )
        log_change(db, tenant_id, db_sale, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_sale)
    logger.info(f"Sale {db_sale.code} created by user {user_id} for tenant {tenant_id}")
    return db_sale


@router.get("/")
def read_sales(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    search_field: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    status: Optional[SaleStatus] = None,
    customer_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(SaleModel).filter(SaleModel.tenant_id == tenant_id).options(selectinload(SaleModel.items))
    if status:
        query = query.filter(SaleModel.status == status)
    if customer_id:
        query = query.filter(SaleModel.customer_id == customer_id)
    if warehouse_id:
        query = query.filter(SaleModel.warehouse_id == warehouse_id)
    if start_date:
        query = query.filter(SaleModel.date >= start_date)
    if end_date:
        query = query.filter(SaleModel.date <= end_date)
    query = apply_search(query, SaleModel, search, SEARCH_FIELDS, search_field)
    query = apply_sort(query, SaleModel, sort_by, sort_direction, SORT_FIELDS, default="date")
    return paginate(query, page, per_page, serializer=Sale.model_validate)


@router.get("/suggest-price")
def read_suggested_price(item_id: int, price_list_id: Optional[int] = None, db: Session = Depends(get_db),
                         tenant_id: str = Depends(get_tenant_id)):
    return crud_sales.suggest_sell_price(db, tenant_id, item_id, price_list_id)


@router.get("/{sale_id}", response_model=Sale)
def read_sale(sale_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_sale(db, sale_id, tenant_id)


@router.patch("/{sale_id}/status", response_model=Sale)
def update_sale_status(
    sale_id: int,
    body: SaleStatusUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_sale = _get_sale(db, sale_id, tenant_id)
    user_id = get_user_identifier(user)
    old_status = db_sale.status
    crud_sales.change_status(db, db_sale, body.status, user_id)
    log_change(db, tenant_id, db_sale, "UPDATE", user_id, old_values={"status": old_status.value})
    db.commit()
    db.refresh(db_sale)
    logger.info(f"Sale {db_sale.code} moved to {body.status.value} by user {user_id} for tenant {tenant_id}")
    return db_sale


@router.delete("/{sale_id}")
def delete_sale(
    sale_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Trash a sale and put its quantities back into the warehouse."""
    db_sale = _get_sale(db, sale_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_sales.delete_sale(db, db_sale, user_id)
        log_change(db, tenant_id, db_sale, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Sale {db_sale.code} (ID: {sale_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Sale deleted successfully"}
