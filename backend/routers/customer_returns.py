from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session, selectinload
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.customer_returns import CustomerReturn as CustomerReturnModel
from schemas.customer_returns import CustomerReturn, CustomerReturnCreate
from crud import customer_returns as crud_customer_returns
from crud.audit_log import log_change
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/customer-returns", tags=["Customer Returns"])
logger = logging.getLogger("customer_returns")

SORT_FIELDS = ("id", "code", "date", "total_usd", "created_at")


def _get_return(db: Session, return_id: int, tenant_id: str) -> CustomerReturnModel:
    db_return = (
        db.query(CustomerReturnModel)
        .filter(CustomerReturnModel.id == return_id, CustomerReturnModel.tenant_id == tenant_id)
        .options(selectinload(CustomerReturnModel.items))
        .first()
    )
    if db_return is None:
        raise HTTPException(status_code=404, detail="Customer return not found")
    return db_return


@router.post("/", response_model=CustomerReturn, status_code=status.HTTP_201_CREATED)
def create_customer_return(
    customer_return: CustomerReturnCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Record goods coming back from a customer. Stock only moves once the return is received."""
    user_id = get_user_identifier(user)
    try:
        db_return = crud_customer_returns.create_customer_return(
            db, tenant_id, customer_return.model_dump(exclude={"items"}),
            [line.model_dump() for line in customer_return.items], user_id,
        )
        log_change(db, tenant_id, db_return, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_return)
    logger.info(f"Customer return {db_return.code} created by user {user_id} for tenant {tenant_id}")
    return db_return


@router.get("/")
def read_customer_returns(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    customer_id: Optional[int] = None,
    sale_id: Optional[int] = None,
    is_received: Optional[bool] = Query(None),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(CustomerReturnModel).filter(CustomerReturnModel.tenant_id == tenant_id).options(
        selectinload(CustomerReturnModel.items)
    )
    if customer_id:
        query = query.filter(CustomerReturnModel.customer_id == customer_id)
    if sale_id:
        query = query.filter(CustomerReturnModel.sale_id == sale_id)
    if is_received is not None:
        query = query.filter(CustomerReturnModel.is_received == is_received)
    if start_date:
        query = query.filter(CustomerReturnModel.date >= start_date)
    if end_date:
        query = query.filter(CustomerReturnModel.date <= end_date)
    query = apply_search(query, CustomerReturnModel, search, ("code", "note"))
    query = apply_sort(query, CustomerReturnModel, sort_by, sort_direction, SORT_FIELDS, default="date")
    return paginate(query, page, per_page, serializer=CustomerReturn.model_validate)


@router.get("/{return_id}", response_model=CustomerReturn)
def read_customer_return(return_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_return(db, return_id, tenant_id)


@router.post("/{return_id}/receive", response_model=CustomerReturn)
def receive_customer_return(
    return_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_return = _get_return(db, return_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_customer_returns.mark_received(db, db_return, user_id)
        log_change(db, tenant_id, db_return, "RECEIVE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_return)
    logger.info(f"Customer return {db_return.code} received by user {user_id} for tenant {tenant_id}")
    return db_return


@router.delete("/{return_id}")
def delete_customer_return(
    return_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_return = _get_return(db, return_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_customer_returns.delete_customer_return(db, db_return, user_id)
        log_change(db, tenant_id, db_return, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Customer return {db_return.code} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Customer return deleted successfully"}
