from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from database import get_db
from models.customer_payments import CustomerPayment as CustomerPaymentModel
from models.supplier_payments import SupplierPayment as SupplierPaymentModel
from schemas.payments import (
    CustomerPayment, CustomerPaymentCreate, SupplierPayment, SupplierPaymentCreate, PaymentUpdate
)
from crud import payments as crud_payments
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger("payments")

SEARCH_FIELDS = ("reference_number", "notes")
SORT_FIELDS = ("id", "payment_date", "amount_usd", "created_at")


def _get_payment(db: Session, model, payment_id: int, tenant_id: str):
    db_payment = db.query(model).filter(model.id == payment_id, model.tenant_id == tenant_id).first()
    if db_payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    return db_payment


def _list_payments(db: Session, model, tenant_id: str, partner_column, partner_id, start_date, end_date,
                   search, sort_by, sort_direction, page, per_page, serializer):
    query = db.query(model).filter(model.tenant_id == tenant_id)
    if partner_id:
        query = query.filter(partner_column == partner_id)
    if start_date:
        query = query.filter(model.payment_date >= start_date)
    if end_date:
        query = query.filter(model.payment_date <= end_date)
    query = apply_search(query, model, search, SEARCH_FIELDS)
    query = apply_sort(query, model, sort_by, sort_direction, SORT_FIELDS, default="payment_date")
    return paginate(query, page, per_page, serializer=serializer)


# --- Customer payments ---

@router.post("/customers", response_model=CustomerPayment, status_code=status.HTTP_201_CREATED)
def create_customer_payment(
    payment: CustomerPaymentCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Money received from a customer; credited to the chosen account."""
    user_id = get_user_identifier(user)
    try:
        db_payment = crud_payments.create_customer_payment(db, tenant_id, payment.model_dump(), user_id)
        log_change(db, tenant_id, db_payment, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info(f"Customer payment #{db_payment.id} created by user {user_id} for tenant {tenant_id}")
    return db_payment


@router.get("/customers")
def read_customer_payments(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    customer_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    return _list_payments(db, CustomerPaymentModel, tenant_id, CustomerPaymentModel.customer_id, customer_id,
                          start_date, end_date, search, sort_by, sort_direction, page, per_page,
                          CustomerPayment.model_validate)


@router.get("/customers/{payment_id}", response_model=CustomerPayment)
def read_customer_payment(payment_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_payment(db, CustomerPaymentModel, payment_id, tenant_id)


@router.patch("/customers/{payment_id}", response_model=CustomerPayment)
def update_customer_payment(
    payment_id: int,
    payment: PaymentUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_payment = _get_payment(db, CustomerPaymentModel, payment_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_payment)
    try:
        crud_payments.update_customer_payment(db, db_payment, payment.model_dump(exclude_unset=True), user_id)
        log_change(db, tenant_id, db_payment, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info(f"Customer payment #{payment_id} updated by user {user_id} for tenant {tenant_id}")
    return db_payment


@router.delete("/customers/{payment_id}")
def delete_customer_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_payment = _get_payment(db, CustomerPaymentModel, payment_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_payments.delete_customer_payment(db, db_payment, user_id)
        log_change(db, tenant_id, db_payment, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Customer payment #{payment_id} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Payment deleted successfully"}


# --- Supplier payments ---

@router.post("/suppliers", response_model=SupplierPayment, status_code=status.HTTP_201_CREATED)
def create_supplier_payment(
    payment: SupplierPaymentCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Money paid to a supplier; debited from the chosen account."""
    user_id = get_user_identifier(user)
    try:
        db_payment = crud_payments.create_supplier_payment(db, tenant_id, payment.model_dump(), user_id)
        log_change(db, tenant_id, db_payment, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info(f"Supplier payment #{db_payment.id} created by user {user_id} for tenant {tenant_id}")
    return db_payment


@router.get("/suppliers")
def read_supplier_payments(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    supplier_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    return _list_payments(db, SupplierPaymentModel, tenant_id, SupplierPaymentModel.supplier_id, supplier_id,
                          start_date, end_date, search, sort_by, sort_direction, page, per_page,
                          SupplierPayment.model_validate)


@router.get("/suppliers/{payment_id}", response_model=SupplierPayment)
def read_supplier_payment(payment_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_payment(db, SupplierPaymentModel, payment_id, tenant_id)


@router.patch("/suppliers/{payment_id}", response_model=SupplierPayment)
def update_supplier_payment(
    payment_id: int,
    payment: PaymentUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_payment = _get_payment(db, SupplierPaymentModel, payment_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_payment)
    try:
        crud_payments.update_supplier_payment(db, db_payment, payment.model_dump(exclude_unset=True), user_id)
        log_change(db, tenant_id, db_payment, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_payment)
    logger.info(f"Supplier payment #{payment_id} updated by user {user_id} for tenant {tenant_id}")
    return db_payment


@router.delete("/suppliers/{payment_id}")
def delete_supplier_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_payment = _get_payment(db, SupplierPaymentModel, payment_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_payments.delete_supplier_payment(db, db_payment, user_id)
        log_change(db, tenant_id, db_payment, "DELETE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Supplier payment #{payment_id} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Payment deleted successfully"}
