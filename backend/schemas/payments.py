from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class PaymentBase(BaseModel):
    account_id: Optional[int] = None
    payment_date: date
    amount_usd: Decimal
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class PaymentUpdate(BaseModel):
    account_id: Optional[int] = None
    payment_date: Optional[date] = None
    amount_usd: Optional[Decimal] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class CustomerPaymentCreate(PaymentBase):
    customer_id: int
    sale_id: Optional[int] = None


class CustomerPayment(CustomerPaymentCreate):
    id: int
    tenant_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SupplierPaymentCreate(PaymentBase):
    supplier_id: int
    purchase_id: Optional[int] = None


class SupplierPayment(SupplierPaymentCreate):
    id: int
    tenant_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
