from pydantic import BaseModel
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from models.purchases import PurchaseStatus


class PurchaseItemIn(BaseModel):
    id: Optional[int] = None  # set to update an existing line
    item_id: int
    price: Decimal
    quantity: Decimal
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    note: Optional[str] = None


class PurchaseItem(BaseModel):
    id: int
    item_id: int
    item_code: Optional[str] = None
    price: Decimal
    quantity: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    total_price: Decimal
    total_price_usd: Decimal
    total_shipping_usd: Decimal
    total_customs_usd: Decimal
    total_other_usd: Decimal
    final_total_cost_usd: Decimal
    cost_per_item_usd: Decimal
    note: Optional[str] = None

    class Config:
        from_attributes = True


class PurchaseBase(BaseModel):
    supplier_id: int
    warehouse_id: int
    date: date
    status: PurchaseStatus = PurchaseStatus.WAITING
    supplier_invoice_number: Optional[str] = None
    currency_rate: Decimal = Decimal("1")
    discount_amount: Decimal = Decimal("0")
    discount_amount_usd: Decimal = Decimal("0")
    tax_usd: Decimal = Decimal("0")
    shipping_fee_usd: Decimal = Decimal("0")
    shipping_fee_usd_percent: Decimal = Decimal("0")
    customs_fee_usd: Decimal = Decimal("0")
    customs_fee_usd_percent: Decimal = Decimal("0")
    other_fee_usd: Decimal = Decimal("0")
    other_fee_usd_percent: Decimal = Decimal("0")
    note: Optional[str] = None


class PurchaseCreate(PurchaseBase):
    items: List[PurchaseItemIn]


class PurchaseUpdate(BaseModel):
    supplier_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    date: Optional[date] = None
    status: Optional[PurchaseStatus] = None
    supplier_invoice_number: Optional[str] = None
    currency_rate: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    discount_amount_usd: Optional[Decimal] = None
    tax_usd: Optional[Decimal] = None
    shipping_fee_usd: Optional[Decimal] = None
    shipping_fee_usd_percent: Optional[Decimal] = None
    customs_fee_usd: Optional[Decimal] = None
    customs_fee_usd_percent: Optional[Decimal] = None
    other_fee_usd: Optional[Decimal] = None
    other_fee_usd_percent: Optional[Decimal] = None
    note: Optional[str] = None
    items: Optional[List[PurchaseItemIn]] = None


class PurchaseStatusUpdate(BaseModel):
    status: PurchaseStatus


class Purchase(PurchaseBase):
    id: int
    code: str
    tenant_id: Optional[str] = None
    sub_total: Decimal
    sub_total_usd: Decimal
    total: Decimal
    total_usd: Decimal
    final_total_usd: Decimal
    document_path: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[PurchaseItem] = []

    class Config:
        from_attributes = True


class DocumentUploadRequest(BaseModel):
    filename: str
