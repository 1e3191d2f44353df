from pydantic import BaseModel
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal


class PurchaseReturnItemIn(BaseModel):
    item_id: int
    quantity: Decimal
    price_usd: Decimal


class PurchaseReturnItem(PurchaseReturnItemIn):
    id: int
    total_price_usd: Decimal

    class Config:
        from_attributes = True


class PurchaseReturnCreate(BaseModel):
    supplier_id: int
    warehouse_id: int
    purchase_id: Optional[int] = None
    date: date
    note: Optional[str] = None
    items: List[PurchaseReturnItemIn]


class PurchaseReturn(BaseModel):
    id: int
    code: str
    supplier_id: int
    warehouse_id: int
    purchase_id: Optional[int] = None
    date: date
    total_usd: Decimal
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[PurchaseReturnItem] = []

    class Config:
        from_attributes = True
