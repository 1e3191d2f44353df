from pydantic import BaseModel
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal


class CustomerReturnItemIn(BaseModel):
    item_id: int
    quantity: Decimal
    price_usd: Decimal
    sale_item_id: Optional[int] = None


class CustomerReturnItem(CustomerReturnItemIn):
    id: int
    cost_price: Decimal
    total_price_usd: Decimal
    total_profit: Decimal

    class Config:
        from_attributes = True


class CustomerReturnCreate(BaseModel):
    customer_id: int
    warehouse_id: int
    sale_id: Optional[int] = None
    date: date
    note: Optional[str] = None
    items: List[CustomerReturnItemIn]


class CustomerReturn(BaseModel):
    id: int
    code: str
    customer_id: int
    warehouse_id: int
    sale_id: Optional[int] = None
    date: date
    total_usd: Decimal
    total_profit: Decimal
    is_received: bool
    received_at: Optional[datetime] = None
    received_by: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[CustomerReturnItem] = []

    class Config:
        from_attributes = True
