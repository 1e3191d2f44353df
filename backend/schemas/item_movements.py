from pydantic import BaseModel
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from models.item_adjusts import AdjustType


class ItemAdjustItemIn(BaseModel):
    item_id: int
    quantity: Decimal
    unit_cost_usd: Optional[Decimal] = None  # Add only


class ItemAdjustItem(ItemAdjustItemIn):
    id: int

    class Config:
        from_attributes = True


class ItemAdjustCreate(BaseModel):
    warehouse_id: int
    type: AdjustType
    date: date
    note: Optional[str] = None
    items: List[ItemAdjustItemIn]


class ItemAdjustUpdate(BaseModel):
    warehouse_id: Optional[int] = None
    type: Optional[AdjustType] = None
    date: Optional[date] = None
    note: Optional[str] = None
    items: Optional[List[ItemAdjustItemIn]] = None


class ItemAdjust(BaseModel):
    id: int
    code: str
    warehouse_id: int
    type: AdjustType
    date: date
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[ItemAdjustItem] = []

    class Config:
        from_attributes = True


class ItemTransferItemIn(BaseModel):
    item_id: int
    quantity: Decimal


class ItemTransferItem(ItemTransferItemIn):
    id: int

    class Config:
        from_attributes = True


class ItemTransferCreate(BaseModel):
    from_warehouse_id: int
    to_warehouse_id: int
    date: date
    note: Optional[str] = None
    items: List[ItemTransferItemIn]


class ItemTransferUpdate(BaseModel):
    from_warehouse_id: Optional[int] = None
    to_warehouse_id: Optional[int] = None
    date: Optional[date] = None
    note: Optional[str] = None
    items: Optional[List[ItemTransferItemIn]] = None


class ItemTransfer(BaseModel):
    id: int
    code: str
    from_warehouse_id: int
    to_warehouse_id: int
    date: date
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[ItemTransferItem] = []

    class Config:
        from_attributes = True
