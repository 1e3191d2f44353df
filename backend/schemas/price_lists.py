from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class PriceListItemBase(BaseModel):
    item_id: int
    sell_price_usd: Decimal


class PriceListItem(PriceListItemBase):
    id: int

    class Config:
        from_attributes = True


class PriceListBase(BaseModel):
    code: str
    description: Optional[str] = None
    is_default: bool = False


class PriceListCreate(PriceListBase):
    items: List[PriceListItemBase] = []


class PriceListUpdate(BaseModel):
    code: Optional[str] = None
    description: Optional[str] = None
    is_default: Optional[bool] = None
    items: Optional[List[PriceListItemBase]] = None


class PriceList(PriceListBase):
    id: int
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[PriceListItem] = []

    class Config:
        from_attributes = True
