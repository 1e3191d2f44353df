from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from models.items import CostCalculation
from models.item_prices import PriceSourceType


class ItemBase(BaseModel):
    code: str
    name: str
    description: Optional[str] = None
    unit: str = "pcs"
    category: Optional[str] = None
    cost_calculation: CostCalculation = CostCalculation.WEIGHTED_AVERAGE
    starting_price: Decimal = Decimal("0")
    base_sell_price: Decimal = Decimal("0")
    tax_percent: Decimal = Decimal("0")
    low_quantity_alert: Optional[Decimal] = None
    is_active: bool = True


class ItemCreate(ItemBase):
    pass


class ItemUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    cost_calculation: Optional[CostCalculation] = None
    starting_price: Optional[Decimal] = None
    base_sell_price: Optional[Decimal] = None
    tax_percent: Optional[Decimal] = None
    low_quantity_alert: Optional[Decimal] = None
    is_active: Optional[bool] = None


class Item(ItemBase):
    id: int
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ItemPrice(BaseModel):
    item_id: int
    price_usd: Decimal
    effective_date: date
    last_source_type: Optional[PriceSourceType] = None
    last_source_id: Optional[int] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ItemPriceHistory(BaseModel):
    id: int
    item_id: int
    latest_price: Optional[Decimal] = None
    price_usd: Decimal
    average_weighted_price: Optional[Decimal] = None
    effective_date: date
    source_type: PriceSourceType
    source_id: Optional[int] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ItemPriceAdjust(BaseModel):
    price_usd: Decimal
    note: Optional[str] = None
    effective_date: Optional[date] = None


class SupplierItemPrice(BaseModel):
    id: int
    supplier_id: int
    item_id: int
    price: Decimal
    currency_rate: Decimal
    price_usd: Decimal
    last_purchase_id: Optional[int] = None
    last_purchase_date: Optional[date] = None
    is_current: bool

    class Config:
        from_attributes = True
