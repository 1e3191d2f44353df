from pydantic import BaseModel
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from models.sales import SaleStatus


class SaleItemIn(BaseModel):
    item_id: int
    quantity: Decimal
    price: Decimal  # sale currency, per unit
    discount_percent: Decimal = Decimal("0")
    tax_percent: Optional[Decimal] = None  # defaults to the item's tax percent


class SaleItem(BaseModel):
    id: int
    item_id: int
    item_code: Optional[str] = None
    quantity: Decimal
    cost_price: Decimal
    price: Decimal
    price_usd: Decimal
    discount_percent: Decimal
    unit_discount_amount_usd: Decimal
    discount_amount_usd: Decimal
    net_sell_price_usd: Decimal
    tax_percent: Decimal
    tax_amount_usd: Decimal
    ttc_price_usd: Decimal
    total_net_sell_price_usd: Decimal
    total_tax_amount_usd: Decimal
    total_price: Decimal
    total_price_usd: Decimal
    unit_profit: Decimal
    total_profit: Decimal

    class Config:
        from_attributes = True


class SaleCreate(BaseModel):
    customer_id: int
    warehouse_id: int
    price_list_id: Optional[int] = None
    date: date
    status: SaleStatus = SaleStatus.WAITING
    tax_free: bool = False
    currency_rate: Decimal = Decimal("1")
    discount_amount: Decimal = Decimal("0")
    discount_amount_usd: Optional[Decimal] = None
    note: Optional[str] = None
    items: List[SaleItemIn]


class SaleStatusUpdate(BaseModel):
    status: SaleStatus


class Sale(BaseModel):
    id: int
    code: str
    prefix: str
    customer_id: int
    warehouse_id: int
    price_list_id: Optional[int] = None
    date: date
    status: SaleStatus
    currency_rate: Decimal
    discount_amount: Decimal
    discount_amount_usd: Decimal
    sub_total: Decimal
    sub_total_usd: Decimal
    total_tax_amount: Decimal
    total_tax_amount_usd: Decimal
    total: Decimal
    total_usd: Decimal
    total_profit: Decimal
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[SaleItem] = []

    class Config:
        from_attributes = True
