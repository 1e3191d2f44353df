from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime
from decimal import Decimal


class CapitalReport(BaseModel):
    stock: Decimal
    vat_on_stock: Decimal
    pending_purchases: Decimal
    net_stock: Decimal
    unpaid_customers: Decimal
    accounts_total: Decimal
    net_capital: Decimal
    debt_accounts: Decimal
    final_result: Decimal


class CapitalSnapshot(BaseModel):
    id: int
    year: int
    month: int
    net_capital: Decimal
    final_result: Decimal
    payload: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SnapshotRequest(BaseModel):
    year: int
    month: int
