from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal
from models.accounts import AccountType


class AccountBase(BaseModel):
    name: str
    account_type: AccountType = AccountType.CASH
    include_in_total: bool = True
    is_active: bool = True
    description: Optional[str] = None


class AccountCreate(AccountBase):
    current_balance: Decimal = Decimal("0")  # opening balance


class AccountUpdate(BaseModel):
    name: Optional[str] = None
    account_type: Optional[AccountType] = None
    include_in_total: Optional[bool] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class Account(AccountBase):
    id: int
    tenant_id: Optional[str] = None
    opening_balance: Optional[Decimal] = None
    current_balance: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
