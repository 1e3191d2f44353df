from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from models.account_movements import AccountAdjustType


class AccountTransferCreate(BaseModel):
    date: date
    from_account_id: int
    to_account_id: int
    sent_amount: Decimal
    received_amount: Optional[Decimal] = None  # defaults to sent_amount x currency_rate
    currency_rate: Decimal = Decimal("1")
    note: Optional[str] = None


class AccountTransferUpdate(BaseModel):
    date: Optional[date] = None
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    sent_amount: Optional[Decimal] = None
    received_amount: Optional[Decimal] = None
    currency_rate: Optional[Decimal] = None
    note: Optional[str] = None


class AccountTransfer(BaseModel):
    id: int
    tenant_id: Optional[str] = None
    code: str
    date: date
    from_account_id: int
    to_account_id: int
    sent_amount: Decimal
    received_amount: Decimal
    currency_rate: Decimal
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountAdjustCreate(BaseModel):
    date: date
    account_id: int
    type: AccountAdjustType
    amount: Decimal
    note: Optional[str] = None


class AccountAdjustUpdate(BaseModel):
    date: Optional[date] = None
    account_id: Optional[int] = None
    type: Optional[AccountAdjustType] = None
    amount: Optional[Decimal] = None
    note: Optional[str] = None


class AccountAdjust(AccountAdjustCreate):
    id: int
    tenant_id: Optional[str] = None
    code: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IncomeCategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None


class IncomeCategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class IncomeCategory(IncomeCategoryCreate):
    id: int
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IncomeTransactionCreate(BaseModel):
    date: date
    income_category_id: int
    account_id: int
    amount: Decimal
    note: Optional[str] = None


class IncomeTransactionUpdate(BaseModel):
    date: Optional[date] = None
    income_category_id: Optional[int] = None
    account_id: Optional[int] = None
    amount: Optional[Decimal] = None
    note: Optional[str] = None


class IncomeTransaction(IncomeTransactionCreate):
    id: int
    tenant_id: Optional[str] = None
    code: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
