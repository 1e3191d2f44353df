from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class ExpenseCategoryBase(BaseModel):
    name: str
    parent_id: Optional[int] = None
    exclude_from_profit: bool = False
    description: Optional[str] = None


class ExpenseCategoryCreate(ExpenseCategoryBase):
    pass


class ExpenseCategoryUpdate(BaseModel):
    name: Optional[str] = None
    parent_id: Optional[int] = None
    exclude_from_profit: Optional[bool] = None
    description: Optional[str] = None


class ExpenseCategory(ExpenseCategoryBase):
    id: int
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseTransactionBase(BaseModel):
    expense_category_id: int
    account_id: Optional[int] = None
    date: date
    amount_usd: Decimal
    description: Optional[str] = None
    document_path: Optional[str] = None


class ExpenseTransactionCreate(ExpenseTransactionBase):
    pass


class ExpenseTransactionUpdate(BaseModel):
    expense_category_id: Optional[int] = None
    account_id: Optional[int] = None
    date: Optional[date] = None
    amount_usd: Optional[Decimal] = None
    description: Optional[str] = None
    document_path: Optional[str] = None


class ExpenseTransaction(ExpenseTransactionBase):
    id: int
    tenant_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
