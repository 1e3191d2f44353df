from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal


class EmployeeBase(BaseModel):
    name: str
    position: Optional[str] = None
    base_salary: Decimal = Decimal("0")
    is_active: bool = True


class EmployeeCreate(EmployeeBase):
    pass


class EmployeeUpdate(BaseModel):
    name: Optional[str] = None
    position: Optional[str] = None
    base_salary: Optional[Decimal] = None
    is_active: Optional[bool] = None


class Employee(EmployeeBase):
    id: int
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SalaryCreate(BaseModel):
    employee_id: int
    account_id: Optional[int] = None
    year: int
    month: int
    base_amount: Optional[Decimal] = None  # defaults to the employee's base salary
    bonus: Decimal = Decimal("0")
    deduction: Decimal = Decimal("0")


class SalaryUpdate(BaseModel):
    account_id: Optional[int] = None
    year: Optional[int] = None
    month: Optional[int] = None
    base_amount: Optional[Decimal] = None
    bonus: Optional[Decimal] = None
    deduction: Optional[Decimal] = None


class Salary(BaseModel):
    id: int
    employee_id: int
    account_id: Optional[int] = None
    year: int
    month: int
    base_amount: Decimal
    bonus: Decimal
    deduction: Decimal
    final_total: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
