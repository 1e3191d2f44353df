from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime
from decimal import Decimal
from models.business_partners import PartnerStatus


class BusinessPartnerBase(BaseModel):
    code: str
    name: str
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    email: Optional[EmailStr] = None
    status: PartnerStatus = PartnerStatus.ACTIVE
    is_supplier: bool = False
    is_customer: bool = True
    opening_balance: Decimal = Decimal("0")


class BusinessPartnerCreate(BusinessPartnerBase):
    pass


class BusinessPartnerUpdate(BaseModel):
    code: Optional[str] = None
    name: Optional[str] = None
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    email: Optional[EmailStr] = None
    status: Optional[PartnerStatus] = None
    is_supplier: Optional[bool] = None
    is_customer: Optional[bool] = None
    opening_balance: Optional[Decimal] = None


class BusinessPartner(BusinessPartnerBase):
    id: int
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
