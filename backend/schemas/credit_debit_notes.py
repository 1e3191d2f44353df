from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from models.credit_debit_notes import NoteType, PartnerRole


class CreditDebitNoteCreate(BaseModel):
    partner_id: int
    partner_role: PartnerRole
    type: NoteType
    date: date
    amount_usd: Decimal
    note: Optional[str] = None


class CreditDebitNoteUpdate(BaseModel):
    date: Optional[date] = None
    amount_usd: Optional[Decimal] = None
    note: Optional[str] = None


class CreditDebitNote(CreditDebitNoteCreate):
    id: int
    code: str
    tenant_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
