from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin


class NoteType(enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class PartnerRole(enum.Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class CreditDebitNote(Base, AuditMixin):
    """Credit lowers what the partner owes (customer) or what we owe (supplier); debit raises it."""
    __tablename__ = "credit_debit_notes"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    partner_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False, index=True)
    partner_role = Column(Enum(PartnerRole), nullable=False)
    type = Column(Enum(NoteType), nullable=False)
    date = Column(Date, nullable=False)
    amount_usd = Column(Numeric(18, 6), nullable=False)
    note = Column(Text, nullable=True)

    partner = relationship("BusinessPartner")
