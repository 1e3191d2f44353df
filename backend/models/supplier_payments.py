from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin


class SupplierPayment(Base, AuditMixin):
    __tablename__ = "supplier_payments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    supplier_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=True)
    payment_date = Column(Date, nullable=False)
    amount_usd = Column(Numeric(18, 6), nullable=False)
    reference_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    supplier = relationship("BusinessPartner")
    account = relationship("Account")
