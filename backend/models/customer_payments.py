from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin


class CustomerPayment(Base, AuditMixin):
    __tablename__ = "customer_payments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True)
    payment_date = Column(Date, nullable=False)
    amount_usd = Column(Numeric(18, 6), nullable=False)
    reference_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    customer = relationship("BusinessPartner")
    account = relationship("Account")
