from sqlalchemy import Column, Integer, String, Text, Enum, Boolean, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin


class PartnerStatus(enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    BLOCKED = "Blocked"


class BusinessPartner(Base, AuditMixin):
    """Customer, supplier or both."""
    __tablename__ = "business_partners"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_partner_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String, nullable=False)
    contact_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    status = Column(Enum(PartnerStatus), default=PartnerStatus.ACTIVE, nullable=False)
    is_supplier = Column(Boolean, default=False, nullable=False)
    is_customer = Column(Boolean, default=False, nullable=False)
    # Positive: the partner owes us (customer) / we owe the partner (supplier)
    opening_balance = Column(Numeric(18, 6), default=0, nullable=False)

    purchases = relationship("Purchase", back_populates="supplier", foreign_keys="Purchase.supplier_id")
    sales = relationship("Sale", back_populates="customer", foreign_keys="Sale.customer_id")
