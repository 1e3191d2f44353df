from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin


class PurchaseStatus(enum.Enum):
    WAITING = "Waiting"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


class Purchase(Base, AuditMixin):
    __tablename__ = "purchases"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_purchase_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    supplier_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(Enum(PurchaseStatus), default=PurchaseStatus.WAITING, nullable=False)
    supplier_invoice_number = Column(String, nullable=True)
    # Units of purchase currency per USD
    currency_rate = Column(Numeric(18, 6), default=1, nullable=False)

    discount_amount = Column(Numeric(18, 6), default=0, nullable=False)
    discount_amount_usd = Column(Numeric(18, 6), default=0, nullable=False)
    tax_usd = Column(Numeric(18, 6), default=0, nullable=False)
    shipping_fee_usd = Column(Numeric(18, 6), default=0, nullable=False)
    shipping_fee_usd_percent = Column(Numeric(7, 4), default=0, nullable=False)
    customs_fee_usd = Column(Numeric(18, 6), default=0, nullable=False)
    customs_fee_usd_percent = Column(Numeric(7, 4), default=0, nullable=False)
    other_fee_usd = Column(Numeric(18, 6), default=0, nullable=False)
    other_fee_usd_percent = Column(Numeric(7, 4), default=0, nullable=False)

    sub_total = Column(Numeric(18, 6), default=0, nullable=False)
    sub_total_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total = Column(Numeric(18, 6), default=0, nullable=False)
    total_usd = Column(Numeric(18, 6), default=0, nullable=False)
    final_total_usd = Column(Numeric(18, 6), default=0, nullable=False)

    document_path = Column(String(500), nullable=True)
    note = Column(Text, nullable=True)

    supplier = relationship("BusinessPartner", back_populates="purchases", foreign_keys=[supplier_id])
    warehouse = relationship("Warehouse")
    items = relationship("PurchaseItem", back_populates="purchase", cascade="all, delete-orphan",
                         order_by="PurchaseItem.id")
