from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin

TAXED_PREFIX = "INV"
TAX_FREE_PREFIX = "INX"


class SaleStatus(enum.Enum):
    WAITING = "Waiting"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


class Sale(Base, AuditMixin):
    __tablename__ = "sales"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_sale_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    prefix = Column(String(10), nullable=False, default=TAXED_PREFIX)
    customer_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    price_list_id = Column(Integer, ForeignKey("price_lists.id"), nullable=True)
    date = Column(Date, nullable=False)
    status = Column(Enum(SaleStatus), default=SaleStatus.WAITING, nullable=False)
    currency_rate = Column(Numeric(18, 6), default=1, nullable=False)

    discount_amount = Column(Numeric(18, 6), default=0, nullable=False)
    discount_amount_usd = Column(Numeric(18, 6), default=0, nullable=False)
    sub_total = Column(Numeric(18, 6), default=0, nullable=False)
    sub_total_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_tax_amount = Column(Numeric(18, 6), default=0, nullable=False)
    total_tax_amount_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total = Column(Numeric(18, 6), default=0, nullable=False)
    total_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_profit = Column(Numeric(18, 6), default=0, nullable=False)
    note = Column(Text, nullable=True)

    customer = relationship("BusinessPartner", back_populates="sales", foreign_keys=[customer_id])
    warehouse = relationship("Warehouse")
    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan", order_by="SaleItem.id")
