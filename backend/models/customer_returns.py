from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin, TimestampMixin


class CustomerReturn(Base, AuditMixin):
    __tablename__ = "customer_returns"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_customer_return_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    customer_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True)
    date = Column(Date, nullable=False)
    total_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_profit = Column(Numeric(18, 6), default=0, nullable=False)
    # Stock only comes back once the warehouse confirms receipt
    is_received = Column(Boolean, default=False, nullable=False)
    received_at = Column(DateTime(timezone=True), nullable=True)
    received_by = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    customer = relationship("BusinessPartner")
    warehouse = relationship("Warehouse")
    sale = relationship("Sale")
    items = relationship("CustomerReturnItem", back_populates="customer_return", cascade="all, delete-orphan")


class CustomerReturnItem(Base, TimestampMixin):
    __tablename__ = "customer_return_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    customer_return_id = Column(Integer, ForeignKey("customer_returns.id"), nullable=False, index=True)
    sale_item_id = Column(Integer, ForeignKey("sale_items.id"), nullable=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)
    price_usd = Column(Numeric(18, 6), nullable=False)
    cost_price = Column(Numeric(18, 6), default=0, nullable=False)
    total_price_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_profit = Column(Numeric(18, 6), default=0, nullable=False)

    customer_return = relationship("CustomerReturn", back_populates="items")
    item = relationship("Item")
