from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin, TimestampMixin


class PurchaseReturn(Base, AuditMixin):
    __tablename__ = "purchase_returns"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_purchase_return_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    supplier_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=True)
    date = Column(Date, nullable=False)
    total_usd = Column(Numeric(18, 6), default=0, nullable=False)
    note = Column(Text, nullable=True)

    supplier = relationship("BusinessPartner")
    warehouse = relationship("Warehouse")
    purchase = relationship("Purchase")
    items = relationship("PurchaseReturnItem", back_populates="purchase_return", cascade="all, delete-orphan")


class PurchaseReturnItem(Base, TimestampMixin):
    __tablename__ = "purchase_return_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    purchase_return_id = Column(Integer, ForeignKey("purchase_returns.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)
    price_usd = Column(Numeric(18, 6), nullable=False)  # unit cost credited by the supplier
    total_price_usd = Column(Numeric(18, 6), default=0, nullable=False)

    purchase_return = relationship("PurchaseReturn", back_populates="items")
    item = relationship("Item")
