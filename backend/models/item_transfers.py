from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin, TimestampMixin


class ItemTransfer(Base, AuditMixin):
    __tablename__ = "item_transfers"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_item_transfer_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    from_warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    to_warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    date = Column(Date, nullable=False)
    note = Column(Text, nullable=True)

    from_warehouse = relationship("Warehouse", foreign_keys=[from_warehouse_id])
    to_warehouse = relationship("Warehouse", foreign_keys=[to_warehouse_id])
    items = relationship("ItemTransferItem", back_populates="item_transfer", cascade="all, delete-orphan")


class ItemTransferItem(Base, TimestampMixin):
    __tablename__ = "item_transfer_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    item_transfer_id = Column(Integer, ForeignKey("item_transfers.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)

    item_transfer = relationship("ItemTransfer", back_populates="items")
    item = relationship("Item")
