from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin


class Inventory(Base, TimestampMixin):
    """Quantity of one item in one warehouse. Created on the first movement, never deleted."""
    __tablename__ = "inventories"
    __table_args__ = (UniqueConstraint('item_id', 'warehouse_id', name='_inventory_item_warehouse_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    quantity = Column(Numeric(18, 4), default=0, nullable=False)

    item = relationship("Item", back_populates="inventories")
    warehouse = relationship("Warehouse", back_populates="inventories")
