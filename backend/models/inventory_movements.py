from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from utils import now_local


class InventoryMovement(Base):
    """Append-only trail of every ledger mutation."""
    __tablename__ = "inventory_movements"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    operation = Column(String(20), nullable=False)  # add, subtract, set, adjust
    change_amount = Column(Numeric(18, 4), nullable=False)  # signed
    old_quantity = Column(Numeric(18, 4), nullable=False)
    new_quantity = Column(Numeric(18, 4), nullable=False)
    reason = Column(String, nullable=True)
    reference_type = Column(String(50), nullable=True)  # purchase, sale, item_transfer, ...
    reference_id = Column(Integer, nullable=True)
    changed_by = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=now_local)

    item = relationship("Item")
    warehouse = relationship("Warehouse")
