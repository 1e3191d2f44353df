from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin, TimestampMixin


class AdjustType(enum.Enum):
    ADD = "Add"
    SUBTRACT = "Subtract"


class ItemAdjust(Base, AuditMixin):
    __tablename__ = "item_adjusts"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_item_adjust_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    type = Column(Enum(AdjustType), nullable=False)
    date = Column(Date, nullable=False)
    note = Column(Text, nullable=True)

    warehouse = relationship("Warehouse")
    items = relationship("ItemAdjustItem", back_populates="item_adjust", cascade="all, delete-orphan")


class ItemAdjustItem(Base, TimestampMixin):
    __tablename__ = "item_adjust_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    item_adjust_id = Column(Integer, ForeignKey("item_adjusts.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)
    unit_cost_usd = Column(Numeric(18, 6), nullable=True)  # Add only; blended into the item price

    item_adjust = relationship("ItemAdjust", back_populates="items")
    item = relationship("Item")
