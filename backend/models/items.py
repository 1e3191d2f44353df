from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin


class CostCalculation(enum.Enum):
    WEIGHTED_AVERAGE = "weighted_average"
    LAST_COST = "last_cost"


class Item(Base, AuditMixin):
    __tablename__ = "items"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_item_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    unit = Column(String(20), nullable=False, default="pcs")
    category = Column(String, nullable=True)
    # Fixed per item, selects the pricing algorithm for every future purchase
    cost_calculation = Column(Enum(CostCalculation), default=CostCalculation.WEIGHTED_AVERAGE, nullable=False)
    starting_price = Column(Numeric(18, 6), default=0, nullable=False)
    base_sell_price = Column(Numeric(18, 6), default=0, nullable=False)
    tax_percent = Column(Numeric(5, 2), default=0, nullable=False)
    low_quantity_alert = Column(Numeric(18, 4), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    inventories = relationship("Inventory", back_populates="item")
    price = relationship("ItemPrice", back_populates="item", uselist=False)
    price_history = relationship("ItemPriceHistory", back_populates="item", order_by="ItemPriceHistory.id")
    purchase_items = relationship("PurchaseItem", back_populates="item")
