from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin


class PurchaseItem(Base, TimestampMixin):
    __tablename__ = "purchase_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    item_code = Column(String(50), nullable=True)
    price = Column(Numeric(18, 6), nullable=False)  # purchase currency, per unit
    quantity = Column(Numeric(18, 4), nullable=False)
    discount_percent = Column(Numeric(7, 4), default=0, nullable=False)
    discount_amount = Column(Numeric(18, 6), default=0, nullable=False)
    total_price = Column(Numeric(18, 6), default=0, nullable=False)
    total_price_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_shipping_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_customs_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_other_usd = Column(Numeric(18, 6), default=0, nullable=False)
    final_total_cost_usd = Column(Numeric(18, 6), default=0, nullable=False)
    cost_per_item_usd = Column(Numeric(18, 6), default=0, nullable=False)  # landed unit cost
    note = Column(Text, nullable=True)

    purchase = relationship("Purchase", back_populates="items")
    item = relationship("Item", back_populates="purchase_items")
