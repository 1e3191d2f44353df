from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin


class SaleItem(Base, TimestampMixin):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    item_code = Column(String(50), nullable=True)
    quantity = Column(Numeric(18, 4), nullable=False)
    cost_price = Column(Numeric(18, 6), default=0, nullable=False)  # item price (USD) at sale time
    price = Column(Numeric(18, 6), nullable=False)
    price_usd = Column(Numeric(18, 6), nullable=False)
    discount_percent = Column(Numeric(7, 4), default=0, nullable=False)
    unit_discount_amount_usd = Column(Numeric(18, 6), default=0, nullable=False)
    discount_amount_usd = Column(Numeric(18, 6), default=0, nullable=False)
    net_sell_price_usd = Column(Numeric(18, 6), default=0, nullable=False)
    tax_percent = Column(Numeric(5, 2), default=0, nullable=False)
    tax_amount_usd = Column(Numeric(18, 6), default=0, nullable=False)
    ttc_price_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_net_sell_price_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_tax_amount_usd = Column(Numeric(18, 6), default=0, nullable=False)
    total_price = Column(Numeric(18, 6), default=0, nullable=False)
    total_price_usd = Column(Numeric(18, 6), default=0, nullable=False)
    unit_profit = Column(Numeric(18, 6), default=0, nullable=False)
    total_profit = Column(Numeric(18, 6), default=0, nullable=False)

    sale = relationship("Sale", back_populates="items")
    item = relationship("Item")
