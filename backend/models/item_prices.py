from sqlalchemy import Column, Integer, String, Text, Date, Numeric, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin


class PriceSourceType(enum.Enum):
    PURCHASE = "purchase"
    PURCHASE_RETURN = "purchase_return"
    ADJUSTMENT = "adjustment"
    MANUAL = "manual"
    INITIAL = "initial"


class ItemPrice(Base, TimestampMixin):
    """Current USD cost of an item. One row per item."""
    __tablename__ = "item_prices"
    __table_args__ = (UniqueConstraint('item_id', name='_item_price_item_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    price_usd = Column(Numeric(18, 6), nullable=False)
    effective_date = Column(Date, nullable=False)
    last_source_type = Column(Enum(PriceSourceType), nullable=True)
    last_source_id = Column(Integer, nullable=True)

    item = relationship("Item", back_populates="price")


class ItemPriceHistory(Base, TimestampMixin):
    """Append-only log of price changes. Rows are never updated or deleted."""
    __tablename__ = "item_price_history"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    latest_price = Column(Numeric(18, 6), nullable=True)  # price before the change
    price_usd = Column(Numeric(18, 6), nullable=False)  # price after the change
    average_weighted_price = Column(Numeric(18, 6), nullable=True)
    effective_date = Column(Date, nullable=False)
    source_type = Column(Enum(PriceSourceType), nullable=False)
    source_id = Column(Integer, nullable=True)
    note = Column(Text, nullable=True)

    item = relationship("Item", back_populates="price_history")
