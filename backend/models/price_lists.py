from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin, TimestampMixin


class PriceList(Base, AuditMixin):
    __tablename__ = "price_lists"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_price_list_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)

    items = relationship("PriceListItem", back_populates="price_list", cascade="all, delete-orphan")


class PriceListItem(Base, TimestampMixin):
    __tablename__ = "price_list_items"
    __table_args__ = (UniqueConstraint('price_list_id', 'item_id', name='_price_list_item_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    price_list_id = Column(Integer, ForeignKey("price_lists.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False)
    sell_price_usd = Column(Numeric(18, 6), nullable=False)

    price_list = relationship("PriceList", back_populates="items")
    item = relationship("Item")
