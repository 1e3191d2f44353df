from sqlalchemy import Column, Integer, String, Date, Numeric, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin


class SupplierItemPrice(Base, TimestampMixin):
    """Last price paid to a supplier for an item; one ``is_current`` row per pair."""
    __tablename__ = "supplier_item_prices"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    supplier_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    price = Column(Numeric(18, 6), nullable=False)
    currency_rate = Column(Numeric(18, 6), default=1, nullable=False)
    price_usd = Column(Numeric(18, 6), nullable=False)
    last_purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=True)
    last_purchase_date = Column(Date, nullable=True)
    is_current = Column(Boolean, default=True, nullable=False)

    supplier = relationship("BusinessPartner")
    item = relationship("Item")
