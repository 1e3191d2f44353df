from sqlalchemy import Column, Integer, String, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin


class Warehouse(Base, AuditMixin):
    __tablename__ = "warehouses"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_warehouse_tenant_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String, nullable=False)
    address = Column(Text, nullable=True)
    include_in_total_stock = Column(Boolean, default=True, nullable=False)  # counted by the capital report
    is_active = Column(Boolean, default=True, nullable=False)

    inventories = relationship("Inventory", back_populates="warehouse")
