from sqlalchemy import Column, Integer, String, UniqueConstraint
from database import Base
from models.audit_mixin import TimestampMixin


class CodeCounter(Base, TimestampMixin):
    """Monotonic per-tenant counter backing document codes (PUR-000001, INV-000001)."""
    __tablename__ = "code_counters"
    __table_args__ = (UniqueConstraint('tenant_id', 'name', name='_code_counter_tenant_name_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    value = Column(Integer, nullable=False, default=0)
