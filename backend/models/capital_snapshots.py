from sqlalchemy import Column, Integer, String, Numeric, JSON, UniqueConstraint
from database import Base
from models.audit_mixin import TimestampMixin


class CapitalSnapshot(Base, TimestampMixin):
    """Month-end capital figures, one row per tenant and month."""
    __tablename__ = "capital_snapshots"
    __table_args__ = (UniqueConstraint('tenant_id', 'year', 'month', name='_capital_snapshot_period_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    net_capital = Column(Numeric(18, 2), nullable=False)
    final_result = Column(Numeric(18, 2), nullable=False)
    payload = Column(JSON, nullable=True)
