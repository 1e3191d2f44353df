from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, Enum, UniqueConstraint
from database import Base
import enum
from models.audit_mixin import AuditMixin


class AccountType(enum.Enum):
    CASH = "cash"
    BANK = "bank"
    DEBT = "debt"


class Account(Base, AuditMixin):
    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint('tenant_id', 'name', name='_account_tenant_name_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    account_type = Column(Enum(AccountType), default=AccountType.CASH, nullable=False)
    opening_balance = Column(Numeric(18, 6), default=0, nullable=False)
    current_balance = Column(Numeric(18, 6), default=0, nullable=False)
    include_in_total = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)
