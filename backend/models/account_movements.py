from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin


class AccountAdjustType(enum.Enum):
    CREDIT = "Credit"  # raises the balance
    DEBIT = "Debit"


class AccountTransfer(Base, AuditMixin):
    __tablename__ = "account_transfers"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    from_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    to_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    sent_amount = Column(Numeric(18, 6), nullable=False)
    received_amount = Column(Numeric(18, 6), nullable=False)
    currency_rate = Column(Numeric(18, 6), default=1, nullable=False)
    note = Column(Text, nullable=True)

    from_account = relationship("Account", foreign_keys=[from_account_id])
    to_account = relationship("Account", foreign_keys=[to_account_id])


class AccountAdjust(Base, AuditMixin):
    __tablename__ = "account_adjusts"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    type = Column(Enum(AccountAdjustType), nullable=False)
    amount = Column(Numeric(18, 6), nullable=False)
    note = Column(Text, nullable=True)

    account = relationship("Account")


class IncomeCategory(Base, AuditMixin):
    __tablename__ = "income_categories"
    __table_args__ = (UniqueConstraint('tenant_id', 'name', name='_income_category_tenant_name_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)


class IncomeTransaction(Base, AuditMixin):
    __tablename__ = "income_transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    income_category_id = Column(Integer, ForeignKey("income_categories.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(Numeric(18, 6), nullable=False)
    note = Column(Text, nullable=True)

    category = relationship("IncomeCategory")
    account = relationship("Account")
