from sqlalchemy import Column, Integer, String, Text, Numeric, Date, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin


class ExpenseCategory(Base, AuditMixin):
    __tablename__ = "expense_categories"
    __table_args__ = (UniqueConstraint('tenant_id', 'name', name='_expense_category_tenant_name_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("expense_categories.id"), nullable=True)
    exclude_from_profit = Column(Boolean, default=False, nullable=False)
    description = Column(Text, nullable=True)

    parent = relationship("ExpenseCategory", remote_side=[id], backref="children")


class ExpenseTransaction(Base, AuditMixin):
    __tablename__ = "expense_transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    expense_category_id = Column(Integer, ForeignKey("expense_categories.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    date = Column(Date, nullable=False)
    amount_usd = Column(Numeric(18, 6), nullable=False)
    description = Column(Text, nullable=True)
    document_path = Column(String(500), nullable=True)

    category = relationship("ExpenseCategory")
    account = relationship("Account")
