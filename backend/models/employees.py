from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin, TimestampMixin


class Employee(Base, AuditMixin):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    position = Column(String, nullable=True)
    base_salary = Column(Numeric(18, 6), default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    salaries = relationship("Salary", back_populates="employee")


class Salary(Base, TimestampMixin):
    __tablename__ = "salaries"
    __table_args__ = (UniqueConstraint('employee_id', 'year', 'month', name='_salary_employee_period_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    base_amount = Column(Numeric(18, 6), default=0, nullable=False)
    bonus = Column(Numeric(18, 6), default=0, nullable=False)
    deduction = Column(Numeric(18, 6), default=0, nullable=False)
    final_total = Column(Numeric(18, 6), default=0, nullable=False)

    employee = relationship("Employee", back_populates="salaries")
