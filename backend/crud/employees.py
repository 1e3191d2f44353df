import logging
from typing import Optional

from sqlalchemy.orm import Session

from crud import accounts as accounts_crud
from crud.audit_log import log_change
from exceptions import BusinessRuleError, ConflictError, NotFoundError, service_errors
from models.employees import Employee, Salary
from utils import sqlalchemy_to_dict, to_decimal

logger = logging.getLogger("employees")

EMPLOYEE_FIELDS = ("name", "position", "base_salary", "is_active")
SALARY_FIELDS = ("account_id", "year", "month", "base_amount", "bonus", "deduction")


def get_employee(db: Session, tenant_id: str, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id, Employee.tenant_id == tenant_id).first()
    if employee is None:
        raise NotFoundError("Employee", employee_id)
    return employee


def create_employee(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> Employee:
    employee = Employee(tenant_id=tenant_id, created_by=user, **data)
    db.add(employee)
    log_change(db, tenant_id, employee, "CREATE", user)
    return employee


def update_employee(db: Session, employee: Employee, data: dict, user: Optional[str] = None) -> Employee:
    old_values = sqlalchemy_to_dict(employee)
    for field in EMPLOYEE_FIELDS:
        if field in data:
            setattr(employee, field, data[field])
    employee.updated_by = user
    log_change(db, employee.tenant_id, employee, "UPDATE", user, old_values=old_values)
    return employee


def calculate_final_total(base_amount, bonus, deduction):
    return to_decimal(base_amount) + to_decimal(bonus) - to_decimal(deduction)


def _validate_period(year: int, month: int):
    if not 1 <= int(month) <= 12:
        raise BusinessRuleError(f"Invalid salary month: {month}")
    if int(year) < 1900:
        raise BusinessRuleError(f"Invalid salary year: {year}")


def _check_unique_period(db: Session, salary_id: Optional[int], employee_id: int, year: int, month: int):
    query = db.query(Salary).filter(
        Salary.employee_id == employee_id,
        Salary.year == year,
        Salary.month == month,
    )
    if salary_id is not None:
        query = query.filter(Salary.id != salary_id)
    if query.first():
        raise ConflictError(f"Salary for {month:02d}/{year} already exists for employee {employee_id}")


def create_salary(db: Session, tenant_id: str, data: dict, user: Optional[str] = None) -> Salary:
    """Record a monthly salary; when it is paid from an account the balance goes down by the final total."""
    with service_errors(logger, "create salary"):
        employee = get_employee(db, tenant_id, data["employee_id"])
        _validate_period(data["year"], data["month"])
        _check_unique_period(db, None, employee.id, data["year"], data["month"])

        values = dict(data)
        if values.get("base_amount") is None:
            values["base_amount"] = employee.base_salary
        salary = Salary(tenant_id=tenant_id, created_by=user, **values)
        salary.final_total = calculate_final_total(salary.base_amount, salary.bonus or 0, salary.deduction or 0)
        if salary.final_total < 0:
            raise BusinessRuleError("Salary deduction cannot exceed base amount plus bonus")
        db.add(salary)
        db.flush()
        accounts_crud.adjust_balance(db, tenant_id, salary.account_id, -salary.final_total,
                                     f"salary #{salary.id}")
        logger.info(f"Salary {salary.month:02d}/{salary.year} for employee {employee.id} recorded for tenant {tenant_id}")
        return salary


def update_salary(db: Session, salary: Salary, data: dict, user: Optional[str] = None) -> Salary:
    with service_errors(logger, f"update salary #{salary.id}"):
        accounts_crud.adjust_balance(db, salary.tenant_id, salary.account_id, salary.final_total,
                                     f"salary #{salary.id} reversed")
        for field in SALARY_FIELDS:
            if data.get(field) is not None:
                setattr(salary, field, data[field])
        _validate_period(salary.year, salary.month)
        _check_unique_period(db, salary.id, salary.employee_id, salary.year, salary.month)
        salary.final_total = calculate_final_total(salary.base_amount, salary.bonus, salary.deduction)
        if salary.final_total < 0:
            raise BusinessRuleError("Salary deduction cannot exceed base amount plus bonus")
        salary.updated_by = user
        db.flush()
        accounts_crud.adjust_balance(db, salary.tenant_id, salary.account_id, -to_decimal(salary.final_total),
                                     f"salary #{salary.id}")
        return salary


def delete_salary(db: Session, salary: Salary, user: Optional[str] = None):
    with service_errors(logger, f"delete salary #{salary.id}"):
        accounts_crud.adjust_balance(db, salary.tenant_id, salary.account_id, salary.final_total,
                                     f"salary #{salary.id} deleted")
        log_change(db, salary.tenant_id, salary, "FORCE_DELETE", user)
        db.delete(salary)
        db.flush()
