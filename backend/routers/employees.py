from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db
from models.employees import Employee as EmployeeModel, Salary as SalaryModel
from schemas.employees import Employee, EmployeeCreate, EmployeeUpdate, Salary, SalaryCreate, SalaryUpdate
from crud import employees as crud_employees
from crud import soft_delete
from crud.audit_log import log_change
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_current_user, get_user_identifier
from utils.query_helpers import apply_search, apply_sort, paginate
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/employees", tags=["Employees"])
logger = logging.getLogger("employees")


@router.post("/", response_model=Employee, status_code=status.HTTP_201_CREATED)
def create_employee(
    employee: EmployeeCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    user_id = get_user_identifier(user)
    db_employee = crud_employees.create_employee(db, tenant_id, employee.model_dump(), user_id)
    db.commit()
    db.refresh(db_employee)
    logger.info(f"Employee '{db_employee.name}' created by user {user_id} for tenant {tenant_id}")
    return db_employee


@router.get("/")
def read_employees(
    page: int = 1,
    per_page: int = 15,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(EmployeeModel).filter(EmployeeModel.tenant_id == tenant_id)
    if is_active is not None:
        query = query.filter(EmployeeModel.is_active == is_active)
    query = apply_search(query, EmployeeModel, search, ("name", "position"))
    query = apply_sort(query, EmployeeModel, sort_by, sort_direction, ("id", "name", "base_salary"),
                       default="name", default_direction="asc")
    return paginate(query, page, per_page, serializer=Employee.model_validate)


# Salary routes come before /{employee_id} so "salaries" is not read as an id.

@router.post("/salaries", response_model=Salary, status_code=status.HTTP_201_CREATED)
def create_salary(
    salary: SalaryCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Record a month's salary. final_total = base + bonus - deduction, paid out of the account if given."""
    user_id = get_user_identifier(user)
    try:
        db_salary = crud_employees.create_salary(db, tenant_id, salary.model_dump(), user_id)
        log_change(db, tenant_id, db_salary, "CREATE", user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_salary)
    logger.info(f"Salary #{db_salary.id} created by user {user_id} for tenant {tenant_id}")
    return db_salary


@router.get("/salaries")
def read_salaries(
    page: int = 1,
    per_page: int = 15,
    employee_id: Optional[int] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    query = db.query(SalaryModel).filter(SalaryModel.tenant_id == tenant_id)
    if employee_id:
        query = query.filter(SalaryModel.employee_id == employee_id)
    if year:
        query = query.filter(SalaryModel.year == year)
    if month:
        query = query.filter(SalaryModel.month == month)
    query = query.order_by(SalaryModel.year.desc(), SalaryModel.month.desc(), SalaryModel.id.desc())
    return paginate(query, page, per_page, serializer=Salary.model_validate)


def _get_salary(db: Session, salary_id: int, tenant_id: str) -> SalaryModel:
    db_salary = db.query(SalaryModel).filter(SalaryModel.id == salary_id, SalaryModel.tenant_id == tenant_id).first()
    if db_salary is None:
        raise HTTPException(status_code=404, detail="Salary not found")
    return db_salary


@router.get("/salaries/{salary_id}", response_model=Salary)
def read_salary(salary_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return _get_salary(db, salary_id, tenant_id)


@router.patch("/salaries/{salary_id}", response_model=Salary)
def update_salary(
    salary_id: int,
    salary: SalaryUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_salary = _get_salary(db, salary_id, tenant_id)
    user_id = get_user_identifier(user)
    old_values = sqlalchemy_to_dict(db_salary)
    try:
        crud_employees.update_salary(db, db_salary, salary.model_dump(exclude_unset=True), user_id)
        log_change(db, tenant_id, db_salary, "UPDATE", user_id, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_salary)
    logger.info(f"Salary #{salary_id} updated by user {user_id} for tenant {tenant_id}")
    return db_salary


@router.delete("/salaries/{salary_id}")
def delete_salary(
    salary_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_salary = _get_salary(db, salary_id, tenant_id)
    user_id = get_user_identifier(user)
    try:
        crud_employees.delete_salary(db, db_salary, user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Salary #{salary_id} deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Salary deleted successfully"}


@router.get("/{employee_id}", response_model=Employee)
def read_employee(employee_id: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return crud_employees.get_employee(db, tenant_id, employee_id)


@router.patch("/{employee_id}", response_model=Employee)
def update_employee(
    employee_id: int,
    employee: EmployeeUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_employee = crud_employees.get_employee(db, tenant_id, employee_id)
    user_id = get_user_identifier(user)
    crud_employees.update_employee(db, db_employee, employee.model_dump(exclude_unset=True), user_id)
    db.commit()
    db.refresh(db_employee)
    logger.info(f"Employee '{db_employee.name}' (ID: {employee_id}) updated by user {user_id} for tenant {tenant_id}")
    return db_employee


@router.delete("/{employee_id}")
def delete_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    db_employee = crud_employees.get_employee(db, tenant_id, employee_id)
    user_id = get_user_identifier(user)
    soft_delete.soft_delete(db, db_employee, user_id)
    db.commit()
    logger.info(f"Employee '{db_employee.name}' (ID: {employee_id}) deleted by user {user_id} for tenant {tenant_id}")
    return {"message": "Employee deleted successfully"}
