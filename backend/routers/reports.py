from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from schemas.reports import CapitalReport, CapitalSnapshot, SnapshotRequest
from crud import capital_report
from crud import expense_report
from crud import inventory as crud_inventory
from crud import profit_report
from utils.auth_utils import get_current_user, get_user_identifier
from utils.spreadsheets import XLSX_MEDIA_TYPE
from utils.tenancy import get_tenant_id

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
)
logger = logging.getLogger("reports")


@router.get("/capital", response_model=CapitalReport)
def read_capital_report(db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    """What the business is worth right now: stock, receivables and cash, net of debt."""
    return capital_report.get_capital_report(db, tenant_id)


@router.get("/capital/history", response_model=List[CapitalSnapshot])
def read_capital_history(year: Optional[int] = None, db: Session = Depends(get_db),
                         tenant_id: str = Depends(get_tenant_id)):
    return capital_report.get_history(db, tenant_id, year=year)


@router.post("/capital/snapshot", response_model=CapitalSnapshot)
def create_capital_snapshot(
    body: SnapshotRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    if not 1 <= body.month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    try:
        snapshot = capital_report.take_snapshot(db, tenant_id, body.year, body.month)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(snapshot)
    logger.info(f"Capital snapshot {body.month:02d}/{body.year} taken by user {get_user_identifier(user)} "
                f"for tenant {tenant_id}")
    return snapshot


@router.get("/monthly-profit")
def read_monthly_profit(year: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    return profit_report.get_monthly_profit_report(db, tenant_id, year)


@router.get("/monthly-profit/export")
def export_monthly_profit(year: int, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    excel_file = profit_report.export_monthly_profit_report(db, tenant_id, year)
    headers = {
        'Content-Disposition': f'attachment; filename="monthly_profit_{year}.xlsx"'
    }
    return StreamingResponse(excel_file, media_type=XLSX_MEDIA_TYPE, headers=headers)


@router.get("/expenses")
def read_expense_report(start_date: date, end_date: date, db: Session = Depends(get_db),
                        tenant_id: str = Depends(get_tenant_id)):
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must be on or before end_date")
    return expense_report.get_expense_report(db, tenant_id, start_date, end_date)


@router.get("/salaries")
def read_salary_report(year: int, month: Optional[int] = None, db: Session = Depends(get_db),
                       tenant_id: str = Depends(get_tenant_id)):
    return expense_report.get_salary_report(db, tenant_id, year, month=month)


@router.get("/inventory-valuation")
def read_inventory_valuation(warehouse_id: Optional[int] = None, db: Session = Depends(get_db),
                             tenant_id: str = Depends(get_tenant_id)):
    rows = crud_inventory.get_inventory_balance(db, tenant_id, warehouse_id=warehouse_id)
    return {
        "data": rows,
        "total_quantity": sum(row["quantity"] for row in rows),
        "total_value_usd": sum(row["total_value_usd"] for row in rows),
    }
