from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from schemas.audit_log import AuditLog
from crud import audit_log as crud_audit_log
from utils.tenancy import get_tenant_id

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])


@router.get("/", response_model=List[AuditLog])
def read_audit_logs(
    table_name: Optional[str] = None,
    record_id: Optional[int] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    """Most recent changes first, optionally narrowed to one table or one record."""
    return crud_audit_log.get_audit_logs(db, tenant_id, table_name=table_name, record_id=record_id,
                                         limit=min(max(limit, 1), 500))
