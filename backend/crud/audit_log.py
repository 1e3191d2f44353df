import logging
from typing import Optional

from sqlalchemy.orm import Session

from models.audit_log import AuditLog
from schemas.audit_log import AuditLogCreate
from utils import sqlalchemy_to_dict

logger = logging.getLogger("audit_log")


def create_audit_log(db: Session, log_entry: AuditLogCreate) -> AuditLog:
    """Stage an audit row in the caller's transaction."""
    db_log_entry = AuditLog(**log_entry.model_dump())
    db.add(db_log_entry)
    return db_log_entry


def log_change(db: Session, tenant_id: str, obj, action: str, changed_by: str,
               old_values: Optional[dict] = None) -> AuditLog:
    """Audit a create/update/delete of ``obj``; ``old_values`` is the snapshot taken before the change."""
    db.flush()
    new_values = None if action == "FORCE_DELETE" else sqlalchemy_to_dict(obj)
    return create_audit_log(db, AuditLogCreate(
        tenant_id=tenant_id,
        table_name=obj.__tablename__,
        record_id=obj.id,
        changed_by=changed_by,
        action=action,
        old_values=old_values or {},
        new_values=new_values,
    ))


def get_audit_logs(db: Session, tenant_id: str, table_name: Optional[str] = None, record_id: Optional[int] = None,
                   limit: int = 100):
    query = db.query(AuditLog).filter(AuditLog.tenant_id == tenant_id)
    if table_name:
        query = query.filter(AuditLog.table_name == table_name)
    if record_id is not None:
        query = query.filter(AuditLog.record_id == record_id)
    return query.order_by(AuditLog.id.desc()).limit(limit).all()
