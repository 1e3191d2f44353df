from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class AuditLogCreate(BaseModel):
    tenant_id: Optional[str] = None
    table_name: str
    record_id: int
    changed_by: Optional[str] = None
    action: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None


class AuditLog(AuditLogCreate):
    id: int
    changed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
