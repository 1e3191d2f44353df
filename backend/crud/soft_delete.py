"""Trash handling shared by the setup entities (items, warehouses, partners, accounts, categories)."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crud.audit_log import log_change
from exceptions import BusinessRuleError, NotFoundError

logger = logging.getLogger("soft_delete")


def get_trashed(db: Session, model, tenant_id: str, record_id: int):
    record = db.query(model).execution_options(include_deleted=True).filter(
        model.id == record_id,
        model.tenant_id == tenant_id,
        model.deleted_at.isnot(None),
    ).first()
    if record is None:
        raise NotFoundError(f"Trashed {model.__tablename__} record", record_id)
    return record


def list_trashed(db: Session, model, tenant_id: str):
    """Query of the tenant's soft-deleted rows, newest deletion first."""
    return db.query(model).execution_options(include_deleted=True).filter(
        model.tenant_id == tenant_id,
        model.deleted_at.isnot(None),
    ).order_by(model.deleted_at.desc())


def soft_delete(db: Session, record, user: Optional[str] = None):
    record.soft_delete(user)
    log_change(db, record.tenant_id, record, "DELETE", user)
    return record


def restore(db: Session, model, tenant_id: str, record_id: int, user: Optional[str] = None,
            unique_fields: List[str] = ()):
    """Bring a row back from the trash unless a live row now holds one of its unique values."""
    record = get_trashed(db, model, tenant_id, record_id)
    for field in unique_fields:
        clash = db.query(model).filter(
            model.tenant_id == tenant_id,
            getattr(model, field) == getattr(record, field),
            model.id != record.id,
        ).first()
        if clash:
            raise BusinessRuleError(
                f"Cannot restore: another record already uses {field} '{getattr(record, field)}'"
            )
    record.restore()
    record.updated_by = user
    log_change(db, tenant_id, record, "RESTORE", user)
    logger.info(f"{model.__tablename__} #{record.id} restored by user {user} for tenant {tenant_id}")
    return record


def force_delete(db: Session, model, tenant_id: str, record_id: int, user: Optional[str] = None):
    """Remove a trashed row for good. Rows still referenced by documents cannot be purged."""
    record = get_trashed(db, model, tenant_id, record_id)
    log_change(db, tenant_id, record, "FORCE_DELETE", user)
    try:
        db.delete(record)
        db.flush()
    except IntegrityError as e:
        logger.warning(f"Force delete of {model.__tablename__} #{record_id} blocked: {e.orig}")
        raise BusinessRuleError(f"{model.__tablename__} #{record_id} is still referenced and cannot be removed")
    logger.info(f"{model.__tablename__} #{record_id} permanently deleted by user {user} for tenant {tenant_id}")
