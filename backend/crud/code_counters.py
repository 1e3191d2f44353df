import logging

from sqlalchemy.orm import Session

from models.code_counters import CodeCounter

logger = logging.getLogger("code_counters")


def next_value(db: Session, tenant_id: str, name: str) -> int:
    """Increment and return the tenant's counter, creating it at 1 when absent.

    The row is locked for the rest of the transaction so concurrent callers
    serialize and never receive the same value.
    """
    counter = db.query(CodeCounter).filter(
        CodeCounter.tenant_id == tenant_id,
        CodeCounter.name == name,
    ).with_for_update().first()

    if counter is None:
        counter = CodeCounter(tenant_id=tenant_id, name=name, value=0)
        db.add(counter)
        logger.info(f"Counter '{name}' created for tenant {tenant_id}")

    counter.value += 1
    db.flush()
    return counter.value


def next_code(db: Session, tenant_id: str, name: str, prefix: str, width: int = 6) -> str:
    """Formatted document code, e.g. ``PUR-000042``."""
    return f"{prefix}-{next_value(db, tenant_id, name):0{width}d}"


def peek_value(db: Session, tenant_id: str, name: str) -> int:
    counter = db.query(CodeCounter).filter(
        CodeCounter.tenant_id == tenant_id,
        CodeCounter.name == name,
    ).first()
    return counter.value if counter else 0
