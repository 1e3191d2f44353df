from datetime import datetime
from decimal import Decimal
import enum
import os

from sqlalchemy.orm import class_mapper
import pytz

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")


def now_local() -> datetime:
    """Timezone-aware 'now' in the configured application timezone."""
    return datetime.now(pytz.timezone(APP_TIMEZONE))


def to_decimal(value) -> Decimal:
    """Coerce DB aggregates (None, float, int, Decimal) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def sqlalchemy_to_dict(obj):
    """Convert a SQLAlchemy object to a JSON-friendly dictionary."""
    if not obj:
        return None
    mapper = class_mapper(obj.__class__)
    result = {}
    for c in mapper.columns:
        value = getattr(obj, c.key)
        if hasattr(value, 'isoformat'):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        elif isinstance(value, enum.Enum):
            value = value.value
        result[c.key] = value
    return result


__all__ = ['APP_TIMEZONE', 'now_local', 'sqlalchemy_to_dict', 'to_decimal']
