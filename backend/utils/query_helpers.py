"""
Composable search, sort and pagination helpers for list endpoints.

Each helper takes a SQLAlchemy ``Query`` and returns a new one, so routers can
chain them after their own tenant and status filters:

    query = apply_search(query, Item, search, ITEM_SEARCH_FIELDS, search_field)
    query = apply_sort(query, Item, sort_by, sort_direction, ITEM_SORT_FIELDS, default="code")
    return paginate(query, page, per_page, serializer=ItemSchema.model_validate)
"""

import math
from typing import Callable, Optional, Sequence

from sqlalchemy import or_, String, cast
from sqlalchemy.orm import Query

MAX_PER_PAGE = 200


def apply_search(query: Query, model, term: Optional[str], fields: Sequence[str],
                 search_field: Optional[str] = None) -> Query:
    """Case-insensitive LIKE over the allowed fields.

    When ``search_field`` names one of the allowed fields only that column is
    searched; an unknown ``search_field`` falls back to all allowed fields.
    """
    if not term or not term.strip():
        return query
    pattern = f"%{term.strip()}%"
    columns = [search_field] if search_field in fields else list(fields)
    clauses = [cast(getattr(model, name), String).ilike(pattern) for name in columns]
    return query.filter(or_(*clauses))


def normalize_direction(direction: Optional[str], default: str = "asc") -> str:
    if direction and direction.lower() in ("asc", "desc"):
        return direction.lower()
    return default


def apply_sort(query: Query, model, sort_by: Optional[str], direction: Optional[str],
               allowed: Sequence[str], default: str = "id", default_direction: str = "desc") -> Query:
    """Order by an allowed column; anything else falls back to the default field."""
    field = sort_by if sort_by in allowed else default
    column = getattr(model, field)
    if normalize_direction(direction, default_direction) == "desc":
        return query.order_by(column.desc(), model.id.desc())
    return query.order_by(column.asc(), model.id.asc())


def paginate(query: Query, page: int = 1, per_page: int = 15,
             serializer: Optional[Callable] = None, message: str = "Records retrieved successfully") -> dict:
    """Run the query one page at a time and wrap it in the list envelope."""
    page = max(page, 1)
    per_page = min(max(per_page, 1), MAX_PER_PAGE)

    total = query.order_by(None).count()
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    data = [serializer(row) for row in rows] if serializer else rows

    last_page = max(math.ceil(total / per_page), 1)
    start = (page - 1) * per_page + 1 if rows else None
    end = start + len(rows) - 1 if rows else None
    return {
        "message": message,
        "data": data,
        "pagination": {
            "current_page": page,
            "per_page": per_page,
            "total": total,
            "last_page": last_page,
            "from": start,
            "to": end,
            "has_more_pages": page < last_page,
        },
    }
