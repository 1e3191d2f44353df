"""initial back-office schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from database import Base
import models  # noqa: F401

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _existing_tables(conn) -> set:
    return set(sa.inspect(conn).get_table_names())


def upgrade() -> None:
    """Create every table that does not exist yet."""
    conn = op.get_bind()
    existing = _existing_tables(conn)
    tables = [table for table in Base.metadata.sorted_tables if table.name not in existing]
    Base.metadata.create_all(bind=conn, tables=tables)


def downgrade() -> None:
    """Drop every table, dependents first."""
    conn = op.get_bind()
    existing = _existing_tables(conn)
    tables = [table for table in Base.metadata.sorted_tables if table.name in existing]
    Base.metadata.drop_all(bind=conn, tables=tables)
