from sqlalchemy import Column, DateTime, String

from utils import now_local


class TimestampMixin:
    """Created/updated timestamps and the acting user.

    Used by every tenant-owned model. Rows that must never disappear from
    reports (documents, setup entities) also take ``SoftDeleteMixin``.
    """
    created_at = Column(DateTime(timezone=True), default=now_local)
    updated_at = Column(DateTime(timezone=True), onupdate=now_local)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)


class SoftDeleteMixin:
    """deleted_at/deleted_by columns picked up by the soft-delete query filter."""
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String, nullable=True)

    def soft_delete(self, user_id: str = None):
        self.deleted_at = now_local()
        self.deleted_by = user_id

    def restore(self):
        self.deleted_at = None
        self.deleted_by = None


class AuditMixin(TimestampMixin, SoftDeleteMixin):
    """Timestamps plus soft delete."""
    pass
