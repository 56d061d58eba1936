"""
Soft delete mixin.

PODs and log issues are never physically removed; deletion flips
``is_deleted`` and stamps ``deleted_at``. Queries that feed the board, the
issue log and the SLA sweep go through ``query_active()``.

Usage:
    class Pod(SoftDeleteMixin, db.Model):
        ...

    pod.soft_delete()
    db.session.commit()

    Pod.query_active().filter_by(is_history=False).all()
"""

from datetime import datetime, timezone

from podtracker.models import db


class SoftDeleteMixin:
    """Adds an ``is_deleted`` flag and query helpers to a model."""

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None)

    def soft_delete(self):
        self.is_deleted = True
        self.deleted_at = datetime.now(timezone.utc)

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted rows."""
        return cls.query.filter(cls.is_deleted.is_(False))
