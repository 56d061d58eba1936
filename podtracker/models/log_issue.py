"""
POD Tracker
Log & issue model.

Issues raised against a POD during rollout. ``resolution_owner`` holds the
emails of the owners who are notified when they are assigned; the creator
reference is repointed when identities are merged.
"""

import uuid
from datetime import datetime, timezone

from podtracker.models import db
from podtracker.models.soft_delete import SoftDeleteMixin


def _uuid():
    return str(uuid.uuid4())


class LogIssue(SoftDeleteMixin, db.Model):
    __tablename__ = "log_issues"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    pod = db.Column(db.String(100), nullable=False, index=True)
    date_opened = db.Column(db.Date, nullable=True)
    lep_version_being_applied = db.Column(db.String(50), default="")
    status = db.Column(db.String(30), default="Open")
    root_cause_owner = db.Column(db.String(200), default="")
    resolution_owner = db.Column(db.JSON, default=list)
    description = db.Column(db.Text, default="")
    notes = db.Column(db.Text, default="")
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    created_by = db.relationship("User", foreign_keys=[created_by_id])

    def to_dict(self):
        return {
            "id": self.id,
            "pod": self.pod,
            "date_opened": self.date_opened.isoformat() if self.date_opened else None,
            "lep_version_being_applied": self.lep_version_being_applied,
            "status": self.status,
            "root_cause_owner": self.root_cause_owner,
            "resolution_owner": self.resolution_owner or [],
            "description": self.description,
            "notes": self.notes,
            "created_by_id": self.created_by_id,
            "created_by_email": self.created_by.email if self.created_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
