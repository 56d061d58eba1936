"""
POD Tracker
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

from datetime import datetime, timezone

from podtracker.models import db


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event. Only the ``read`` flag ever changes
    after creation, and only through the owning recipient.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
        comment="Recipient",
    )
    created_for_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    message = db.Column(db.Text, nullable=False, default="")

    # Link to source entity
    pod_id = db.Column(db.String(100), nullable=True, comment="POD business key")
    log_issue_id = db.Column(db.String(36), nullable=True)

    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
        comment="NULL for system notifications",
    )

    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    created_by = db.relationship("User", foreign_keys=[created_by_id])

    def mark_read(self):
        self.read = True

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "pod_id": self.pod_id,
            "log_issue_id": self.log_issue_id,
            "created_by_id": self.created_by_id,
            "created_by_email": self.created_by.email if self.created_by else "System",
            "read": self.read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.message[:40]}>"
