"""
POD Tracker
Identity model — registered and imported engineer profiles.

A registered profile carries an email (created at signup). An imported profile
carries only a name and is created the first time an unknown engineer name
shows up in bulk data. ``merged_into_user_id`` marks a tombstone: the profile
was collapsed into another one and must never be a live actor or recipient.
"""

import uuid
from datetime import datetime, timezone

from podtracker.models import db


# ── Constants ────────────────────────────────────────────────────────────────

USER_ROLES = ("REGULAR", "ADMIN", "PRIORITY", "SUPER_ADMIN")


def _uuid():
    return str(uuid.uuid4())


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(200), unique=True, nullable=True, index=True)
    name = db.Column(db.String(200), nullable=True, index=True)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False, default="REGULAR")
    is_imported_profile = db.Column(db.Boolean, nullable=False, default=False)
    merged_into_user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    merged_into = db.relationship("User", remote_side=[id])

    @property
    def is_registered(self):
        return bool(self.email)

    @property
    def is_tombstone(self):
        return self.merged_into_user_id is not None

    @property
    def display_name(self):
        """Name shown on assignments: the profile name, else the email local part."""
        if self.name:
            return self.name
        if self.email:
            return self.email.split("@")[0]
        return self.id

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "is_imported_profile": self.is_imported_profile,
            "merged_into_user_id": self.merged_into_user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email or self.name}>"
