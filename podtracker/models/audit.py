"""
POD Tracker
Audit domain model.

Models:
    - AuditTransaction: append-only record of POD and identity lifecycle actions
"""

import json
from datetime import datetime, timezone

from podtracker.models import db


# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ACTIONS = {
    "create",
    "update",
    "delete",
    "complete",
    "move_to_history",
    "move_to_active",
    "merge_profile",
}


class AuditTransaction(db.Model):
    """
    One row per user-visible action. ``details`` carries a JSON snapshot
    (before/after for updates, the merge mapping for identity merges).
    """

    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("idx_transactions_entity", "entity_type", "entity_id"),
        db.Index("idx_transactions_created", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(30), nullable=False, comment="Pod | User | LogIssue")
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(40), nullable=False)
    details = db.Column(db.Text, default="{}")
    pod_id = db.Column(db.String(36), nullable=True)
    log_issue_id = db.Column(db.String(36), nullable=True)
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )

    @property
    def details_dict(self) -> dict:
        try:
            return json.loads(self.details or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "details": self.details_dict,
            "pod_id": self.pod_id,
            "log_issue_id": self.log_issue_id,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditTransaction {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    created_by_id: str | None = None,
    details: dict | None = None,
    pod_id: str | None = None,
    log_issue_id: str | None = None,
) -> AuditTransaction:
    """
    Append a single audit row. Uses ``flush`` so callers keep
    transaction control.
    """
    row = AuditTransaction(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        details=json.dumps(details or {}, default=str),
        pod_id=pod_id,
        log_issue_id=log_issue_id,
        created_by_id=created_by_id,
    )
    db.session.add(row)
    db.session.flush()
    return row
