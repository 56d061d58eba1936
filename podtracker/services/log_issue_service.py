"""
POD Tracker
Log Issue Service.

Issues raised against a POD during rollout, with the notifications that go
out when resolution owners are assigned:

    create
        → every resolution owner (by email) except the creator:
          "You were assigned as a resolution owner ..." (created for them)
        → every ADMIN / SUPER_ADMIN who is neither an owner nor the creator:
          "New log issue created for POD ... by <creator email>"
    update
        → only when owners were added: the same two fan-outs, restricted to
          the newly added owners, with "Log issue updated for POD ..."

Notification writes are best-effort and never fail the issue mutation.
Nothing here commits.
"""

import logging
from datetime import date

from sqlalchemy import func, or_

from podtracker.core.exceptions import AuditWriteFailed, NotFoundError, ValidationError
from podtracker.models import db
from podtracker.models.audit import write_audit
from podtracker.models.identity import User
from podtracker.models.log_issue import LogIssue
from podtracker.services.identity import live_users, resolve_live_id
from podtracker.services.notification import NotificationService
from podtracker.utils.helpers import parse_date

logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    "pod",
    "lep_version_being_applied",
    "status",
    "root_cause_owner",
    "description",
    "notes",
)
ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")

ASSIGNED_MESSAGE = "You were assigned as a resolution owner for log issue on POD {pod}"
CREATED_MESSAGE = "New log issue created for POD {pod} by {creator}"
UPDATED_MESSAGE = "Log issue updated for POD {pod} by {creator}"


def _owners(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError("resolution_owner must be a list of emails",
                              details={"resolution_owner": value})
    seen = []
    for item in (v.strip() for v in value):
        if item and item not in seen:
            seen.append(item)
    return seen


def _coerce(data: dict) -> dict:
    values = {}
    for key in TEXT_FIELDS:
        if key in data:
            raw = data[key]
            values[key] = raw.strip() if isinstance(raw, str) else (raw or "")
    if "resolution_owner" in data:
        values["resolution_owner"] = _owners(data["resolution_owner"])
    if "date_opened" in data:
        values["date_opened"] = parse_date(data["date_opened"]) or date.today()
    return values


# ── Reads ────────────────────────────────────────────────────────────────────


def get_log_issue(issue_id) -> LogIssue:
    issue = db.session.get(LogIssue, issue_id)
    if issue is None or issue.is_deleted:
        raise NotFoundError(resource="LogIssue", resource_id=issue_id)
    return issue


def list_log_issues(page=1, page_size=10, search=""):
    """Live issues, most recently opened first, optionally filtered by ``search``.

    Returns:
        dict with logIssues, totalCount, totalPages, currentPage.
    """
    q = LogIssue.query_active()
    term = (search or "").strip()
    if term:
        like = f"%{term}%"
        q = q.filter(or_(
            LogIssue.pod.ilike(like),
            LogIssue.lep_version_being_applied.ilike(like),
            LogIssue.status.ilike(like),
            LogIssue.root_cause_owner.ilike(like),
            db.cast(LogIssue.resolution_owner, db.Text).ilike(like),
            LogIssue.description.ilike(like),
        ))
    total = q.count()
    items = (
        q.order_by(LogIssue.date_opened.desc(), LogIssue.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "logIssues": [i.to_dict() for i in items],
        "totalCount": total,
        "totalPages": (total + page_size - 1) // page_size,
        "currentPage": page,
    }


# ── Notifications ────────────────────────────────────────────────────────────


def _users_by_email(emails, exclude_id):
    lowered = [e.lower() for e in emails]
    if not lowered:
        return []
    q = live_users().filter(func.lower(User.email).in_(lowered))
    if exclude_id:
        q = q.filter(User.id != exclude_id)
    return q.all()


def _admins(excluded_emails, exclude_id):
    excluded = {e.lower() for e in excluded_emails if e}
    return [
        u for u in live_users().filter(User.role.in_(ADMIN_ROLES)).all()
        if u.id != exclude_id and u.email and u.email.lower() not in excluded
    ]


def _notify_owners(issue, owners, actor_id, template) -> list:
    """Notify ``owners`` of their assignment and the admins of the change."""
    creator_email = issue.created_by.email if issue.created_by and issue.created_by.email else "Unknown"
    created = []
    try:
        with db.session.begin_nested():
            batch = []
            for user in _users_by_email(owners, actor_id):
                batch.append(NotificationService.create(
                    user_id=user.id,
                    created_for_id=user.id,
                    message=ASSIGNED_MESSAGE.format(pod=issue.pod),
                    pod_id=issue.pod,
                    log_issue_id=issue.id,
                    created_by_id=actor_id,
                ))
            summary = template.format(pod=issue.pod, creator=creator_email)
            for user in _admins([*owners, creator_email], actor_id):
                batch.append(NotificationService.create(
                    user_id=user.id,
                    message=summary,
                    pod_id=issue.pod,
                    log_issue_id=issue.id,
                    created_by_id=actor_id,
                ))
        created.extend(batch)
    except Exception as exc:
        err = AuditWriteFailed("notification", str(exc))
        logger.error("Log issue notifications for %s failed: %s", issue.id, err,
                     exc_info=True, extra={"user_id": actor_id})
    return created


# ── Mutations ────────────────────────────────────────────────────────────────


def create_log_issue(data: dict, actor_id=None) -> LogIssue:
    """Create an issue and notify its resolution owners and the admins.

    Raises:
        ValidationError: missing POD key or malformed owner list.
    """
    values = _coerce(data or {})
    if not values.get("pod"):
        raise ValidationError("pod is required", details={"pod": "required"})
    values.setdefault("date_opened", date.today())
    values.setdefault("status", "Open")

    actor = resolve_live_id(actor_id)
    issue = LogIssue(**values)
    issue.created_by_id = actor
    db.session.add(issue)
    db.session.flush()

    _notify_owners(issue, issue.resolution_owner or [], actor, CREATED_MESSAGE)
    write_audit(
        entity_type="LogIssue", entity_id=issue.id, action="create",
        created_by_id=actor, log_issue_id=issue.id, details=issue.to_dict(),
    )
    logger.info("Created log issue for pod %s", issue.pod, extra={"user_id": actor})
    return issue


def update_log_issue(issue_id, data: dict, actor_id=None) -> LogIssue:
    """Apply a partial update; newly added resolution owners are notified."""
    issue = get_log_issue(issue_id)
    values = _coerce(data or {})
    if "pod" in values and not values["pod"]:
        raise ValidationError("pod cannot be blank", details={"pod": "required"})

    actor = resolve_live_id(actor_id)
    before = issue.to_dict()
    previous_owners = list(issue.resolution_owner or [])
    for key, value in values.items():
        setattr(issue, key, value)
    db.session.flush()

    write_audit(
        entity_type="LogIssue", entity_id=issue.id, action="update",
        created_by_id=actor, log_issue_id=issue.id,
        details={"before": before, "after": issue.to_dict()},
    )
    added = [o for o in (issue.resolution_owner or []) if o not in previous_owners]
    if added:
        _notify_owners(issue, added, actor, UPDATED_MESSAGE)
    return issue


def delete_log_issue(issue_id, actor_id=None) -> LogIssue:
    issue = get_log_issue(issue_id)
    actor = resolve_live_id(actor_id)
    write_audit(
        entity_type="LogIssue", entity_id=issue.id, action="delete",
        created_by_id=actor, log_issue_id=issue.id, details=issue.to_dict(),
    )
    issue.soft_delete()
    db.session.flush()
    return issue
