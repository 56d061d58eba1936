"""
POD change notifier.

Diffs the before/after images of a POD mutation against a fixed rule table
and creates one notification per resolved recipient.

Rules:
    - assignment: ``assigned_engineer`` changed and the new value resolves to
      a live identity → notify that identity, even when it is the actor.
    - milestones: a tracked milestone date changed (compared by calendar day,
      so timezone drift on the same day is ignored) → notify every live
      PRIORITY identity except the actor.

Every rule fires at most once per mutation. There is no deduplication against
earlier notifications for the same logical event. Creation failures are
logged and swallowed; they never fail the parent mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from podtracker.core.exceptions import AuditWriteFailed
from podtracker.models import db
from podtracker.services.identity import live_users_with_role, resolve_identity, resolve_live_id
from podtracker.services.notification import NotificationService

logger = logging.getLogger(__name__)

SELECT_ASSIGNEE = "assignee"
SELECT_PRIORITY = "priority"

PRIORITY_ROLE = "PRIORITY"


@dataclass(frozen=True)
class NotificationRule:
    field: str
    selector: str
    template: str


RULES = (
    NotificationRule("assigned_engineer", SELECT_ASSIGNEE,
                     "Pod {pod} has been Assigned to you"),
    NotificationRule("lcm_add_ticket", SELECT_PRIORITY,
                     "LCM Add Ticket was submitted for the {pod} on {date}"),
    NotificationRule("lcm_complete", SELECT_PRIORITY,
                     "POD {pod} has completed LCM processes on {date}"),
    NotificationRule("lcm_network_delete_completion", SELECT_PRIORITY,
                     "LCM network deletes ticket has been submitted for the pod {pod} on {date}"),
    NotificationRule("preload_ticket_submitted", SELECT_PRIORITY,
                     "preload ticket has been submitted for the pod {pod} on {date}"),
    NotificationRule("preload_complete", SELECT_PRIORITY,
                     "Pod {pod} has completed preloads on {date}."),
    NotificationRule("vm_delete_list", SELECT_PRIORITY,
                     "VM Delete ticket has been submitted for the Pod {pod} on {date}"),
    NotificationRule("vm_deletes_complete", SELECT_PRIORITY,
                     "VM Deletes have been completed for the pod {pod} on {date}"),
)


def _values(obj) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return obj.snapshot()


def _calendar_day(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def format_day(value) -> str:
    """``Mon Mar 04 2024``."""
    return _calendar_day(value).strftime("%a %b %d %Y")


def changed_fields(before: dict, after: dict) -> list[NotificationRule]:
    """Rules whose field differs between the two images (pure)."""
    fired = []
    for rule in RULES:
        old = before.get(rule.field)
        new = after.get(rule.field)
        if rule.selector == SELECT_ASSIGNEE:
            if (old or "").strip() != (new or "").strip() and (new or "").strip():
                fired.append(rule)
        elif _calendar_day(old) != _calendar_day(new) and _calendar_day(new) is not None:
            fired.append(rule)
    return fired


class _Recipients:
    """Lazy recipient lookups shared by all rules of one dispatch."""

    def __init__(self, actor_id):
        self.actor_id = resolve_live_id(actor_id)
        self._priority = None

    def priority(self):
        if self._priority is None:
            self._priority = [
                u for u in live_users_with_role(PRIORITY_ROLE) if u.id != self.actor_id
            ]
        return self._priority

    def resolve(self, rule, after):
        if rule.selector == SELECT_ASSIGNEE:
            user = resolve_identity(after.get(rule.field))
            return [user] if user else []
        return self.priority()


def dispatch(before, after, actor_id: str | None) -> list:
    """Create notifications for the notable differences between ``before`` and ``after``.

    ``before`` is None for a freshly created POD, in which case every
    populated rule field counts as changed. Returns the created notifications.
    """
    old = _values(before)
    new = _values(after)
    rules = changed_fields(old, new)
    if not rules:
        return []

    recipients = _Recipients(actor_id)
    created = []
    for rule in rules:
        message = rule.template.format(
            pod=new.get("pod"),
            date=format_day(new[rule.field]) if rule.selector == SELECT_PRIORITY else "",
        )
        try:
            with db.session.begin_nested():
                batch = []
                for user in recipients.resolve(rule, new):
                    batch.append(NotificationService.create(
                        user_id=user.id,
                        created_for_id=user.id if rule.selector == SELECT_ASSIGNEE else None,
                        message=message,
                        pod_id=new.get("pod"),
                        created_by_id=recipients.actor_id,
                    ))
            created.extend(batch)
        except Exception as exc:
            err = AuditWriteFailed("notification", str(exc))
            logger.error("Notification rule %s for pod %s failed: %s",
                         rule.field, new.get("pod"), err, exc_info=True,
                         extra={"pod_id": new.get("id")})

    logger.debug("Dispatched %d notification(s) for pod %s", len(created), new.get("pod"))
    return created
