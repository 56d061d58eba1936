"""
Status ledger writer.

Appends one ``PodStatusHistory`` row per track (status, sub-status) whose
value changed in a mutation. The ledger is an audit side-channel: write
failures are logged and swallowed inside a savepoint so the parent POD
mutation is never rolled back by them.

Usage:
    from podtracker.services.status_ledger import record_transition

    record_transition(pod.id, actor_id,
                      before={"status": "Initial", "sub_status": "Assignment"},
                      after={"status": "Engineering", "sub_status": "Assignment"})
"""

import logging

from podtracker.core.exceptions import AuditWriteFailed
from podtracker.models import db
from podtracker.models.pod import PodStatusHistory
from podtracker.services.identity import resolve_live_id

logger = logging.getLogger(__name__)


def _changed(before: dict, after: dict, key: str) -> bool:
    old = before.get(key)
    new = after.get(key)
    return bool(old) and old != new


def record_transition(pod_id: str, actor_id: str | None, before: dict | None, after: dict) -> list[PodStatusHistory]:
    """Write ledger entries for the tracks that differ between ``before`` and ``after``.

    ``before`` is None (or holds no values) for a freshly created POD: the
    initial values are implied by the POD row itself, so nothing is written.

    Returns the entries written; an empty list on no-op diffs and on failure.
    """
    before = before or {}
    entries = []

    try:
        with db.session.begin_nested():
            changed_by_id = resolve_live_id(actor_id)
            if _changed(before, after, "status"):
                entries.append(PodStatusHistory(
                    pod_id=pod_id,
                    status=after["status"],
                    previous_status=before["status"],
                    changed_by_id=changed_by_id,
                ))
            if _changed(before, after, "sub_status"):
                entries.append(PodStatusHistory(
                    pod_id=pod_id,
                    sub_status=after["sub_status"],
                    previous_sub_status=before["sub_status"],
                    changed_by_id=changed_by_id,
                ))
            db.session.add_all(entries)
            db.session.flush()
    except Exception as exc:
        err = AuditWriteFailed("ledger", str(exc))
        logger.error("Status ledger write for pod %s failed: %s", pod_id, err,
                     exc_info=True, extra={"pod_id": pod_id})
        return []

    if entries:
        logger.debug("Recorded %d ledger entr%s for pod %s",
                     len(entries), "y" if len(entries) == 1 else "ies", pod_id)
    return entries
