"""
POD lifecycle service.

Every POD mutation goes through here so the side channels stay consistent:

    create / update
        → SLA deadline (only when both inputs are supplied)
        → status ledger (status / sub-status diff)
        → change notifier (assignment + milestone rules)
        → audit transaction

Ledger and notification writes are best-effort; their failures are logged by
the writers and never fail the mutation. Nothing here commits: blueprints own
the transaction boundary.

Usage:
    from podtracker.services import pod_service

    pod = pod_service.update_pod(pod_id, {"status": "Engineering"}, actor_id)
    db.session.commit()
"""

import logging
from datetime import datetime, timezone

from podtracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from podtracker.models import db
from podtracker.models.audit import write_audit
from podtracker.models.identity import User
from podtracker.models.pod import (
    MILESTONE_DATE_FIELDS,
    POD_STATUSES,
    POD_SUB_STATUSES,
    TERMINAL_STATUS,
    TEXT_FIELDS,
    Pod,
)
from podtracker.services.change_notifier import dispatch
from podtracker.services.identity import resolve_engineer_value, resolve_live_id
from podtracker.services.sla import compute_deadline, should_recompute
from podtracker.services.status_ledger import record_transition
from podtracker.utils.helpers import parse_date, parse_datetime

logger = logging.getLogger(__name__)

DATETIME_FIELDS = set(MILESTONE_DATE_FIELDS) | {"creation_timestamp"}
DATE_FIELDS = {"pod_workable_date", "sla_calculated_nbd"}
NA_FLAGS = {f"{name}_is_na" for name in DATETIME_FIELDS | DATE_FIELDS}
WRITABLE_FIELDS = (
    {"pod", "status", "sub_status", "assigned_engineer", "priority", "special"}
    | set(TEXT_FIELDS) | DATETIME_FIELDS | DATE_FIELDS | NA_FLAGS
)

# Columns filled with these values when a bulk-import row leaves them blank
IMPORT_DEFAULTS = {
    "status": "Initial",
    "sub_status": "Assignment",
    "assigned_engineer": "",
    "org": "ENG",
    "priority": 9999,
    "pod_type": "eUPF",
    "special": False,
}

# Roles that see PODs staged with should_display=False
VISIBILITY_ROLES = ("SUPER_ADMIN", "PRIORITY")


def _now():
    return datetime.now(timezone.utc)


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "n/a", "na")
    return bool(value)


def _coerce(data: dict) -> dict:
    """Keep writable keys only and convert each value to its column type."""
    values = {}
    for key, value in (data or {}).items():
        if key not in WRITABLE_FIELDS:
            continue
        if key in DATETIME_FIELDS:
            values[key] = parse_datetime(value)
        elif key in DATE_FIELDS:
            values[key] = parse_date(value)
        elif key in NA_FLAGS or key == "special":
            values[key] = _as_bool(value)
        elif key == "priority":
            try:
                values[key] = int(value) if value not in (None, "") else 9999
            except (TypeError, ValueError):
                raise ValidationError("priority must be an integer", details={"priority": value})
        else:
            values[key] = value.strip() if isinstance(value, str) else value

    # A date flagged N/A carries no value
    for flag in NA_FLAGS & values.keys():
        if values[flag]:
            values[flag[: -len("_is_na")]] = None

    if "status" in values and values["status"] not in POD_STATUSES:
        raise ValidationError(f"Unknown status: {values['status']}", details={"status": values["status"]})
    if "sub_status" in values and values["sub_status"] not in POD_SUB_STATUSES:
        raise ValidationError(
            f"Unknown sub-status: {values['sub_status']}", details={"sub_status": values["sub_status"]},
        )
    return values


def _apply_sla(values: dict, current: dict | None = None):
    """Recompute ``sla_calculated_nbd`` when the payload carries both SLA inputs."""
    if not should_recompute(values):
        return
    supplied = values.get("sla_calculated_nbd", (current or {}).get("sla_calculated_nbd"))
    values["sla_calculated_nbd"] = compute_deadline(
        values["pod_type_original"], values["pod_workable_date"], supplied,
    )


def _active_by_key(pod_key):
    return Pod.query_active().filter_by(pod=pod_key, is_history=False).first()


# ── Reads ────────────────────────────────────────────────────────────────────


def get_pod(pod_id) -> Pod:
    pod = db.session.get(Pod, pod_id)
    if pod is None or pod.is_deleted:
        raise NotFoundError(resource="Pod", resource_id=pod_id)
    return pod


def list_pods(is_history=False, viewer=None):
    """Live PODs of one partition, ordered the way the board shows them.

    On the active board, PODs hidden with ``should_display`` are only listed
    for SUPER_ADMIN and PRIORITY viewers. The history view is unfiltered.
    """
    q = Pod.query_active().filter_by(is_history=is_history)
    if not is_history and (viewer is None or viewer.role not in VISIBILITY_ROLES):
        q = q.filter(Pod.should_display.is_(True))
    return q.order_by(Pod.priority.asc(), Pod.created_at.asc()).all()


def toggle_pod_visibility(pod_id, actor_id=None) -> Pod:
    """Flip ``should_display`` on one POD. Callers enforce the SUPER_ADMIN gate."""
    pod = get_pod(pod_id)
    previous = pod.should_display
    pod.should_display = not previous
    db.session.flush()
    write_audit(
        entity_type="Pod", entity_id=pod.id, action="toggle_visibility",
        created_by_id=resolve_live_id(actor_id), pod_id=pod.id,
        details={"previousVisibility": previous, "newVisibility": pod.should_display},
    )
    logger.info("Pod %s visibility → %s", pod.pod, pod.should_display,
                extra={"pod_id": pod.id, "user_id": actor_id})
    return pod


# ── Create / update ──────────────────────────────────────────────────────────


def create_pod(data: dict, actor_id=None) -> Pod:
    """Create an active POD.

    Raises:
        ValidationError: missing business key or unknown status value.
        ConflictError: an active POD with the same key already exists.
    """
    values = _coerce(data)
    pod_key = values.get("pod") or ""
    if not pod_key:
        raise ValidationError("pod is required", details={"pod": "required"})
    if _active_by_key(pod_key):
        raise ConflictError(resource="Pod", field="pod", value=pod_key)

    actor = resolve_live_id(actor_id)
    _apply_sla(values)

    now = _now()
    pod = Pod(**values)
    pod.created_by_id = actor
    pod.sub_status_last_changed = now
    if (pod.assigned_engineer or "").strip():
        pod.assigned_engineer_date = now

    creator = db.session.get(User, actor) if actor else None
    # PRIORITY users stage PODs that stay hidden until engineering picks them up
    if creator is not None and creator.role == "PRIORITY":
        pod.should_display = False

    db.session.add(pod)
    db.session.flush()

    after = pod.snapshot()
    record_transition(pod.id, actor, None, after)
    dispatch(None, after, actor)
    write_audit(
        entity_type="Pod", entity_id=pod.id, action="create",
        created_by_id=actor, pod_id=pod.id, details={"pod": pod.pod},
    )
    logger.info("Created pod %s", pod.pod, extra={"pod_id": pod.id, "user_id": actor})
    return pod


def update_pod(pod_id, data: dict, actor_id=None) -> Pod:
    """Apply a partial update to one POD and run every side channel.

    Raises:
        NotFoundError: unknown or deleted POD.
        ValidationError: unknown status / sub-status value.
        ConflictError: renaming an active POD to a key another active POD holds.
    """
    pod = get_pod(pod_id)
    before = pod.snapshot()
    actor = resolve_live_id(actor_id)

    values = _coerce(data)
    if not values.get("pod"):
        values.pop("pod", None)
    new_key = values.get("pod")
    if new_key and new_key != before["pod"] and not pod.is_history:
        holder = _active_by_key(new_key)
        if holder is not None and holder.id != pod.id:
            raise ConflictError(resource="Pod", field="pod", value=new_key)
    _apply_sla(values, before)

    for key, value in values.items():
        setattr(pod, key, value)

    now = _now()
    if "sub_status" in values and values["sub_status"] != before["sub_status"]:
        pod.sub_status_last_changed = now
    if (pod.assigned_engineer or "").strip() and pod.assigned_engineer_date is None:
        pod.assigned_engineer_date = now

    db.session.flush()
    after = pod.snapshot()

    record_transition(pod.id, actor, before, after)
    dispatch(before, after, actor)

    changed = sorted(k for k in values if before.get(k) != after.get(k))
    write_audit(
        entity_type="Pod", entity_id=pod.id, action="update",
        created_by_id=actor, pod_id=pod.id,
        details={"pod": pod.pod, "changed": changed},
    )
    logger.info("Updated pod %s (%d field(s))", pod.pod, len(changed),
                extra={"pod_id": pod.id, "user_id": actor})
    return pod


# ── Archive moves ────────────────────────────────────────────────────────────


def delete_pod(pod_id, actor_id=None) -> Pod:
    pod = get_pod(pod_id)
    actor = resolve_live_id(actor_id)
    pod.soft_delete()
    db.session.flush()
    write_audit(
        entity_type="Pod", entity_id=pod.id, action="delete",
        created_by_id=actor, pod_id=pod.id, details={"pod": pod.pod},
    )
    logger.info("Deleted pod %s", pod.pod, extra={"pod_id": pod.id, "user_id": actor})
    return pod


def complete_pod(pod_key, actor_id=None) -> Pod:
    """Mark the active POD ``pod_key`` Complete and move it to history."""
    pod = _active_by_key(pod_key)
    if pod is None:
        raise NotFoundError(resource="Pod", resource_id=pod_key)
    before = pod.snapshot()
    actor = resolve_live_id(actor_id)

    pod.status = TERMINAL_STATUS
    pod.is_history = True
    pod.completed_date = _now()
    db.session.flush()

    after = pod.snapshot()
    record_transition(pod.id, actor, before, after)
    dispatch(before, after, actor)
    write_audit(
        entity_type="Pod", entity_id=pod.id, action="complete",
        created_by_id=actor, pod_id=pod.id, details={"pod": pod.pod},
    )
    return pod


def move_to_history(pod_id, actor_id=None) -> Pod:
    """Archive a POD that is already Complete.

    Raises:
        ValidationError: the POD is not in the terminal status.
    """
    pod = get_pod(pod_id)
    if pod.status != TERMINAL_STATUS:
        raise ValidationError(
            "Only completed pods can be moved to history",
            details={"status": pod.status},
        )
    previous_completed = pod.completed_date
    pod.is_history = True
    pod.completed_date = previous_completed or _now()
    db.session.flush()
    write_audit(
        entity_type="Pod", entity_id=pod.id, action="move_to_history",
        created_by_id=resolve_live_id(actor_id), pod_id=pod.id,
        details={"pod": pod.pod, "before": {"completedDate": previous_completed},
                 "after": {"completedDate": pod.completed_date}},
    )
    return pod


def move_to_active(pod_key, actor_id=None) -> Pod:
    """Bring the history POD ``pod_key`` back to the active board.

    Raises:
        NotFoundError: no history POD with that key.
        ConflictError: an active POD with the same key already exists.
    """
    pod = (
        Pod.query_active()
        .filter_by(pod=pod_key, is_history=True)
        .order_by(Pod.updated_at.desc())
        .first()
    )
    if pod is None:
        raise NotFoundError(resource="Pod", resource_id=pod_key)
    if _active_by_key(pod_key):
        raise ConflictError(resource="Pod", field="pod", value=pod_key)

    previous_completed = pod.completed_date
    pod.is_history = False
    pod.completed_date = None
    db.session.flush()
    write_audit(
        entity_type="Pod", entity_id=pod.id, action="move_to_active",
        created_by_id=resolve_live_id(actor_id), pod_id=pod.id,
        details={"pod": pod.pod, "before": {"completedDate": previous_completed},
                 "after": {"completedDate": None}},
    )
    return pod


# ── Bulk import ──────────────────────────────────────────────────────────────


def import_pods(rows, is_history=False, actor_id=None) -> list[dict]:
    """Create PODs from spreadsheet rows.

    Rows without a business key are skipped. On the active board an existing
    key is skipped rather than updated; history imports always append.
    Imported rows go through the SLA calculator and engineer-name resolution
    but not through the ledger or the change notifier.

    Returns:
        One ``{"pod": key, "action": "created" | "skipped"}`` entry per keyed row.
    """
    if not isinstance(rows, list):
        raise ValidationError("Invalid payload", details={"pods": "must be a list"})

    actor = resolve_live_id(actor_id)
    results = []
    for row in rows:
        raw = {k: v for k, v in (row or {}).items() if v not in ("", None)}
        values = {**IMPORT_DEFAULTS, **_coerce(raw)}
        pod_key = values.get("pod") or ""
        if not pod_key:
            logger.debug("Skipping import row without a pod key")
            continue
        if not is_history and _active_by_key(pod_key):
            results.append({"pod": pod_key, "action": "skipped"})
            continue

        values["assigned_engineer"] = resolve_engineer_value(values.get("assigned_engineer"))
        _apply_sla(values)

        pod = Pod(**values)
        pod.is_history = bool(is_history)
        pod.created_by_id = actor
        db.session.add(pod)
        db.session.flush()
        results.append({"pod": pod_key, "action": "created"})

    created = sum(1 for r in results if r["action"] == "created")
    logger.info("Imported %d pod(s), skipped %d", created, len(results) - created,
                extra={"user_id": actor})
    return results
