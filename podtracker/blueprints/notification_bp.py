"""
POD Tracker
Notification & Scheduling Blueprint.

Provides:
    - The caller's notification feed (paginated, with unread count)
    - Read / bulk-read actions, restricted to the recipient
    - Scheduled job management (list, status, trigger, toggle), SUPER_ADMIN only
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from podtracker.blueprints import current_user
from podtracker.services.notification import NotificationService
from podtracker.services.scheduler_service import SchedulerService
from podtracker.utils.errors import E, api_error
from podtracker.utils.helpers import db_commit_or_error, get_actor_id, page_args

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ═══════════════════════════════════════════════════════════════════════════

@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    """Notifications addressed to the caller, newest first."""
    user_id = get_actor_id()
    if not user_id:
        return api_error(E.UNAUTHORIZED, "Unauthorized")

    page, page_size = page_args(default_size=10)
    created_for_only = request.args.get("createdFor", "false").lower() == "true"
    return jsonify(NotificationService.list_for_user(
        user_id, page=page, page_size=page_size, created_for_only=created_for_only,
    ))


@notification_bp.route("/notifications/<int:nid>/read", methods=["POST"])
def mark_read(nid):
    user_id = get_actor_id()
    if not user_id:
        return api_error(E.UNAUTHORIZED, "Unauthorized")

    notif = NotificationService.mark_read(nid, user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/mark-visible", methods=["POST"])
def mark_visible():
    """Mark the notifications currently visible in the bell as read."""
    user_id = get_actor_id()
    if not user_id:
        return api_error(E.UNAUTHORIZED, "Unauthorized")

    data = request.get_json(silent=True) or {}
    ids = data.get("ids")
    if not isinstance(ids, list) or not ids:
        return api_error(E.VALIDATION_INVALID, "ids must be a non-empty list")
    try:
        ids = [int(i) for i in ids]
    except (TypeError, ValueError):
        return api_error(E.VALIDATION_INVALID, "ids must be integers")

    count = NotificationService.mark_many_read(ids, user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"updated": count})


# ═══════════════════════════════════════════════════════════════════════════
#  SCHEDULED JOBS
# ═══════════════════════════════════════════════════════════════════════════

def _require_super_admin():
    """Error response unless the caller is a live SUPER_ADMIN, else None."""
    actor = current_user()
    if actor is None:
        return api_error(E.UNAUTHORIZED, "Unauthorized")
    if actor.role != "SUPER_ADMIN":
        return api_error(E.FORBIDDEN, "Forbidden")
    return None


@notification_bp.route("/scheduler/jobs", methods=["GET"])
def list_scheduled_jobs():
    denied = _require_super_admin()
    if denied:
        return denied
    SchedulerService.ensure_jobs_registered()
    return jsonify({"jobs": SchedulerService.list_jobs(), "running": SchedulerService.is_running()})


@notification_bp.route("/scheduler/jobs/<job_name>", methods=["GET"])
def get_scheduled_job(job_name):
    denied = _require_super_admin()
    if denied:
        return denied
    status = SchedulerService.get_job_status(job_name)
    if status is None:
        return api_error(E.NOT_FOUND, f"Unknown job: {job_name}")
    return jsonify(status)


@notification_bp.route("/scheduler/jobs/<job_name>/run", methods=["POST"])
def run_scheduled_job(job_name):
    """Trigger a job immediately."""
    denied = _require_super_admin()
    if denied:
        return denied
    result = SchedulerService.run_job(job_name)
    if result.get("status") == "error":
        return api_error(E.NOT_FOUND, result["error"])
    status = 200 if result["status"] == "success" else 500
    return jsonify(result), status


@notification_bp.route("/scheduler/jobs/<job_name>/toggle", methods=["PUT"])
def toggle_scheduled_job(job_name):
    denied = _require_super_admin()
    if denied:
        return denied
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        return api_error(E.VALIDATION_INVALID, "enabled must be a boolean")

    SchedulerService.ensure_jobs_registered()
    result = SchedulerService.toggle_job(job_name, enabled)
    if result is None:
        return api_error(E.NOT_FOUND, f"Unknown job: {job_name}")
    return jsonify(result)
