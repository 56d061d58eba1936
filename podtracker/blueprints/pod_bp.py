"""
POD Tracker
POD Blueprint.

Endpoints:
    GET    /api/v1/pods                          — list (``?history=true`` for the archive)
    POST   /api/v1/pods                          — create
    POST   /api/v1/pods/import                   — bulk import rows
    GET    /api/v1/pods/<id>                     — detail
    PUT    /api/v1/pods/<id>                     — partial update
    DELETE /api/v1/pods/<id>                     — soft delete
    POST   /api/v1/pods/<pod>/complete           — complete and archive by POD key
    POST   /api/v1/pods/<id>/move-to-history     — archive a completed POD
    POST   /api/v1/pods/<pod>/move-to-active     — restore an archived POD by key
    POST   /api/v1/pods/<id>/toggle-visibility   — show / hide a staged POD (SUPER_ADMIN only)
    GET    /api/v1/pod-timeline?podId=<id>       — status / sub-status intervals

Request bodies accept camelCase or snake_case field names. The caller is
identified by the X-User-Id header.
"""

import logging

from flask import Blueprint, jsonify, request

from podtracker.blueprints import current_user
from podtracker.services import pod_service
from podtracker.services.timeline import get_pod_timeline
from podtracker.utils.errors import E, api_error
from podtracker.utils.helpers import db_commit_or_error, get_actor_id, snake_keys

logger = logging.getLogger(__name__)

pod_bp = Blueprint("pod_bp", __name__, url_prefix="/api/v1")


@pod_bp.route("/pods", methods=["GET"])
def list_pods():
    history = request.args.get("history", "false").lower() == "true"
    pods = pod_service.list_pods(is_history=history, viewer=current_user())
    return jsonify({"items": [p.to_dict() for p in pods], "total": len(pods)})


@pod_bp.route("/pods", methods=["POST"])
def create_pod():
    data = snake_keys(request.get_json(silent=True))
    if not (data.get("pod") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "pod is required")

    pod = pod_service.create_pod(data, get_actor_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pod.to_dict()), 201


@pod_bp.route("/pods/import", methods=["POST"])
def import_pods():
    body = request.get_json(silent=True) or {}
    rows = body.get("pods")
    if not isinstance(rows, list):
        return api_error(E.VALIDATION_INVALID, "Invalid payload: pods must be a list")

    results = pod_service.import_pods(
        [snake_keys(r) for r in rows if isinstance(r, dict)],
        is_history=bool(body.get("isHistory")),
        actor_id=get_actor_id(),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"success": True, "results": results})


@pod_bp.route("/pods/<pod_id>", methods=["GET"])
def get_pod(pod_id):
    return jsonify(pod_service.get_pod(pod_id).to_dict())


@pod_bp.route("/pods/<pod_id>", methods=["PUT"])
def update_pod(pod_id):
    data = snake_keys(request.get_json(silent=True))
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "No fields to update")

    pod = pod_service.update_pod(pod_id, data, get_actor_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pod.to_dict())


@pod_bp.route("/pods/<pod_id>", methods=["DELETE"])
def delete_pod(pod_id):
    pod_service.delete_pod(pod_id, get_actor_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Pod deleted", "id": pod_id})


@pod_bp.route("/pods/<pod_key>/complete", methods=["POST"])
def complete_pod(pod_key):
    pod = pod_service.complete_pod(pod_key, get_actor_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pod.to_dict())


@pod_bp.route("/pods/<pod_id>/move-to-history", methods=["POST"])
def move_to_history(pod_id):
    pod = pod_service.move_to_history(pod_id, get_actor_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pod.to_dict())


@pod_bp.route("/pods/<pod_key>/move-to-active", methods=["POST"])
def move_to_active(pod_key):
    pod = pod_service.move_to_active(pod_key, get_actor_id())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pod.to_dict())


@pod_bp.route("/pods/<pod_id>/toggle-visibility", methods=["POST"])
def toggle_visibility(pod_id):
    actor = current_user()
    if actor is None:
        return api_error(E.UNAUTHORIZED, "Unauthorized")
    if actor.role != "SUPER_ADMIN":
        return api_error(E.FORBIDDEN, "Only SUPER_ADMIN can toggle pod visibility")

    pod = pod_service.toggle_pod_visibility(pod_id, actor.id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(pod.to_dict())


@pod_bp.route("/pod-timeline", methods=["GET"])
def pod_timeline():
    pod_id = request.args.get("podId")
    if not pod_id:
        return api_error(E.VALIDATION_REQUIRED, "podId is required")
    return jsonify(get_pod_timeline(pod_id))
