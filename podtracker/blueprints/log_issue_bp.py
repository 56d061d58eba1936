"""
POD Tracker
Log Issue Blueprint.

Endpoints:
    GET    /api/v1/log-issues         — paginated list (``?search=`` across text fields)
    POST   /api/v1/log-issues         — create and notify resolution owners
    PUT    /api/v1/log-issues/<id>    — partial update; newly added owners are notified
    DELETE /api/v1/log-issues/<id>    — soft delete

All endpoints require a caller (X-User-Id).
"""

import logging

from flask import Blueprint, jsonify, request

from podtracker.services import log_issue_service
from podtracker.utils.errors import E, api_error
from podtracker.utils.helpers import db_commit_or_error, get_actor_id, page_args, snake_keys

logger = logging.getLogger(__name__)

log_issue_bp = Blueprint("log_issue_bp", __name__, url_prefix="/api/v1")


@log_issue_bp.route("/log-issues", methods=["GET"])
def list_log_issues():
    if not get_actor_id():
        return api_error(E.UNAUTHORIZED, "Unauthorized")
    page, page_size = page_args(default_size=10)
    return jsonify(log_issue_service.list_log_issues(
        page=page, page_size=page_size, search=request.args.get("search", ""),
    ))


@log_issue_bp.route("/log-issues", methods=["POST"])
def create_log_issue():
    actor_id = get_actor_id()
    if not actor_id:
        return api_error(E.UNAUTHORIZED, "Unauthorized")

    data = snake_keys(request.get_json(silent=True))
    if not (data.get("pod") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "pod is required")

    issue = log_issue_service.create_log_issue(data, actor_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(issue.to_dict()), 201


@log_issue_bp.route("/log-issues/<issue_id>", methods=["PUT"])
def update_log_issue(issue_id):
    actor_id = get_actor_id()
    if not actor_id:
        return api_error(E.UNAUTHORIZED, "Unauthorized")

    data = snake_keys(request.get_json(silent=True))
    body_id = data.pop("id", None)
    if body_id and body_id != issue_id:
        return api_error(E.VALIDATION_INVALID, "ID mismatch")
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "No fields to update")

    issue = log_issue_service.update_log_issue(issue_id, data, actor_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(issue.to_dict())


@log_issue_bp.route("/log-issues/<issue_id>", methods=["DELETE"])
def delete_log_issue(issue_id):
    actor_id = get_actor_id()
    if not actor_id:
        return api_error(E.UNAUTHORIZED, "Unauthorized")

    log_issue_service.delete_log_issue(issue_id, actor_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Log issue deleted", "id": issue_id})
