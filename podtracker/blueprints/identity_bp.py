"""
POD Tracker
Identity Blueprint.

Endpoints:
    GET  /api/v1/engineers     — assignable engineers (deduplicated by name)
    POST /api/v1/users/merge   — merge duplicate profiles (SUPER_ADMIN only)
"""

import logging

from flask import Blueprint, jsonify, request

from podtracker.blueprints import current_user
from podtracker.services.identity import list_engineers
from podtracker.services.identity_merge import merge_identities
from podtracker.utils.errors import E, api_error
from podtracker.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

identity_bp = Blueprint("identity_bp", __name__, url_prefix="/api/v1")


@identity_bp.route("/engineers", methods=["GET"])
def engineers():
    return jsonify({"engineers": list_engineers()})


@identity_bp.route("/users/merge", methods=["POST"])
def merge_users():
    """Merge ``userIds`` into ``primaryUserId``.

    Body: ``{"userIds": [...], "primaryUserId": "..."}``. Returns the merge
    result; identities whose repoint failed are listed under ``failed``.
    """
    actor = current_user()
    if actor is None:
        return api_error(E.UNAUTHORIZED, "Unauthorized")
    if actor.role != "SUPER_ADMIN":
        return api_error(E.FORBIDDEN, "Forbidden")

    data = request.get_json(silent=True) or {}
    user_ids = data.get("userIds")
    primary_user_id = data.get("primaryUserId")
    if not isinstance(user_ids, list) or not primary_user_id:
        return api_error(E.VALIDATION_REQUIRED, "userIds and primaryUserId are required")

    result = merge_identities(user_ids, primary_user_id, performed_by_id=actor.id)
    err = db_commit_or_error()
    if err:
        return err

    body = result.to_dict()
    body["message"] = f"Successfully merged {len(result.merged_user_ids)} user(s)"
    return jsonify(body)
