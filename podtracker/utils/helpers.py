"""Shared parsing and commit helpers for services and blueprints."""

import logging
import re
from datetime import date, datetime, timezone

from flask import jsonify, request

from podtracker.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - MM/DD/YYYY (spreadsheet exports)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(text, "%m/%d/%Y").date()
    except (ValueError, TypeError):
        return None


def parse_datetime(value):
    """Parse a date or datetime string to an aware UTC datetime.

    Bare dates land on midnight UTC. Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        day = parse_date(text)
        if day is None:
            return None
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def as_utc(value):
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_snake(key):
    """``slaCalculatedNbd`` → ``sla_calculated_nbd``; snake_case keys pass through."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def snake_keys(data):
    """Shallow copy of a JSON body with camelCase keys converted to snake_case."""
    return {to_snake(k): v for k, v in (data or {}).items()}


def get_actor_id():
    """Identity id of the caller, taken from the X-User-Id header (None if absent)."""
    return request.headers.get("X-User-Id") or None


def page_args(default_size=10, max_size=100):
    """Read ``page`` / ``pageSize`` query params, clamped to sane bounds."""
    try:
        page = max(int(request.args.get("page", 1)), 1)
    except (ValueError, TypeError):
        page = 1
    try:
        size = min(max(int(request.args.get("pageSize", default_size)), 1), max_size)
    except (ValueError, TypeError):
        size = default_size
    return page, size


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    IntegrityError → 409 (duplicate / constraint violation)
    Other → 500
    """
    from sqlalchemy.exc import IntegrityError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return jsonify({"error": "Duplicate or constraint violation"}), 409
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return jsonify({"error": "Database error"}), 500
