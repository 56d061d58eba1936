"""
Identity resolution.

Engineers are referenced by free text on a POD (``assigned_engineer`` holds an
email for registered profiles and a name for imported ones), so "is this
string that person" needs one answer for the whole engine. Every identity
exposes an ``IdentityKeySet``; ``pick_identity`` is the pure resolver and
``resolve_identity`` feeds it from the database.

Tombstones (profiles merged into another one) never come back from a lookup.
A lookup that only hits a tombstone follows ``merged_into_user_id`` one hop
to the surviving profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, or_

from podtracker.models import db
from podtracker.models.identity import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityKeySet:
    """Every textual identifier that may reference one identity (name, email, id)."""

    user_id: str
    keys: frozenset[str]

    @classmethod
    def from_user(cls, user: User) -> IdentityKeySet:
        values = (user.name, user.email, user.id)
        return cls(user.id, frozenset(v.strip() for v in values if v and v.strip()))

    @property
    def text_keys(self) -> frozenset[str]:
        """Name and email only; the storage id is never typed by a human."""
        return frozenset(k for k in self.keys if k != self.user_id)

    def __contains__(self, value) -> bool:
        return bool(value) and value.strip() in self.keys

    def matches_casefold(self, value) -> bool:
        if not value:
            return False
        needle = value.strip().casefold()
        return any(k.casefold() == needle for k in self.text_keys)


def _rank(user: User, value: str) -> tuple:
    keys = IdentityKeySet.from_user(user)
    text = value.strip()
    if user.email and user.email == text:
        kind = 0
    elif user.id == text:
        kind = 1
    elif text in keys:
        kind = 2
    else:
        kind = 3
    return (kind, 0 if user.is_registered else 1, str(user.created_at or ""))


def pick_identity(candidates: list[User], value: str) -> User | None:
    """Choose the live identity ``value`` refers to among ``candidates``.

    Exact email beats id beats exact name beats case-insensitive match;
    registered profiles win ties. If only tombstones match, their survivor
    is returned when it is itself live.
    """
    if not value or not value.strip():
        return None
    matching = [
        u for u in candidates
        if value in IdentityKeySet.from_user(u) or IdentityKeySet.from_user(u).matches_casefold(value)
    ]
    live = [u for u in matching if not u.is_tombstone]
    if live:
        return min(live, key=lambda u: _rank(u, value))
    for tomb in sorted(matching, key=lambda u: _rank(u, value)):
        survivor = tomb.merged_into
        if survivor is not None and not survivor.is_tombstone:
            return survivor
    return None


def resolve_identity(value: str | None) -> User | None:
    """Resolve free text (email, name or id) to a live identity, or None."""
    text = (value or "").strip()
    if not text:
        return None
    lowered = text.lower()
    candidates = User.query.filter(or_(
        User.email == text,
        User.id == text,
        func.lower(User.name) == lowered,
        func.lower(User.email) == lowered,
    )).all()
    return pick_identity(candidates, text)


def resolve_live_id(user_id: str | None) -> str | None:
    """Map an actor id to the id that may be written as a foreign key.

    Unknown ids become None (system); a tombstone maps to its survivor.
    """
    if not user_id:
        return None
    user = db.session.get(User, user_id)
    if user is None:
        return None
    if user.is_tombstone:
        return user.merged_into_user_id
    return user.id


def live_users_with_role(role: str) -> list[User]:
    return (
        User.query
        .filter(User.role == role, User.merged_into_user_id.is_(None))
        .all()
    )


def live_users():
    return User.query.filter(User.merged_into_user_id.is_(None))


# ── Bulk import helpers ──────────────────────────────────────────────────────

def create_or_get_imported_profile(engineer_name: str) -> User:
    """Return the live imported profile named ``engineer_name``, creating it if needed."""
    name = engineer_name.strip()
    existing = (
        User.query
        .filter(
            func.lower(User.name) == name.lower(),
            User.is_imported_profile.is_(True),
            User.merged_into_user_id.is_(None),
        )
        .first()
    )
    if existing:
        return existing

    profile = User(name=name, is_imported_profile=True, role="REGULAR")
    db.session.add(profile)
    db.session.flush()
    logger.info("Created imported profile for %s", name)
    return profile


def resolve_engineer_value(value: str | None) -> str:
    """Normalise an imported engineer cell before it is stored on a POD.

    Emails pass through. A name matching a live registered profile
    (case-insensitive) is replaced by that profile's email; any other name
    gets an imported profile. Profile errors never fail the import.
    """
    text = (value or "").strip()
    if not text or "@" in text:
        return text

    try:
        registered = (
            User.query
            .filter(
                func.lower(User.name) == text.lower(),
                User.is_imported_profile.is_(False),
                User.merged_into_user_id.is_(None),
                User.email.isnot(None),
            )
            .first()
        )
        if registered:
            logger.debug("Matched imported engineer %r to %s", text, registered.email)
            return registered.email
        with db.session.begin_nested():
            create_or_get_imported_profile(text)
    except Exception:
        logger.exception("Error processing engineer profile for %s", text)
    return text


def list_engineers() -> list[dict]:
    """Live identities usable as assignees, one per case-insensitive name.

    Registered profiles are preferred over imported ones with the same name.
    """
    engineers: dict[str, dict] = {}
    for user in live_users().order_by(User.created_at.asc()).all():
        key_value = user.email or user.name or ""
        if not key_value:
            continue
        engineer = {
            "id": user.id,
            "email": key_value,
            "name": user.name or key_value,
            "isRegistered": not user.is_imported_profile,
            "isImported": user.is_imported_profile,
        }
        name_key = engineer["name"].lower()
        current = engineers.get(name_key)
        if current is None or (not current["isRegistered"] and engineer["isRegistered"]):
            engineers[name_key] = engineer
    return sorted(engineers.values(), key=lambda e: e["name"].lower())
