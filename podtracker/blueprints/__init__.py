"""
POD Tracker
Blueprint registry and shared request helpers.
"""

from podtracker.models import db
from podtracker.models.identity import User
from podtracker.utils.helpers import get_actor_id


def current_user():
    """The live identity named by the X-User-Id header, or None.

    A tombstoned id is treated as the profile it was merged into.
    """
    actor_id = get_actor_id()
    if not actor_id:
        return None
    user = db.session.get(User, actor_id)
    if user is not None and user.is_tombstone:
        return user.merged_into
    return user
