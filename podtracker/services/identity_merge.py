"""
Identity merge coordinator.

Collapses duplicate engineer profiles (typically an imported name-only
profile and the registered account of the same person) into one surviving
registered identity.

Every precondition is checked before the first write. After that each
non-survivor identity is merged inside its own savepoint: a failure rolls
back only that identity's repoints and is reported in ``MergeResult.failed``
while the rest of the batch proceeds.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from podtracker.core.exceptions import NotFoundError, TransactionFailed, ValidationError
from podtracker.models import db
from podtracker.models.audit import write_audit
from podtracker.models.identity import User
from podtracker.models.log_issue import LogIssue
from podtracker.models.notification import Notification
from podtracker.models.pod import Pod, PodStatusHistory
from podtracker.services.identity import IdentityKeySet, resolve_live_id

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    primary_user_id: str
    merged_user_ids: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    def to_dict(self):
        return {
            "primaryUserId": self.primary_user_id,
            "mergedUserIds": list(self.merged_user_ids),
            "failed": list(self.failed),
        }


# (model, foreign key column) pairs that point at an identity
_FOREIGN_KEYS = (
    (LogIssue, LogIssue.created_by_id),
    (Pod, Pod.created_by_id),
    (Notification, Notification.created_by_id),
    (Notification, Notification.user_id),
    (Notification, Notification.created_for_id),
    (PodStatusHistory, PodStatusHistory.changed_by_id),
)


def _validate(user_ids, primary_user_id):
    if not user_ids or len(user_ids) < 2:
        raise ValidationError("At least 2 users must be selected to merge")
    if len(set(user_ids)) != len(user_ids):
        raise ValidationError("Duplicate user ids in merge request")
    if primary_user_id not in user_ids:
        raise ValidationError("Primary user must be one of the selected users")

    users = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()}
    for user_id in user_ids:
        if user_id not in users:
            raise NotFoundError(resource="User", resource_id=user_id)

    primary = users[primary_user_id]
    if not primary.email:
        raise ValidationError(
            "Primary user must be a registered user with an email",
            details={"primaryUserId": primary_user_id},
        )
    tombstoned = [uid for uid in user_ids if users[uid].is_tombstone]
    if tombstoned:
        raise ValidationError("Users already merged", details={"userIds": tombstoned})

    return primary, [users[uid] for uid in user_ids if uid != primary_user_id]


def _repoint_assignments(keys: IdentityKeySet, survivor_name: str) -> int:
    exact = (
        Pod.query
        .filter(Pod.assigned_engineer.in_(keys.keys))
        .update({"assigned_engineer": survivor_name}, synchronize_session="fetch")
    )
    lowered = [k.lower() for k in keys.keys]
    drifted = (
        Pod.query
        .filter(
            func.lower(Pod.assigned_engineer).in_(lowered),
            Pod.assigned_engineer != survivor_name,
        )
        .update({"assigned_engineer": survivor_name}, synchronize_session="fetch")
    )
    return exact + drifted


def _repoint_foreign_keys(old_id: str, new_id: str) -> int:
    total = 0
    for model, column in _FOREIGN_KEYS:
        total += (
            model.query
            .filter(column == old_id)
            .update({column.key: new_id}, synchronize_session="fetch")
        )
    return total


def _merge_one(secondary: User, primary: User, performed_by_id):
    try:
        with db.session.begin_nested():
            keys = IdentityKeySet.from_user(secondary)
            secondary.merged_into_user_id = primary.id
            db.session.flush()

            pods = _repoint_assignments(keys, primary.display_name)
            refs = _repoint_foreign_keys(secondary.id, primary.id)

            write_audit(
                entity_type="User",
                entity_id=secondary.id,
                action="merge_profile",
                created_by_id=performed_by_id,
                details={
                    "mergedIntoUserId": primary.id,
                    "primaryUserName": primary.name,
                    "secondaryUserName": secondary.name,
                    "podsReassigned": pods,
                    "referencesRepointed": refs,
                },
            )
    except SQLAlchemyError as exc:
        raise TransactionFailed(secondary.id, str(exc)) from exc
    return pods, refs


def merge_identities(user_ids, primary_user_id, performed_by_id=None) -> MergeResult:
    """Merge every identity in ``user_ids`` into ``primary_user_id``.

    Raises:
        ValidationError: fewer than two ids, survivor not in the set, survivor
            without an email, or an id that is already a tombstone.
        NotFoundError: an id does not exist.
    """
    user_ids = list(user_ids or [])
    primary, secondaries = _validate(user_ids, primary_user_id)
    actor_id = resolve_live_id(performed_by_id)

    result = MergeResult(primary_user_id=primary.id)
    for secondary in secondaries:
        try:
            pods, refs = _merge_one(secondary, primary, actor_id)
        except TransactionFailed as exc:
            logger.error("Identity merge %s -> %s rolled back: %s",
                         exc.resource_id, primary.id, exc.reason,
                         extra={"user_id": actor_id})
            result.failed.append({"userId": exc.resource_id, "error": exc.reason})
            continue
        result.merged_user_ids.append(secondary.id)
        logger.info("Merged identity %s into %s (%d pods, %d references)",
                    secondary.id, primary.id, pods, refs,
                    extra={"user_id": actor_id})

    return result
