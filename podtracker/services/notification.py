"""
POD Tracker
Notification Service.

Central service for creating and querying in-app notifications. Creation is
best-effort when called from a POD mutation (see ``change_notifier``); the
query and read helpers back the notification bell.
"""

from podtracker.core.exceptions import NotFoundError
from podtracker.models import db
from podtracker.models.notification import Notification


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, user_id, message, pod_id=None, log_issue_id=None,
               created_by_id=None, created_for_id=None):
        """
        Add a single notification to the session (flushed, not committed).

        Returns:
            The created Notification instance.
        """
        notif = Notification(
            user_id=user_id,
            created_for_id=created_for_id,
            message=message,
            pod_id=pod_id,
            log_issue_id=log_issue_id,
            created_by_id=created_by_id,
        )
        db.session.add(notif)
        db.session.flush()
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, page=1, page_size=10, created_for_only=False):
        """
        Notifications addressed to ``user_id``, newest first.

        Returns:
            dict with notifications, totalCount, unreadCount, totalPages, currentPage.
        """
        if created_for_only:
            q = Notification.query.filter(Notification.created_for_id == user_id)
        else:
            q = Notification.query.filter(Notification.user_id == user_id)
        total = q.count()
        unread = q.filter(Notification.read.is_(False)).count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "notifications": [n.to_dict() for n in items],
            "totalCount": total,
            "unreadCount": unread,
            "totalPages": -(-total // page_size),
            "currentPage": page,
        }

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, user_id):
        """Mark one notification read. Only the recipient may do so.

        Raises:
            NotFoundError: unknown id, or the notification belongs to someone else.
        """
        notif = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if notif is None:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        notif.mark_read()
        db.session.flush()
        return notif

    @staticmethod
    def mark_many_read(notification_ids, user_id):
        """Mark the given notifications read, silently skipping ones owned by others."""
        count = (
            Notification.query
            .filter(Notification.id.in_(notification_ids), Notification.user_id == user_id)
            .update({"read": True}, synchronize_session="fetch")
        )
        return count
