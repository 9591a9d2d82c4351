"""FailedNotifications: queue of undelivered notifications for retry/investigation."""

from notifications import config
from notifications.domain import notifications
from notifications.notification.events import (
    NotificationExpired,
    NotificationFailed,
    NotificationSent,
)
from notifications.notification.notification import NotificationRecord
from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain


@notifications.projection
class FailedNotifications:
    notification_id: Identifier(identifier=True, required=True)
    user_id: Identifier(required=True)
    title: String(required=True, max_length=255)
    priority: String(required=True)
    failure_reason: String(max_length=500)
    failed_count: Integer(default=0)
    retry_count: Integer(default=0)
    max_retries: Integer(default=3)
    expires_at: DateTime()
    failed_at: DateTime()


@notifications.projector(projector_for=FailedNotifications, aggregates=[NotificationRecord])
class FailedNotificationsProjector:
    @on(NotificationFailed)
    def on_notification_failed(self, event):
        repo = current_domain.repository_for(FailedNotifications)

        try:
            failed = repo.get(event.notification_id)
            failed.failure_reason = event.reason
            failed.failed_count = event.failed_count
            failed.retry_count = event.retry_count
            failed.failed_at = event.failed_at
        except ObjectNotFoundError:
            failed = FailedNotifications(
                notification_id=event.notification_id,
                user_id=event.user_id,
                title=event.title,
                priority=event.priority,
                failure_reason=event.reason,
                failed_count=event.failed_count,
                retry_count=event.retry_count,
                max_retries=config.MAX_NOTIFICATION_RETRIES,
                expires_at=event.expires_at,
                failed_at=event.failed_at,
            )

        repo.add(failed)

    @on(NotificationSent)
    def on_notification_sent(self, event):
        """Drop from the queue once a retry gets through."""
        self._discard(event.notification_id)

    @on(NotificationExpired)
    def on_notification_expired(self, event):
        """Nothing left to retry once the notification has expired."""
        self._discard(event.notification_id)

    @staticmethod
    def _discard(notification_id):
        repo = current_domain.repository_for(FailedNotifications)
        try:
            failed = repo.get(notification_id)
        except ObjectNotFoundError:
            return
        repo._dao.delete(failed)
