"""Retry sweep for failed notifications.

A pull-based job: an external scheduler issues RetryFailedNotifications on
a recurring cadence. Each sweep picks up FAILED records that still have
retries left and have not expired, and sends each one again through the
dispatcher, reusing the record. Failed records whose TTL has run out are
expired instead.
"""

from datetime import UTC, datetime

import structlog
from notifications import config
from notifications.domain import notifications
from notifications.notification.dispatcher import NotificationDispatcher
from notifications.notification.notification import NotificationRecord, NotificationStatus
from protean.fields import Integer
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

logger = structlog.get_logger(__name__)


class RetrySweeper:
    def __init__(self, dispatcher: NotificationDispatcher | None = None, batch_limit: int | None = None):
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.batch_limit = config.RETRY_BATCH_LIMIT if batch_limit is None else batch_limit

    def failed_notifications(self, max_retries: int | None = None, as_of: datetime | None = None) -> list:
        """FAILED records with retries left and time still to live, oldest first."""
        max_retries = config.MAX_NOTIFICATION_RETRIES if max_retries is None else max_retries
        as_of = as_of or datetime.now(UTC)

        repo = current_domain.repository_for(NotificationRecord)
        return (
            repo._dao.query.filter(
                status=NotificationStatus.FAILED.value,
                retry_count__lt=max_retries,
                expires_at__gt=as_of,
            )
            .order_by("created_at")
            .limit(self.batch_limit)
            .all()
            .items
        )

    def retry_failed(self, max_retries: int | None = None) -> dict:
        """Re-attempt failed notifications. Returns ``{processed, succeeded, failed, expired}``."""
        now = datetime.now(UTC)
        summary = {"processed": 0, "succeeded": 0, "failed": 0, "expired": 0}

        if not self.dispatcher.delivery_enabled():
            logger.info("Push delivery unavailable, skipping retry sweep")
            return summary

        summary["expired"] = self.dispatcher.expire_stale(as_of=now)

        for record in self.failed_notifications(max_retries=max_retries, as_of=now):
            summary["processed"] += 1
            try:
                result = self.dispatcher.redeliver(record)
            except Exception as exc:
                summary["failed"] += 1
                logger.error(
                    "Notification retry failed",
                    notification_id=str(record.id),
                    error=str(exc),
                )
                continue

            if result["success"]:
                summary["succeeded"] += 1
            else:
                summary["failed"] += 1

        logger.info("Notification retry sweep finished", **summary)
        return summary


@notifications.command(part_of="NotificationRecord")
class RetryFailedNotifications:
    """Request a sweep over failed notifications."""

    max_retries: Integer(min_value=1)  # Optional: defaults to MAX_NOTIFICATION_RETRIES


@notifications.command_handler(part_of=NotificationRecord)
class RetryFailedNotificationsHandler:
    @handle(RetryFailedNotifications)
    def retry_failed(self, command: RetryFailedNotifications):
        return RetrySweeper().retry_failed(max_retries=command.max_retries)
