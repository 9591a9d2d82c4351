"""Domain events for the NotificationRecord aggregate."""

from notifications.domain import notifications
from protean.fields import DateTime, Identifier, Integer, String


@notifications.event(part_of="NotificationRecord")
class NotificationQueued:
    """A notification was recorded and is about to go out to the user's devices."""

    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    title: String(required=True)
    priority: String(required=True)
    device_token_count: Integer(required=True)
    expires_at: DateTime()
    created_at: DateTime(required=True)


@notifications.event(part_of="NotificationRecord")
class NotificationSent:
    """At least one device accepted the notification."""

    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    sent_count: Integer(required=True)
    failed_count: Integer(required=True)
    retry_count: Integer(required=True)
    sent_at: DateTime(required=True)


@notifications.event(part_of="NotificationRecord")
class NotificationFailed:
    """No device accepted the notification."""

    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    title: String(required=True)
    priority: String(required=True)
    reason: String()
    failed_count: Integer(required=True)
    retry_count: Integer(required=True)
    expires_at: DateTime()
    failed_at: DateTime(required=True)


@notifications.event(part_of="NotificationRecord")
class NotificationDelivered:
    """A device confirmed the notification was displayed."""

    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    delivered_at: DateTime(required=True)


@notifications.event(part_of="NotificationRecord")
class NotificationExpired:
    """The notification's time-to-live ran out before it was delivered."""

    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    expired_at: DateTime(required=True)
