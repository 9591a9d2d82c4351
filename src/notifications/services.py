"""In-process entry points for sending push notifications.

Call these inside an active ``notifications`` domain context. Each call
builds its own dispatcher from the configured gateway and user directory;
pass ``dispatcher`` to use a different one.
"""

import structlog
from notifications.notification.dispatcher import NotificationDispatcher
from notifications.notification.payload import NotificationPayload

logger = structlog.get_logger(__name__)


def _dispatcher(dispatcher: NotificationDispatcher | None) -> NotificationDispatcher:
    return dispatcher or NotificationDispatcher()


def send_notification_to_user(
    user_id: str,
    payload: NotificationPayload | dict,
    options: dict | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict:
    """Push to all of one user's active devices.

    Returns ``{success, notification_record_id, total_targets, sent_count,
    failed_count, errors}``.
    """
    return _dispatcher(dispatcher).send_to_user(user_id, payload, options)


def send_notification_to_role(
    roles: str | list[str],
    payload: NotificationPayload | dict,
    options: dict | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict:
    """Push to every active user holding any of ``roles``.

    Returns ``{success, results, total_users, total_notifications}``.
    """
    result = _dispatcher(dispatcher).send_to_role(roles, payload, options)
    logger.info(
        "Role notification sent",
        roles=roles,
        users=result["total_users"],
        notifications=result["total_notifications"],
    )
    return result


def send_notification_to_users(
    user_ids: list[str],
    payload: NotificationPayload | dict,
    options: dict | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict:
    return _dispatcher(dispatcher).send_to_users(user_ids, payload, options)
