"""DeviceToken domain events."""

from notifications.domain import notifications
from protean.fields import DateTime, Identifier, String


@notifications.event(part_of="DeviceToken")
class DeviceTokenRegistered:
    """A push endpoint was registered for a user."""

    __version__ = 1

    device_token_id: Identifier(required=True)
    user_id: Identifier(required=True)
    device_type: String(required=True)
    registered_at: DateTime(required=True)


@notifications.event(part_of="DeviceToken")
class DeviceTokenTransferred:
    """An already-registered endpoint was re-registered by a different user."""

    __version__ = 1

    device_token_id: Identifier(required=True)
    previous_user_id: Identifier(required=True)
    user_id: Identifier(required=True)
    transferred_at: DateTime(required=True)


@notifications.event(part_of="DeviceToken")
class DeviceTokenDeactivated:
    """A push endpoint was deactivated after the gateway rejected it."""

    __version__ = 1

    device_token_id: Identifier(required=True)
    user_id: Identifier(required=True)
    deactivated_at: DateTime(required=True)
