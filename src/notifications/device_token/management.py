"""Device token management: commands for registering and pruning push endpoints."""

import json

from notifications.device_token.device_token import DeviceToken, DeviceType
from notifications.device_token.registry import DeviceRegistry
from notifications.domain import notifications
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.mixins import handle


@notifications.command(part_of="DeviceToken")
class RegisterDeviceToken:
    user_id: Identifier(required=True)
    token: String(required=True, max_length=500)
    device_type: String(choices=DeviceType, default=DeviceType.WEB.value)
    client_metadata: Text()  # JSON


@notifications.command(part_of="DeviceToken")
class RemoveDeviceToken:
    user_id: Identifier(required=True)
    token: String(required=True, max_length=500)


@notifications.command(part_of="DeviceToken")
class CleanupDeviceTokens:
    """Purge expired and long-inactive tokens. Issued by a scheduled job."""

    as_of: DateTime()  # Optional: evaluate expiry as of this time (defaults to now)


@notifications.command_handler(part_of=DeviceToken)
class DeviceTokenManagementHandler:
    @handle(RegisterDeviceToken)
    def register(self, command: RegisterDeviceToken):
        metadata = json.loads(command.client_metadata) if command.client_metadata else None
        device_token = DeviceRegistry().register(
            user_id=command.user_id,
            token=command.token,
            device_type=command.device_type,
            metadata=metadata,
        )
        return str(device_token.id)

    @handle(RemoveDeviceToken)
    def remove(self, command: RemoveDeviceToken):
        return DeviceRegistry().remove(command.user_id, command.token)

    @handle(CleanupDeviceTokens)
    def cleanup(self, command: CleanupDeviceTokens):
        registry = DeviceRegistry(clock=(lambda: command.as_of) if command.as_of else None)
        return registry.cleanup()
