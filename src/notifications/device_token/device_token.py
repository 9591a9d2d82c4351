"""DeviceToken aggregate: a push endpoint registered by a user's device.

Tokens are unique by value. Re-registering a known token refreshes it (and
moves it to the new owner if a different user registers it) instead of
creating a duplicate. Tokens the gateway reports as permanently invalid are
deactivated, not deleted; the registry's cleanup purges them later.
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum

from notifications.device_token.events import (
    DeviceTokenDeactivated,
    DeviceTokenRegistered,
    DeviceTokenTransferred,
)
from notifications.domain import notifications
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text
from shared.timeutils import as_utc

TOKEN_MIN_LENGTH = 140
TOKEN_MAX_LENGTH = 500
TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_:-]+$")


class DeviceType(Enum):
    WEB = "WEB"
    ANDROID = "ANDROID"
    IOS = "IOS"


def validate_token(token) -> str:
    """Check a push endpoint string against the provider's shape rules."""
    if not isinstance(token, str) or not token:
        raise ValidationError({"token": ["Device token is required"]})
    if not TOKEN_MIN_LENGTH <= len(token) <= TOKEN_MAX_LENGTH:
        raise ValidationError(
            {"token": [f"Device token must be between {TOKEN_MIN_LENGTH} and {TOKEN_MAX_LENGTH} characters"]}
        )
    if not TOKEN_PATTERN.match(token):
        raise ValidationError({"token": ["Device token contains invalid characters"]})
    return token


def validate_device_type(device_type) -> str:
    try:
        return DeviceType(device_type).value
    except ValueError:
        raise ValidationError({"device_type": [f"Unknown device type: {device_type}"]}) from None


@notifications.aggregate
class DeviceToken:
    """A user's push endpoint."""

    token: String(required=True, max_length=TOKEN_MAX_LENGTH, unique=True)
    user_id: Identifier(required=True)
    device_type: String(choices=DeviceType, default=DeviceType.WEB.value)
    is_active: Boolean(default=True)
    last_used: DateTime()
    expires_at: DateTime()
    client_metadata: Text()  # JSON, whatever the client sent at registration

    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def register(cls, token, user_id, expires_at, device_type=DeviceType.WEB.value, metadata=None, now=None):
        now = now or datetime.now(UTC)
        device_token = cls(
            token=validate_token(token),
            user_id=user_id,
            device_type=validate_device_type(device_type),
            is_active=True,
            last_used=now,
            expires_at=expires_at,
            client_metadata=json.dumps(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        device_token.raise_(
            DeviceTokenRegistered(
                device_token_id=str(device_token.id),
                user_id=str(user_id),
                device_type=device_token.device_type,
                registered_at=now,
            )
        )
        return device_token

    @property
    def client_info(self) -> dict:
        return json.loads(self.client_metadata) if self.client_metadata else {}

    def refresh(self, user_id, expires_at, device_type=None, metadata=None, now=None) -> str | None:
        """Re-register this token, returning the previous owner if ownership changed."""
        now = now or datetime.now(UTC)
        previous_owner = str(self.user_id) if str(self.user_id) != str(user_id) else None

        merged = self.client_info
        merged.update(metadata or {})

        self.user_id = user_id
        if device_type is not None:
            self.device_type = validate_device_type(device_type)
        self.is_active = True
        self.last_used = now
        self.expires_at = expires_at
        self.client_metadata = json.dumps(merged)
        self.updated_at = now

        if previous_owner is not None:
            self.raise_(
                DeviceTokenTransferred(
                    device_token_id=str(self.id),
                    previous_user_id=previous_owner,
                    user_id=str(user_id),
                    transferred_at=now,
                )
            )
        return previous_owner

    def deactivate(self, now=None) -> None:
        now = now or datetime.now(UTC)
        self.is_active = False
        self.updated_at = now
        self.raise_(
            DeviceTokenDeactivated(
                device_token_id=str(self.id),
                user_id=str(self.user_id),
                deactivated_at=now,
            )
        )

    def touch(self, now=None) -> None:
        now = now or datetime.now(UTC)
        self.last_used = now
        self.updated_at = now

    def is_expired(self, as_of: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) <= as_utc(as_of)

    def is_usable(self, as_of: datetime) -> bool:
        return bool(self.is_active) and not self.is_expired(as_of)
