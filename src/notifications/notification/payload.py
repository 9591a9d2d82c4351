"""Notification payload and the priority → delivery-hint table.

The payload is what callers hand to the dispatcher. It is stored verbatim
in the notification record so that the retry sweeper can send it again.
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum

from protean.exceptions import ValidationError


class NotificationPriority(Enum):
    URGENT = "URGENT"
    NORMAL = "NORMAL"
    LOW = "LOW"


@dataclass(frozen=True)
class DeliveryHints:
    """Gateway-specific urgency and time-to-live for a priority."""

    android_priority: str
    apns_priority: str
    ttl_seconds: int


PRIORITY_DELIVERY_HINTS = {
    NotificationPriority.URGENT: DeliveryHints(android_priority="high", apns_priority="10", ttl_seconds=3600),
    NotificationPriority.NORMAL: DeliveryHints(android_priority="normal", apns_priority="5", ttl_seconds=86400),
    NotificationPriority.LOW: DeliveryHints(android_priority="normal", apns_priority="1", ttl_seconds=604800),
}


@dataclass
class NotificationPayload:
    title: str
    body: str
    priority: str = NotificationPriority.NORMAL.value
    data: dict = field(default_factory=dict)
    image_url: str | None = None
    click_action: str | None = None
    ttl: int | None = None  # seconds; overrides the priority default
    badge: int | None = None
    sound: str | None = None

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValidationError({"title": ["Notification title is required"]})
        if not self.body or not self.body.strip():
            raise ValidationError({"body": ["Notification body is required"]})
        try:
            self.priority = NotificationPriority(self.priority).value
        except ValueError:
            raise ValidationError({"priority": [f"Unknown notification priority: {self.priority}"]}) from None
        if self.ttl is not None and self.ttl <= 0:
            raise ValidationError({"ttl": ["Time-to-live must be positive"]})

    @property
    def hints(self) -> DeliveryHints:
        return PRIORITY_DELIVERY_HINTS[NotificationPriority(self.priority)]

    @property
    def ttl_seconds(self) -> int:
        return self.ttl if self.ttl is not None else self.hints.ttl_seconds

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "NotificationPayload":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def gateway_message(self) -> dict:
        """Render the provider-neutral message handed to the push gateway."""
        hints = self.hints
        sound = self.sound or "default"
        return {
            "notification": {"title": self.title, "body": self.body, "image": self.image_url},
            # Push providers only accept string values in the data map
            "data": {str(key): str(value) for key, value in (self.data or {}).items()},
            "android": {
                "priority": hints.android_priority,
                "ttl": self.ttl_seconds * 1000,
                "notification": {"click_action": self.click_action, "sound": sound},
            },
            "apns": {
                "headers": {"apns-priority": hints.apns_priority},
                "payload": {"aps": {"badge": self.badge, "sound": sound}},
            },
            "webpush": {"fcm_options": {"link": self.click_action}},
        }
