"""NotificationRecord aggregate (CQRS): one logical push to one user.

A record is written before the gateway is called and settled once every
batch has reported back. The original payload is kept in
``delivery_metadata`` so that failed sends can be retried later.

State Machine (5 states):
    PENDING → SENT → DELIVERED
    PENDING → FAILED → (retry) → SENT
    FAILED → (retry fails again) → FAILED
    PENDING / FAILED → EXPIRED
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from notifications.domain import notifications
from notifications.notification.events import (
    NotificationDelivered,
    NotificationExpired,
    NotificationFailed,
    NotificationQueued,
    NotificationSent,
)
from notifications.notification.payload import NotificationPayload, NotificationPriority
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text
from shared.timeutils import as_utc


class NotificationStatus(Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    DELIVERED = "DELIVERED"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {
        NotificationStatus.SENT,
        NotificationStatus.FAILED,
        NotificationStatus.EXPIRED,
    },
    NotificationStatus.FAILED: {
        NotificationStatus.SENT,  # Via retry
        NotificationStatus.FAILED,  # Retry failed again
        NotificationStatus.EXPIRED,
    },
    NotificationStatus.SENT: {NotificationStatus.DELIVERED},
    NotificationStatus.DELIVERED: set(),  # Terminal
    NotificationStatus.EXPIRED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class NotificationRecord:
    """Delivery record for one notification sent to one user's devices."""

    user_id: Identifier(required=True)

    # Content
    title: String(required=True, max_length=255)
    body: Text(required=True)
    priority: String(choices=NotificationPriority, default=NotificationPriority.NORMAL.value)

    # Status
    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)

    # Delivery counts
    device_token_count: Integer(default=0)
    sent_count: Integer(default=0)
    failed_count: Integer(default=0)
    errors: Text()  # JSON list of error strings from the last attempt

    # Retry
    retry_count: Integer(default=0)
    last_retry_at: DateTime()

    delivery_metadata: Text()  # JSON: {"payload": {...}, "options": {...}}

    # Timestamps
    scheduled_at: DateTime()
    expires_at: DateTime()
    sent_at: DateTime()
    delivered_at: DateTime()
    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id, payload: NotificationPayload, device_token_count, options=None, now=None):
        """Record a notification in PENDING status, expiring after the payload's TTL."""
        now = now or datetime.now(UTC)
        expires_at = now + timedelta(seconds=payload.ttl_seconds)

        record = cls(
            user_id=user_id,
            title=payload.title,
            body=payload.body,
            priority=payload.priority,
            status=NotificationStatus.PENDING.value,
            device_token_count=device_token_count,
            sent_count=0,
            failed_count=0,
            retry_count=0,
            delivery_metadata=json.dumps({"payload": payload.to_dict(), "options": options or {}}),
            scheduled_at=now,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )

        record.raise_(
            NotificationQueued(
                notification_id=str(record.id),
                user_id=str(user_id),
                title=payload.title,
                priority=payload.priority,
                device_token_count=device_token_count,
                expires_at=expires_at,
                created_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def payload(self) -> NotificationPayload:
        """Rebuild the payload this record was created from."""
        metadata = json.loads(self.delivery_metadata) if self.delivery_metadata else {}
        stored = metadata.get("payload") or {"title": self.title, "body": self.body, "priority": self.priority}
        return NotificationPayload.from_dict(stored)

    @property
    def error_list(self) -> list[str]:
        return json.loads(self.errors) if self.errors else []

    def is_expired(self, as_of: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) <= as_utc(as_of)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate state machine transition."""
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def record_outcome(self, sent_count, failed_count, errors=None, device_token_count=None, retried=False, now=None):
        """Settle a send attempt: SENT when any device accepted it, FAILED otherwise.

        A retry that fails again bumps ``retry_count``. Priority and expiry
        are never touched.
        """
        target = NotificationStatus.SENT if sent_count > 0 else NotificationStatus.FAILED
        self._assert_can_transition(target)

        now = now or datetime.now(UTC)
        self.status = target.value
        self.sent_count = sent_count
        self.failed_count = failed_count
        self.errors = json.dumps(list(errors or []))
        if device_token_count is not None:
            self.device_token_count = device_token_count
        if retried:
            self.last_retry_at = now
            if target == NotificationStatus.FAILED:
                self.retry_count = (self.retry_count or 0) + 1
        self.updated_at = now

        if target == NotificationStatus.SENT:
            self.sent_at = now
            self.raise_(
                NotificationSent(
                    notification_id=str(self.id),
                    user_id=str(self.user_id),
                    sent_count=sent_count,
                    failed_count=failed_count,
                    retry_count=self.retry_count,
                    sent_at=now,
                )
            )
        else:
            errors = self.error_list
            self.raise_(
                NotificationFailed(
                    notification_id=str(self.id),
                    user_id=str(self.user_id),
                    title=self.title,
                    priority=self.priority,
                    reason=(errors[0][:500] if errors else None),
                    failed_count=failed_count,
                    retry_count=self.retry_count,
                    expires_at=self.expires_at,
                    failed_at=now,
                )
            )

    def mark_delivered(self, delivered_at=None):
        """Mark notification as confirmed delivered by a device."""
        self._assert_can_transition(NotificationStatus.DELIVERED)

        now = delivered_at or datetime.now(UTC)
        self.status = NotificationStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now

        self.raise_(
            NotificationDelivered(
                notification_id=str(self.id),
                user_id=str(self.user_id),
                delivered_at=now,
            )
        )

    def expire(self, now=None):
        """Give up on a pending or failed notification whose TTL has run out."""
        self._assert_can_transition(NotificationStatus.EXPIRED)

        now = now or datetime.now(UTC)
        self.status = NotificationStatus.EXPIRED.value
        self.updated_at = now

        self.raise_(
            NotificationExpired(
                notification_id=str(self.id),
                user_id=str(self.user_id),
                expired_at=now,
            )
        )
