"""Device registry: lifecycle of push endpoints per user.

The registry is a plain service object: construct it with the tunables you
want (tests pass a fixed clock) and call it inside an active
``notifications`` domain context. It holds no per-request state.
"""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

import structlog
from notifications import config
from notifications.device_token.device_token import (
    DeviceToken,
    DeviceType,
    validate_device_type,
    validate_token,
)
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from shared.timeutils import as_utc

logger = structlog.get_logger(__name__)


class DeviceRegistry:
    def __init__(
        self,
        token_expiry_days: int | None = None,
        tokens_per_device_type: int | None = None,
        inactive_grace_days: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.token_expiry_days = config.TOKEN_EXPIRY_DAYS if token_expiry_days is None else token_expiry_days
        self.tokens_per_device_type = (
            config.TOKENS_PER_DEVICE_TYPE if tokens_per_device_type is None else tokens_per_device_type
        )
        self.inactive_grace_days = (
            config.INACTIVE_TOKEN_GRACE_DAYS if inactive_grace_days is None else inactive_grace_days
        )
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def _repo(self):
        return current_domain.repository_for(DeviceToken)

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------
    def register(
        self,
        user_id: str,
        token: str,
        device_type: str = DeviceType.WEB.value,
        metadata: dict | None = None,
    ) -> DeviceToken:
        """Register ``token`` for ``user_id``, or refresh it if already known."""
        validate_token(token)
        device_type = validate_device_type(device_type)

        now = self._clock()
        expires_at = now + timedelta(days=self.token_expiry_days)

        device_token = self._repo.find_by_token(token)
        if device_token is None:
            device_token = DeviceToken.register(
                token=token,
                user_id=user_id,
                expires_at=expires_at,
                device_type=device_type,
                metadata=metadata,
                now=now,
            )
            logger.info("Device token registered", user_id=str(user_id), device_type=device_type)
        else:
            previous_owner = device_token.refresh(
                user_id=user_id,
                expires_at=expires_at,
                device_type=device_type,
                metadata=metadata,
                now=now,
            )
            if previous_owner is not None:
                logger.info(
                    "Device token ownership transferred",
                    device_token_id=str(device_token.id),
                    previous_user_id=previous_owner,
                    user_id=str(user_id),
                )
            else:
                logger.debug("Device token refreshed", user_id=str(user_id), device_type=device_type)

        self._repo.add(device_token)
        self._enforce_retention(user_id, device_type, keep=device_token.id)
        return device_token

    def _enforce_retention(self, user_id: str, device_type: str, keep=None) -> int:
        """Delete the oldest tokens beyond the cap for (user, device type).

        The token with id ``keep`` is always retained and counts towards the cap.
        """
        tokens = self._repo.for_user(user_id, device_type)
        if len(tokens) <= self.tokens_per_device_type:
            return 0

        others = [t for t in tokens if keep is None or str(t.id) != str(keep)]
        others.sort(key=lambda t: as_utc(t.created_at), reverse=True)
        room = self.tokens_per_device_type - (len(tokens) - len(others))
        stale = others[max(room, 0) :]
        for device_token in stale:
            self._repo.remove(device_token)

        logger.info(
            "Pruned device tokens beyond retention cap",
            user_id=str(user_id),
            device_type=device_type,
            removed=len(stale),
        )
        return len(stale)

    # -------------------------------------------------------------------
    # Deactivation and removal
    # -------------------------------------------------------------------
    def deactivate(self, tokens: Iterable[str]) -> int:
        """Deactivate the given endpoint values. Returns how many changed."""
        count = 0
        now = self._clock()
        for token in set(tokens):
            device_token = self._repo.find_by_token(token)
            if device_token is None or not device_token.is_active:
                continue
            device_token.deactivate(now=now)
            self._repo.add(device_token)
            count += 1

        if count:
            logger.info("Deactivated invalid device tokens", count=count)
        return count

    def touch(self, tokens: Iterable[str]) -> int:
        """Record that the given endpoints were just used."""
        count = 0
        now = self._clock()
        for token in set(tokens):
            device_token = self._repo.find_by_token(token)
            if device_token is None:
                continue
            device_token.touch(now=now)
            self._repo.add(device_token)
            count += 1
        return count

    def remove(self, user_id: str, token: str) -> bool:
        device_token = self._repo.find_by_token(token)
        if device_token is None or str(device_token.user_id) != str(user_id):
            return False
        self._repo.remove(device_token)
        return True

    def remove_by_id(self, device_token_id: str, user_id: str) -> bool:
        try:
            device_token = self._repo.get(device_token_id)
        except ObjectNotFoundError:
            return False
        if str(device_token.user_id) != str(user_id):
            return False
        self._repo.remove(device_token)
        return True

    def remove_all(self, user_id: str) -> int:
        tokens = self._repo.for_user(user_id)
        for device_token in tokens:
            self._repo.remove(device_token)
        return len(tokens)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def active_for(self, user_id: str, device_type: str | None = None) -> list[DeviceToken]:
        """Active, unexpired tokens for a user, most recently used first."""
        now = self._clock()
        tokens = [t for t in self._repo.for_user(user_id, device_type) if t.is_usable(now)]
        tokens.sort(key=lambda t: as_utc(t.last_used or t.created_at), reverse=True)
        return tokens

    def active_for_many(self, user_ids: Iterable[str], device_type: str | None = None) -> dict[str, list[DeviceToken]]:
        return {str(user_id): self.active_for(user_id, device_type) for user_id in user_ids}

    def statistics(self) -> dict:
        now = self._clock()
        tokens = self._repo.every_token()
        by_device_type = {device_type.value: 0 for device_type in DeviceType}
        for device_token in tokens:
            if device_token.is_usable(now):
                by_device_type[device_token.device_type] = by_device_type.get(device_token.device_type, 0) + 1

        return {
            "total": len(tokens),
            "active": sum(1 for t in tokens if t.is_usable(now)),
            "inactive": sum(1 for t in tokens if not t.is_active),
            "expired": sum(1 for t in tokens if t.is_active and t.is_expired(now)),
            "by_device_type": by_device_type,
        }

    # -------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------
    def cleanup(self) -> dict:
        """Purge expired tokens and tokens inactive beyond the grace period.

        Delete-only and keyed by id, so running it twice (or alongside
        registrations) is harmless.
        """
        now = self._clock()
        grace_cutoff = as_utc(now) - timedelta(days=self.inactive_grace_days)

        expired = 0
        inactive = 0
        for device_token in self._repo.every_token():
            if device_token.is_expired(now):
                self._repo.remove(device_token)
                expired += 1
            elif not device_token.is_active and as_utc(device_token.updated_at or device_token.created_at) < grace_cutoff:
                self._repo.remove(device_token)
                inactive += 1

        logger.info("Device token cleanup finished", expired=expired, inactive=inactive)
        return {"expired": expired, "inactive": inactive}
