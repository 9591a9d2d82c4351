"""Repository for the DeviceToken aggregate."""

from notifications.device_token.device_token import DeviceToken
from notifications.domain import notifications


@notifications.repository(part_of=DeviceToken)
class DeviceTokenRepository:
    def find_by_token(self, token: str) -> DeviceToken | None:
        found = self._dao.query.filter(token=token).limit(1).all().items
        return found[0] if found else None

    def for_user(self, user_id: str, device_type: str | None = None) -> list[DeviceToken]:
        criteria = {"user_id": str(user_id)}
        if device_type is not None:
            criteria["device_type"] = device_type
        return self._dao.query.filter(**criteria).limit(None).all().items

    def every_token(self) -> list[DeviceToken]:
        """All tokens, unpaged. Used by statistics and cleanup."""
        return self._dao.query.limit(None).all().items

    def remove(self, device_token: DeviceToken) -> None:
        self._dao.delete(device_token)
