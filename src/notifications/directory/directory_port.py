"""User directory port: who should receive a notification.

The directory is owned elsewhere (user and role management); the
Notifications domain only reads from it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DirectoryUser:
    user_id: str
    name: str | None = None


class UserDirectoryPort(ABC):
    """Abstract interface for looking up notification audiences."""

    @abstractmethod
    def users_with_roles(self, roles: list[str]) -> list[DirectoryUser]:
        """Active users holding any of ``roles``."""
        ...

    @abstractmethod
    def active_users(self, user_ids: list[str]) -> list[DirectoryUser]:
        """The subset of ``user_ids`` that belong to active users, in the given order."""
        ...
