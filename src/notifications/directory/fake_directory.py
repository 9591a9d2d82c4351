"""Fake user directory: in-memory users and roles for testing."""

from notifications.directory.directory_port import DirectoryUser, UserDirectoryPort


class FakeUserDirectory(UserDirectoryPort):
    """User directory backed by an in-memory dict."""

    def __init__(self):
        self.users: dict[str, dict] = {}

    def add_user(self, user_id: str, name: str | None = None, roles=(), active: bool = True):
        self.users[str(user_id)] = {"name": name, "roles": set(roles), "active": active}

    def users_with_roles(self, roles: list[str]) -> list[DirectoryUser]:
        wanted = set(roles)
        return [
            DirectoryUser(user_id=user_id, name=user["name"])
            for user_id, user in self.users.items()
            if user["active"] and user["roles"] & wanted
        ]

    def active_users(self, user_ids: list[str]) -> list[DirectoryUser]:
        found = []
        for user_id in user_ids:
            user = self.users.get(str(user_id))
            if user is not None and user["active"]:
                found.append(DirectoryUser(user_id=str(user_id), name=user["name"]))
        return found

    def reset(self):
        self.users.clear()
