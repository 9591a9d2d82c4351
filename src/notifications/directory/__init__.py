"""User directory registry: where notification audiences are looked up.

Uses the in-memory fake by default; the production adapter is selected
through the USER_DIRECTORY environment variable.
"""

import os

_directory_instance = None


def get_user_directory():
    """Return the configured user directory adapter (singleton)."""
    global _directory_instance
    if _directory_instance is None:
        adapter = os.environ.get("USER_DIRECTORY", "fake")
        if adapter == "fake":
            from notifications.directory.fake_directory import FakeUserDirectory

            _directory_instance = FakeUserDirectory()
        else:
            raise ValueError(f"Unknown user directory adapter: {adapter}")
    return _directory_instance


def reset_user_directory():
    """Reset the user directory singleton (useful for testing)."""
    global _directory_instance
    _directory_instance = None
