"""Push gateway registry: pluggable push delivery adapters.

Uses the fake gateway by default; a real adapter (e.g. Firebase Cloud
Messaging) is selected through the PUSH_GATEWAY environment variable in
production.
"""

import os

_gateway_instance = None


def get_push_gateway():
    """Return the configured push gateway adapter (singleton)."""
    global _gateway_instance
    if _gateway_instance is None:
        adapter = os.environ.get("PUSH_GATEWAY", "fake")
        if adapter == "fake":
            from notifications.channel.fake_push import FakePushGateway

            _gateway_instance = FakePushGateway()
        else:
            raise ValueError(f"Unknown push gateway adapter: {adapter}")
    return _gateway_instance


def reset_push_gateway():
    """Reset the push gateway singleton (useful for testing)."""
    global _gateway_instance
    _gateway_instance = None
