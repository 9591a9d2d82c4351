"""Push gateway port: abstract interface for batched push delivery.

Adapters send one message to many device tokens in a single call and
report one outcome per token, in the order the tokens were given.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

# Error codes meaning the token will never work again and should be deactivated
INVALID_TOKEN_ERROR_CODES = frozenset(
    {
        "messaging/registration-token-not-registered",
        "messaging/invalid-registration-token",
    }
)


@dataclass(frozen=True)
class PushOutcome:
    """Result of delivering to a single device token."""

    success: bool
    message_id: str | None = None
    error_code: str | None = None
    error: str | None = None

    @property
    def token_invalid(self) -> bool:
        return not self.success and self.error_code in INVALID_TOKEN_ERROR_CODES


class PushGatewayPort(ABC):
    """Abstract interface for push gateway adapters."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the gateway is configured and able to send (e.g. has credentials)."""
        ...

    @abstractmethod
    def send_batch(self, tokens: list[str], message: dict) -> list[PushOutcome]:
        """Send ``message`` to every token.

        Returns:
            One PushOutcome per token, in the same order as ``tokens``.

        Raises:
            InfrastructureError: the whole call failed (network, auth, quota).
        """
        ...
