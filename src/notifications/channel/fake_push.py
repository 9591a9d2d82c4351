"""Fake push gateway: records batches in memory for testing."""

import threading
import time
from uuid import uuid4

from shared.errors import InfrastructureError

from notifications.channel.push_port import PushGatewayPort, PushOutcome


class FakePushGateway(PushGatewayPort):
    """Push gateway that records batches in memory for test assertions.

    Individual tokens can be made to fail permanently (``invalid_tokens``) or
    transiently (``failing_tokens``), and whole batches can be made to raise
    or stall.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.sent_batches: list[dict] = []
        self.reset()

    def configure(
        self,
        available: bool = True,
        invalid_tokens=(),
        failing_tokens=(),
        batch_error: str | None = None,
        delay: float = 0.0,
    ):
        """Configure the fake gateway behavior for testing."""
        self.available = available
        self.invalid_tokens = set(invalid_tokens)
        self.failing_tokens = set(failing_tokens)
        self.batch_error = batch_error
        self.delay = delay

    def is_available(self) -> bool:
        return self.available

    def send_batch(self, tokens: list[str], message: dict) -> list[PushOutcome]:
        if self.delay:
            time.sleep(self.delay)
        if self.batch_error:
            raise InfrastructureError(self.batch_error)

        outcomes = []
        for token in tokens:
            if token in self.invalid_tokens:
                outcomes.append(
                    PushOutcome(
                        success=False,
                        error_code="messaging/registration-token-not-registered",
                        error="Requested entity was not found.",
                    )
                )
            elif token in self.failing_tokens:
                outcomes.append(
                    PushOutcome(
                        success=False,
                        error_code="messaging/internal-error",
                        error="Internal error encountered.",
                    )
                )
            else:
                outcomes.append(PushOutcome(success=True, message_id=f"push-{uuid4().hex[:12]}"))

        with self._lock:
            self.sent_batches.append({"tokens": list(tokens), "message": message})

        return outcomes

    @property
    def delivered_tokens(self) -> list[str]:
        with self._lock:
            return [token for batch in self.sent_batches for token in batch["tokens"]]

    def reset(self):
        """Clear recorded batches and restore default behavior (useful between tests)."""
        with self._lock:
            self.sent_batches.clear()
        self.configure()
