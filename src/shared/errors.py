"""Error types shared across the Receiving and Notifications domains.

Validation and not-found conditions reuse Protean's own exceptions
(``ValidationError``, ``ObjectNotFoundError``). The types below cover the
remaining failure kinds callers need to tell apart.
"""

from protean.exceptions import ValidationError


class InvalidStateError(ValidationError):
    """An operation was attempted on an object whose lifecycle state forbids it.

    Raised when verifying a goods receipt that is no longer pending, or when
    a ticket status transition is not permitted. Subclasses ValidationError
    so that it is rejected like any other invalid request, while remaining
    distinguishable by callers.
    """


class InfrastructureError(Exception):
    """A persistence or gateway call failed. May be transient."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
