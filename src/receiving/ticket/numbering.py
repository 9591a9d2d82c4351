"""Human-readable ticket numbers: ``TKT-YYYYMMDD-SSS-RR``.

``SSS`` is the next sequence for the day and ``RR`` a two-digit random
suffix. Two verifications racing for the same sequence are told apart by
checking whether the candidate is already taken, then backing off for a
short randomised interval and trying again. After the last attempt a
timestamp-based number is issued instead.
"""

import random
import string
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from receiving import config

logger = structlog.get_logger(__name__)

_BASE36_ALPHABET = string.digits + string.ascii_uppercase


def sequence_of(ticket_number: str) -> int | None:
    """Extract the sequence from a ``TKT-YYYYMMDD-SSS-RR`` number, if it has one."""
    parts = ticket_number.split("-")
    if len(parts) != 4 or parts[0] != "TKT" or len(parts[1]) != 8:
        return None
    try:
        return int(parts[2])
    except ValueError:
        return None


class IssuedNumbers:
    """Numbers handed out by this process that may not be committed yet.

    The store only sees a number once its unit of work commits, so two
    verifications running side by side can both find the same candidate free.
    Claiming a number here first closes that window inside one process. The
    registry keeps the most recent ``capacity`` claims.
    """

    def __init__(self, capacity: int = 10_000):
        self.capacity = capacity
        self._claimed: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def claim(self, ticket_number: str) -> bool:
        """Record ``ticket_number`` and return True, or False if it was already claimed."""
        with self._lock:
            if ticket_number in self._claimed:
                return False
            self._claimed[ticket_number] = None
            while len(self._claimed) > self.capacity:
                self._claimed.popitem(last=False)
            return True

    def clear(self) -> None:
        with self._lock:
            self._claimed.clear()


issued_numbers = IssuedNumbers()


class TicketNumberGenerator:
    """Issues ticket numbers against a store of existing ones.

    Args:
        is_taken: Returns True when a candidate number is already held by a ticket.
        last_sequence: Returns the highest sequence issued so far on a given
            ``YYYYMMDD`` day (0 when none).
        claim: Optional in-process reservation. A candidate is only issued once
            ``claim`` accepts it, e.g. ``issued_numbers.claim``.
    """

    def __init__(
        self,
        is_taken: Callable[[str], bool],
        last_sequence: Callable[[str], int],
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        claim: Callable[[str], bool] | None = None,
    ):
        self._is_taken = is_taken
        self._last_sequence = last_sequence
        self.max_attempts = config.TICKET_NUMBER_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.backoff_seconds = config.TICKET_NUMBER_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._claim = claim or (lambda ticket_number: True)

    def generate(self) -> str:
        for attempt in range(self.max_attempts):
            date_part = self._clock().strftime("%Y%m%d")
            sequence = self._last_sequence(date_part) + 1
            candidate = f"TKT-{date_part}-{sequence:03d}-{self._rng.randint(0, 99):02d}"

            if not self._is_taken(candidate) and self._claim(candidate):
                return candidate

            delay = self._rng.uniform(0, self.backoff_seconds * (attempt + 1))
            logger.warning(
                "Ticket number already taken, backing off",
                candidate=candidate,
                attempt=attempt + 1,
                delay=round(delay, 4),
            )
            self._sleep(delay)

        fallback = self.fallback()
        while not self._claim(fallback):
            fallback = self.fallback()
        logger.warning(
            "Ticket number retries exhausted, using timestamp number",
            attempts=self.max_attempts,
            ticket_number=fallback,
        )
        return fallback

    def fallback(self) -> str:
        now = self._clock()
        suffix = "".join(self._rng.choice(_BASE36_ALPHABET) for _ in range(6))
        return f"TKT-{now:%Y%m}-{int(now.timestamp() * 1000)}-{suffix}"
