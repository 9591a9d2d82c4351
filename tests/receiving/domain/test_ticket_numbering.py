"""Tests for ticket number generation, collision retry and fallback."""

import random
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from receiving.ticket.numbering import IssuedNumbers, TicketNumberGenerator, sequence_of

FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)
NUMBER_PATTERN = re.compile(r"^TKT-\d{8}-\d{3}-\d{2}$")
FALLBACK_PATTERN = re.compile(r"^TKT-\d{6}-\d+-[0-9A-Z]{6}$")


class _TicketStore:
    """Ticket numbers held in memory, with an atomic check-and-claim."""

    def __init__(self):
        self._lock = threading.Lock()
        self.numbers: set[str] = set()

    def claim(self, number: str) -> bool:
        """Return True (taken) if someone already holds ``number``, else claim it."""
        with self._lock:
            if number in self.numbers:
                return True
            self.numbers.add(number)
            return False

    def last_sequence(self, sequence_date: str) -> int:
        with self._lock:
            sequences = [
                sequence_of(number) for number in self.numbers if number.split("-")[1] == sequence_date
            ]
        return max((s for s in sequences if s is not None), default=0)


def _generator(is_taken, last_sequence=lambda day: 0, **kwargs):
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    kwargs.setdefault("sleep", lambda seconds: None)
    return TicketNumberGenerator(is_taken=is_taken, last_sequence=last_sequence, **kwargs)


class TestSequenceOf:
    def test_reads_sequence(self):
        assert sequence_of("TKT-20260314-007-42") == 7

    def test_fallback_numbers_have_no_sequence(self):
        assert sequence_of("TKT-202603-1773480600000-A1B2C3") is None

    def test_garbage(self):
        assert sequence_of("GRN-123") is None
        assert sequence_of("TKT-20260314-abc-42") is None


class TestGenerate:
    def test_format(self):
        number = _generator(is_taken=lambda n: False).generate()
        assert NUMBER_PATTERN.match(number)
        assert number.startswith("TKT-20260314-001-")

    def test_continues_from_last_sequence(self):
        number = _generator(is_taken=lambda n: False, last_sequence=lambda day: 41).generate()
        assert number.startswith("TKT-20260314-042-")

    def test_last_sequence_is_asked_for_today(self):
        asked = []
        _generator(is_taken=lambda n: False, last_sequence=lambda day: asked.append(day) or 0).generate()
        assert asked == ["20260314"]

    def test_retries_after_collision(self):
        attempts = []

        def is_taken(number):
            attempts.append(number)
            return len(attempts) < 3

        sleeps = []
        number = _generator(is_taken=is_taken, sleep=sleeps.append).generate()

        assert len(attempts) == 3
        assert number == attempts[-1]
        assert len(sleeps) == 2

    def test_backoff_grows_with_attempts(self):
        sleeps = []
        generator = _generator(
            is_taken=lambda n: True,
            max_attempts=4,
            backoff_seconds=1.0,
            rng=random.Random(7),
            sleep=sleeps.append,
        )
        generator.generate()

        assert len(sleeps) == 4
        for attempt, delay in enumerate(sleeps):
            assert 0 <= delay <= 1.0 * (attempt + 1)

    def test_falls_back_after_exhausting_attempts(self):
        number = _generator(is_taken=lambda n: True, max_attempts=2).generate()
        assert FALLBACK_PATTERN.match(number)
        assert number.startswith("TKT-202603-")

    def test_fallback_embeds_timestamp(self):
        number = _generator(is_taken=lambda n: True).fallback()
        assert number.split("-")[2] == str(int(FIXED_NOW.timestamp() * 1000))


class TestConcurrentGeneration:
    def test_racing_generators_never_share_a_number(self):
        store = _TicketStore()
        # Same sequence for everyone, so only the random suffix and retries keep them apart
        generator = TicketNumberGenerator(
            is_taken=store.claim,
            last_sequence=lambda day: 0,
            max_attempts=50,
            backoff_seconds=0.001,
            clock=lambda: FIXED_NOW,
        )

        with ThreadPoolExecutor(max_workers=8) as pool:
            numbers = list(pool.map(lambda _: generator.generate(), range(40)))

        assert len(set(numbers)) == 40

    def test_sequential_generation_advances_sequence(self):
        store = _TicketStore()
        generator = _generator(is_taken=store.claim, last_sequence=store.last_sequence)

        numbers = [generator.generate() for _ in range(5)]

        assert [sequence_of(n) for n in numbers] == [1, 2, 3, 4, 5]


class TestIssuedNumbers:
    def test_second_claim_of_a_number_is_refused(self):
        issued = IssuedNumbers()
        assert issued.claim("TKT-20260314-001-10") is True
        assert issued.claim("TKT-20260314-001-10") is False
        assert issued.claim("TKT-20260314-001-11") is True

    def test_oldest_claims_are_forgotten_beyond_capacity(self):
        issued = IssuedNumbers(capacity=2)
        for number in ("TKT-20260314-001-01", "TKT-20260314-001-02", "TKT-20260314-001-03"):
            issued.claim(number)

        assert issued.claim("TKT-20260314-001-01") is True
        assert issued.claim("TKT-20260314-001-03") is False

    def test_generator_skips_numbers_claimed_but_not_stored(self):
        issued = IssuedNumbers()
        # Nothing is in the store yet, so only the claims keep the numbers apart
        generator = _generator(is_taken=lambda n: False, claim=issued.claim, max_attempts=200)

        numbers = [generator.generate() for _ in range(20)]

        assert len(set(numbers)) == 20
        assert all(sequence_of(n) == 1 for n in numbers)

    def test_fallback_is_claimed_too(self):
        issued = IssuedNumbers()
        generator = _generator(is_taken=lambda n: True, claim=issued.claim, max_attempts=1)

        number = generator.generate()

        assert FALLBACK_PATTERN.match(number)
        assert issued.claim(number) is False
