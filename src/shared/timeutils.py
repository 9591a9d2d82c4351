"""Datetime helpers for comparing values that may or may not carry a timezone.

Values read back from some providers come back naive; everything written by
this codebase is UTC, so naive values are treated as UTC.
"""

from datetime import UTC, datetime


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
