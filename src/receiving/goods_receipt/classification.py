"""Mismatch classification for goods-receipt lines.

Pure functions, no repository or clock access. Both the GoodsReceipt
aggregate and the ticket priority rules build on these.

Line rules, checked in order:
    damage reported             → DAMAGE_REPORTED
    0 < received < confirmed    → QUANTITY_MISMATCH
    nothing received            → SHORTAGE_REPORTED
    received > confirmed        → EXCESS_RECEIVED
    otherwise                   → VERIFIED_OK

Receipt rules:
    every line OK               → VERIFIED_OK
    any critical line           → VERIFIED_MISMATCH
    only excess lines           → PARTIALLY_VERIFIED
"""

from collections.abc import Iterable
from enum import Enum

from protean.exceptions import ValidationError


class GoodsReceiptStatus(Enum):
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    VERIFIED_OK = "VERIFIED_OK"
    PARTIALLY_VERIFIED = "PARTIALLY_VERIFIED"
    VERIFIED_MISMATCH = "VERIFIED_MISMATCH"


class LineStatus(Enum):
    VERIFIED_OK = "VERIFIED_OK"
    QUANTITY_MISMATCH = "QUANTITY_MISMATCH"
    DAMAGE_REPORTED = "DAMAGE_REPORTED"
    SHORTAGE_REPORTED = "SHORTAGE_REPORTED"
    EXCESS_RECEIVED = "EXCESS_RECEIVED"


CRITICAL_LINE_STATUSES = frozenset(
    {
        LineStatus.QUANTITY_MISMATCH,
        LineStatus.SHORTAGE_REPORTED,
        LineStatus.DAMAGE_REPORTED,
    }
)

_SHORTAGE_STATUSES = frozenset({LineStatus.SHORTAGE_REPORTED, LineStatus.QUANTITY_MISMATCH})


def validate_quantity(field_name: str, value) -> int:
    """Return ``value`` if it is a non-negative integer, else raise ValidationError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError({field_name: ["Quantity must be a whole number"]})
    if value < 0:
        raise ValidationError({field_name: ["Quantity cannot be negative"]})
    return value


def classify_line(
    confirmed_qty: int,
    received_qty: int,
    damage_reported: bool = False,
    shortage_status: LineStatus | None = None,
) -> tuple[LineStatus, int]:
    """Classify a single receiving line.

    Args:
        confirmed_qty: Quantity the vendor confirmed for dispatch.
        received_qty: Quantity physically counted at the dock.
        damage_reported: Whether the operator flagged damage on the line.
        shortage_status: Forces the status used for a shortfall. By default a
            partial shortfall is QUANTITY_MISMATCH and receiving nothing at
            all is SHORTAGE_REPORTED.

    Returns:
        ``(status, discrepancy)`` where discrepancy is ``received - confirmed``.
    """
    validate_quantity("confirmed_qty", confirmed_qty)
    validate_quantity("received_qty", received_qty)

    if shortage_status is not None:
        try:
            shortage_status = LineStatus(shortage_status)
        except ValueError:
            shortage_status = None
        if shortage_status not in _SHORTAGE_STATUSES:
            raise ValidationError({"shortage_status": ["Shortage status must be SHORTAGE_REPORTED or QUANTITY_MISMATCH"]})

    discrepancy = received_qty - confirmed_qty

    if damage_reported:
        return LineStatus.DAMAGE_REPORTED, discrepancy
    if received_qty < confirmed_qty:
        if shortage_status is not None:
            return shortage_status, discrepancy
        if received_qty == 0:
            return LineStatus.SHORTAGE_REPORTED, discrepancy
        return LineStatus.QUANTITY_MISMATCH, discrepancy
    if received_qty > confirmed_qty:
        return LineStatus.EXCESS_RECEIVED, discrepancy
    return LineStatus.VERIFIED_OK, discrepancy


def is_critical(status) -> bool:
    return LineStatus(status) in CRITICAL_LINE_STATUSES


def aggregate_status(line_statuses: Iterable) -> GoodsReceiptStatus:
    """Derive the goods-receipt status from its line statuses (enums or values)."""
    statuses = [LineStatus(status) for status in line_statuses]

    if all(status == LineStatus.VERIFIED_OK for status in statuses):
        return GoodsReceiptStatus.VERIFIED_OK
    if any(status in CRITICAL_LINE_STATUSES for status in statuses):
        return GoodsReceiptStatus.VERIFIED_MISMATCH
    return GoodsReceiptStatus.PARTIALLY_VERIFIED


def discrepancy_matches_status(status, discrepancy: int, damage_reported: bool = False) -> bool:
    """Check that a line's signed discrepancy agrees with its status."""
    status = LineStatus(status)

    if status == LineStatus.DAMAGE_REPORTED:
        return bool(damage_reported)
    if status in _SHORTAGE_STATUSES:
        return discrepancy < 0
    if status == LineStatus.EXCESS_RECEIVED:
        return discrepancy > 0
    return discrepancy == 0 and not damage_reported
