"""Ticket priority rules.

Only lines that did not verify cleanly count. Critical lines (shortage,
quantity mismatch, damage) set the base priority from their total absolute
discrepancy; damage on any critical line escalates straight to URGENT.
Receipts with nothing but excess stock get LOW.
"""

from collections.abc import Iterable

from receiving import config
from receiving.goods_receipt.classification import LineStatus, is_critical
from receiving.ticket.ticket import TicketPriority


def total_critical_quantity(lines: Iterable) -> int:
    """Sum of absolute discrepancies across critical lines."""
    return sum(abs(line.discrepancy_qty or 0) for line in lines if line.status and is_critical(line.status))


def compute_priority(
    lines: Iterable,
    high_threshold: int | None = None,
    urgent_threshold: int | None = None,
) -> TicketPriority:
    """Compute ticket priority from verified lines.

    Lines are any objects with ``status``, ``discrepancy_qty`` and
    ``damage_reported`` attributes (GoodsReceiptLine entities in practice).
    """
    high_threshold = config.HIGH_PRIORITY_THRESHOLD if high_threshold is None else high_threshold
    urgent_threshold = config.URGENT_PRIORITY_THRESHOLD if urgent_threshold is None else urgent_threshold

    mismatched = [line for line in lines if line.status and LineStatus(line.status) != LineStatus.VERIFIED_OK]
    critical = [line for line in mismatched if is_critical(line.status)]

    if critical:
        total = total_critical_quantity(critical)
        if any(line.damage_reported for line in critical) or total > urgent_threshold:
            return TicketPriority.URGENT
        if total > high_threshold:
            return TicketPriority.HIGH
        return TicketPriority.MEDIUM

    if any(LineStatus(line.status) == LineStatus.EXCESS_RECEIVED for line in mismatched):
        return TicketPriority.LOW

    return TicketPriority.MEDIUM
