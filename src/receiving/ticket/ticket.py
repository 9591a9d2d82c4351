"""Ticket aggregate (CQRS): an issue opened when a goods receipt has mismatches.

A ticket belongs to exactly one goods receipt and is created in the same
unit of work that verifies it. After that it only changes through explicit
status transitions, assignment, and appended comments.

State Machine:
    OPEN → IN_PROGRESS → RESOLVED → CLOSED
    OPEN → RESOLVED
    IN_PROGRESS → OPEN
    RESOLVED → OPEN  (reopen)
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text
from shared.errors import InvalidStateError

from receiving.domain import receiving
from receiving.ticket.events import TicketAssigned, TicketRaised, TicketStatusChanged
from receiving.ticket.numbering import sequence_of


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TicketStatus(Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class TicketPriority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


PRIORITY_RANK = {
    TicketPriority.LOW: 0,
    TicketPriority.MEDIUM: 1,
    TicketPriority.HIGH: 2,
    TicketPriority.URGENT: 3,
}

_RESOLVED_STATUSES = {TicketStatus.RESOLVED, TicketStatus.CLOSED}

_VALID_TRANSITIONS = {
    TicketStatus.OPEN: {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED},
    TicketStatus.IN_PROGRESS: {TicketStatus.RESOLVED, TicketStatus.OPEN},
    TicketStatus.RESOLVED: {TicketStatus.CLOSED, TicketStatus.OPEN},
    TicketStatus.CLOSED: set(),  # terminal
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@receiving.entity(part_of="Ticket")
class TicketComment:
    """An append-only note on a ticket."""

    author_id = Identifier(required=True)
    content = Text(required=True)
    is_system = Boolean(default=False)
    created_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@receiving.aggregate
class Ticket:
    ticket_number = String(required=True, max_length=50, unique=True)
    sequence_date = String(required=True, max_length=8)  # YYYYMMDD the number was issued on
    sequence = Integer(min_value=1)  # SSS part; empty for fallback numbers
    title = String(required=True, max_length=255)
    description = Text(required=True)
    priority = String(max_length=20, choices=TicketPriority, default=TicketPriority.MEDIUM.value)
    status = String(max_length=20, choices=TicketStatus, default=TicketStatus.OPEN.value)
    goods_receipt_id = Identifier(required=True, unique=True)
    grn_number = String(max_length=50)
    dispatch_id = Identifier()
    vendor_id = Identifier()
    vendor_user_id = Identifier()
    created_by = Identifier(required=True)
    assignee_id = Identifier()
    comments = HasMany(TicketComment)
    resolved_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def resolved_at_tracks_resolution(self):
        resolved = TicketStatus(self.status) in _RESOLVED_STATUSES
        if resolved and self.resolved_at is None:
            raise ValidationError({"resolved_at": ["A resolved or closed ticket must record when it was resolved"]})
        if not resolved and self.resolved_at is not None:
            raise ValidationError({"resolved_at": ["Only resolved or closed tickets carry a resolution time"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def raise_for(
        cls,
        goods_receipt,
        ticket_number: str,
        sequence_date: str,
        title: str,
        description: str,
        priority: TicketPriority,
        summary: str,
        created_by: str,
        assignee_id: str | None = None,
    ):
        """Open a ticket for ``goods_receipt`` with a system comment holding ``summary``."""
        now = datetime.now(UTC)
        ticket = cls(
            ticket_number=ticket_number,
            sequence_date=sequence_date,
            sequence=sequence_of(ticket_number),
            title=title,
            description=description,
            priority=TicketPriority(priority).value,
            status=TicketStatus.OPEN.value,
            goods_receipt_id=str(goods_receipt.id),
            grn_number=goods_receipt.grn_number,
            dispatch_id=goods_receipt.dispatch_id,
            vendor_id=goods_receipt.vendor_id,
            vendor_user_id=goods_receipt.vendor_user_id,
            created_by=created_by,
            assignee_id=assignee_id,
            created_at=now,
            updated_at=now,
        )
        ticket.add_comments(TicketComment(author_id=created_by, content=summary, is_system=True, created_at=now))

        ticket.raise_(
            TicketRaised(
                ticket_id=str(ticket.id),
                ticket_number=ticket_number,
                title=title,
                priority=ticket.priority,
                goods_receipt_id=str(goods_receipt.id),
                grn_number=goods_receipt.grn_number,
                dispatch_id=goods_receipt.dispatch_id,
                vendor_id=goods_receipt.vendor_id,
                vendor_user_id=goods_receipt.vendor_user_id,
                assignee_id=assignee_id,
                mismatch_count=len(goods_receipt.mismatched_lines),
                created_by=created_by,
                created_at=now,
            )
        )
        return ticket

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: TicketStatus) -> None:
        current = TicketStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateError(
                {"status": [f"Cannot transition ticket from {current.value} to {target_status.value}"]}
            )

    # -------------------------------------------------------------------
    # Behaviour
    # -------------------------------------------------------------------
    def add_comment(self, author_id: str, content: str, is_system: bool = False) -> None:
        if not content or not content.strip():
            raise ValidationError({"content": ["Comment cannot be empty"]})

        now = datetime.now(UTC)
        self.add_comments(TicketComment(author_id=author_id, content=content, is_system=is_system, created_at=now))
        self.updated_at = now

    def transition_to(self, new_status, changed_by: str, note: str | None = None) -> None:
        """Move the ticket to ``new_status``, appending ``note`` as a comment when given."""
        target = TicketStatus(new_status)
        self._assert_can_transition(target)

        previous = self.status
        now = datetime.now(UTC)

        with atomic_change(self):
            self.status = target.value
            self.resolved_at = now if target in _RESOLVED_STATUSES else None
            self.updated_at = now

        if note:
            self.add_comment(changed_by, note)

        self.raise_(
            TicketStatusChanged(
                ticket_id=str(self.id),
                ticket_number=self.ticket_number,
                goods_receipt_id=str(self.goods_receipt_id),
                vendor_user_id=self.vendor_user_id,
                previous_status=previous,
                new_status=target.value,
                changed_by=changed_by,
                note=note,
                resolved_at=self.resolved_at,
                changed_at=now,
            )
        )

    def assign(self, assignee_id: str, assigned_by: str) -> None:
        if TicketStatus(self.status) == TicketStatus.CLOSED:
            raise InvalidStateError({"status": ["Closed tickets cannot be reassigned"]})

        now = datetime.now(UTC)
        self.assignee_id = assignee_id
        self.updated_at = now

        self.raise_(
            TicketAssigned(
                ticket_id=str(self.id),
                ticket_number=self.ticket_number,
                title=self.title,
                priority=self.priority,
                assignee_id=assignee_id,
                assigned_by=assigned_by,
                assigned_at=now,
            )
        )
