"""Ticket domain events.

TicketRaised and TicketStatusChanged are also published to other domains;
their cross-domain contracts live in ``shared/events/receiving.py``.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from receiving.domain import receiving


@receiving.event(part_of="Ticket")
class TicketRaised:
    """An issue ticket was opened for a goods receipt with mismatches."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    ticket_number = String(required=True)
    title = String(required=True)
    priority = String(required=True)
    goods_receipt_id = Identifier(required=True)
    grn_number = String(required=True)
    dispatch_id = Identifier()
    vendor_id = Identifier()
    vendor_user_id = Identifier()
    assignee_id = Identifier()
    mismatch_count = Integer(required=True)
    created_by = Identifier(required=True)
    created_at = DateTime(required=True)


@receiving.event(part_of="Ticket")
class TicketStatusChanged:
    """A ticket moved between statuses."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    ticket_number = String(required=True)
    goods_receipt_id = Identifier(required=True)
    vendor_user_id = Identifier()
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_by = Identifier(required=True)
    note = Text()
    resolved_at = DateTime()
    changed_at = DateTime(required=True)


@receiving.event(part_of="Ticket")
class TicketAssigned:
    """A ticket was assigned to a user for resolution."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    ticket_number = String(required=True)
    title = String(required=True)
    priority = String(required=True)
    assignee_id = Identifier(required=True)
    assigned_by = Identifier(required=True)
    assigned_at = DateTime(required=True)
