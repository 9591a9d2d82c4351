"""Cross-domain event contracts for Receiving domain events.

These classes define the event shape for consumption by other domains
(the Notifications domain alerts people when tickets are raised, assigned,
or resolved). They are registered as external events via
domain.register_external_event() with matching __type__ strings so
Protean's stream deserialization works correctly.

The source-of-truth events are in src/receiving/ticket/events.py.
"""

from protean.core.event import BaseEvent
from protean.fields import DateTime, Identifier, Integer, String, Text


class TicketRaised(BaseEvent):
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


class TicketStatusChanged(BaseEvent):
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


class TicketAssigned(BaseEvent):
    """A ticket was assigned to a user for resolution."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    ticket_number = String(required=True)
    title = String(required=True)
    priority = String(required=True)
    assignee_id = Identifier(required=True)
    assigned_by = Identifier(required=True)
    assigned_at = DateTime(required=True)
