"""Tests for the Ticket aggregate: creation, state machine, assignment and comments."""

import pytest
from protean.exceptions import ValidationError
from receiving.goods_receipt.goods_receipt import GoodsReceipt
from receiving.ticket.content import build_description, build_mismatch_summary, build_title
from receiving.ticket.events import TicketAssigned, TicketRaised, TicketStatusChanged
from receiving.ticket.priority import compute_priority
from receiving.ticket.ticket import Ticket, TicketPriority, TicketStatus
from shared.errors import InvalidStateError


def _mismatched_receipt():
    grn = GoodsReceipt.receive(
        dispatch_id="dispatch-001",
        vendor_id="vendor-001",
        vendor_user_id="vendor-user-1",
        lines_data=[
            {"assignment_item_id": "item-1", "product_name": "Tomato seeds", "assigned_qty": 100},
            {"assignment_item_id": "item-2", "product_name": "Potting mix", "assigned_qty": 20},
        ],
    )
    grn.verify(
        [
            {"line_id": str(grn.lines[0].id), "received_qty": 85},
            {"line_id": str(grn.lines[1].id), "received_qty": 20, "damage_reported": True},
        ],
        verified_by="operator-1",
    )
    grn._events.clear()
    return grn


def _ticket(assignee_id=None):
    grn = _mismatched_receipt()
    mismatched = grn.mismatched_lines
    return Ticket.raise_for(
        goods_receipt=grn,
        ticket_number="TKT-20260314-001-42",
        sequence_date="20260314",
        title=build_title(grn),
        description=build_description(grn, mismatched),
        priority=compute_priority(mismatched),
        summary=build_mismatch_summary(mismatched),
        created_by="operator-1",
        assignee_id=assignee_id,
    )


def _ticket_at_state(target_status):
    ticket = _ticket()
    path = {
        TicketStatus.OPEN: [],
        TicketStatus.IN_PROGRESS: [TicketStatus.IN_PROGRESS],
        TicketStatus.RESOLVED: [TicketStatus.RESOLVED],
        TicketStatus.CLOSED: [TicketStatus.RESOLVED, TicketStatus.CLOSED],
    }[target_status]
    for status in path:
        ticket.transition_to(status, changed_by="ops-1")
    ticket._events.clear()
    return ticket


class TestRaiseFor:
    def test_ticket_is_open(self):
        ticket = _ticket()
        assert ticket.status == TicketStatus.OPEN.value
        assert ticket.resolved_at is None

    def test_ticket_copies_receipt_details(self):
        ticket = _ticket()
        assert ticket.grn_number.startswith("GRN-")
        assert ticket.dispatch_id == "dispatch-001"
        assert ticket.vendor_user_id == "vendor-user-1"
        assert ticket.title == f"GRN Mismatch - {ticket.grn_number} (dispatch-001)"

    def test_damage_makes_ticket_urgent(self):
        assert _ticket().priority == TicketPriority.URGENT.value

    def test_system_comment_holds_summary(self):
        ticket = _ticket()
        assert len(ticket.comments) == 1
        comment = ticket.comments[0]
        assert comment.is_system is True
        assert "Mismatch Summary:" in comment.content
        assert "DAMAGE_REPORTED: 1 item(s)" in comment.content
        assert "QUANTITY_MISMATCH: 1 item(s)" in comment.content
        assert "Total items with issues: 2" in comment.content

    def test_description_lists_lines_and_actions(self):
        description = _ticket().description
        assert "Tomato seeds" in description
        assert "Discrepancy: -15 units" in description
        assert "Action Required:" in description

    def test_raises_ticket_raised(self):
        ticket = _ticket(assignee_id="ops-7")
        events = [e for e in ticket._events if isinstance(e, TicketRaised)]
        assert len(events) == 1
        event = events[0]
        assert event.ticket_number == "TKT-20260314-001-42"
        assert event.mismatch_count == 2
        assert event.assignee_id == "ops-7"
        assert event.vendor_user_id == "vendor-user-1"


class TestValidTransitions:
    @pytest.mark.parametrize(
        "start, target",
        [
            (TicketStatus.OPEN, TicketStatus.IN_PROGRESS),
            (TicketStatus.OPEN, TicketStatus.RESOLVED),
            (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
            (TicketStatus.IN_PROGRESS, TicketStatus.OPEN),
            (TicketStatus.RESOLVED, TicketStatus.CLOSED),
            (TicketStatus.RESOLVED, TicketStatus.OPEN),
        ],
    )
    def test_transition_allowed(self, start, target):
        ticket = _ticket_at_state(start)
        ticket.transition_to(target, changed_by="ops-1")
        assert ticket.status == target.value

    def test_resolving_sets_resolved_at(self):
        ticket = _ticket_at_state(TicketStatus.IN_PROGRESS)
        ticket.transition_to(TicketStatus.RESOLVED, changed_by="ops-1")
        assert ticket.resolved_at is not None

    def test_closing_keeps_resolved_at(self):
        ticket = _ticket_at_state(TicketStatus.RESOLVED)
        ticket.transition_to(TicketStatus.CLOSED, changed_by="ops-1")
        assert ticket.resolved_at is not None

    def test_reopening_clears_resolved_at(self):
        ticket = _ticket_at_state(TicketStatus.RESOLVED)
        ticket.transition_to(TicketStatus.OPEN, changed_by="ops-1")
        assert ticket.resolved_at is None

    def test_transition_accepts_plain_value(self):
        ticket = _ticket()
        ticket.transition_to("IN_PROGRESS", changed_by="ops-1")
        assert ticket.status == TicketStatus.IN_PROGRESS.value

    def test_transition_raises_event(self):
        ticket = _ticket_at_state(TicketStatus.IN_PROGRESS)
        ticket.transition_to(TicketStatus.RESOLVED, changed_by="ops-1", note="Vendor sent credit note")

        events = [e for e in ticket._events if isinstance(e, TicketStatusChanged)]
        assert len(events) == 1
        assert events[0].previous_status == TicketStatus.IN_PROGRESS.value
        assert events[0].new_status == TicketStatus.RESOLVED.value
        assert events[0].note == "Vendor sent credit note"

    def test_note_becomes_comment(self):
        ticket = _ticket()
        ticket.transition_to(TicketStatus.IN_PROGRESS, changed_by="ops-1", note="Calling vendor")
        assert ticket.comments[-1].content == "Calling vendor"
        assert ticket.comments[-1].is_system is False


class TestInvalidTransitions:
    @pytest.mark.parametrize(
        "start, target",
        [
            (TicketStatus.OPEN, TicketStatus.CLOSED),
            (TicketStatus.IN_PROGRESS, TicketStatus.CLOSED),
            (TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
            (TicketStatus.CLOSED, TicketStatus.OPEN),
            (TicketStatus.CLOSED, TicketStatus.RESOLVED),
            (TicketStatus.OPEN, TicketStatus.OPEN),
        ],
    )
    def test_transition_rejected(self, start, target):
        ticket = _ticket_at_state(start)
        with pytest.raises(InvalidStateError):
            ticket.transition_to(target, changed_by="ops-1")
        assert ticket.status == start.value

    def test_unknown_status_rejected(self):
        ticket = _ticket()
        with pytest.raises(ValueError):
            ticket.transition_to("ARCHIVED", changed_by="ops-1")


class TestAssignment:
    def test_assign(self):
        ticket = _ticket()
        ticket._events.clear()
        ticket.assign("ops-7", assigned_by="ops-1")

        assert ticket.assignee_id == "ops-7"
        events = [e for e in ticket._events if isinstance(e, TicketAssigned)]
        assert len(events) == 1
        assert events[0].assignee_id == "ops-7"

    def test_closed_ticket_cannot_be_assigned(self):
        ticket = _ticket_at_state(TicketStatus.CLOSED)
        with pytest.raises(InvalidStateError):
            ticket.assign("ops-7", assigned_by="ops-1")


class TestComments:
    def test_add_comment(self):
        ticket = _ticket()
        ticket.add_comment("ops-1", "Vendor acknowledged")
        assert len(ticket.comments) == 2
        assert ticket.comments[-1].author_id == "ops-1"

    def test_empty_comment_rejected(self):
        ticket = _ticket()
        with pytest.raises(ValidationError):
            ticket.add_comment("ops-1", "   ")
