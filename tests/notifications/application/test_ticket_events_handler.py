"""Application tests for notifications sent about goods-receipt tickets."""

from datetime import UTC, datetime

import pytest
from notifications.device_token.registry import DeviceRegistry
from notifications.notification.dispatcher import NotificationDispatcher
from notifications.notification.ticket_events import TicketEventsHandler
from shared.events.receiving import TicketAssigned, TicketRaised, TicketStatusChanged


def _ticket_raised(**overrides):
    defaults = {
        "ticket_id": "ticket-001",
        "ticket_number": "TKT-20260314-001-42",
        "title": "GRN Mismatch - GRN-1773480600000-AB12 (dispatch-001)",
        "priority": "HIGH",
        "goods_receipt_id": "grn-001",
        "grn_number": "GRN-1773480600000-AB12",
        "dispatch_id": "dispatch-001",
        "vendor_id": "vendor-001",
        "vendor_user_id": "vendor-user-1",
        "mismatch_count": 2,
        "created_by": "operator-1",
        "created_at": datetime.now(UTC),
    }
    defaults.update(overrides)
    return TicketRaised(**defaults)


def _status_changed(new_status, **overrides):
    defaults = {
        "ticket_id": "ticket-001",
        "ticket_number": "TKT-20260314-001-42",
        "goods_receipt_id": "grn-001",
        "vendor_user_id": "vendor-user-1",
        "previous_status": "IN_PROGRESS",
        "new_status": new_status,
        "changed_by": "ops-1",
        "changed_at": datetime.now(UTC),
    }
    defaults.update(overrides)
    return TicketStatusChanged(**defaults)


@pytest.fixture
def audience(directory, make_token):
    """Staff in every role plus the vendor, each with one registered device."""
    registry = DeviceRegistry()
    people = {
        "ops-1": ["OPERATIONS"],
        "admin-1": ["ADMIN"],
        "qc-1": ["QC"],
        "accounts-1": ["ACCOUNTS"],
        "vendor-user-1": ["VENDOR"],
        "ops-7": ["OPERATIONS"],
    }
    tokens = {}
    for user_id, roles in people.items():
        directory.add_user(user_id, name=user_id, roles=roles)
        tokens[user_id] = make_token(user_id)
        registry.register(user_id, tokens[user_id])
    return tokens


def _messages_for(gateway, token):
    return [batch["message"] for batch in gateway.sent_batches if token in batch["tokens"]]


class TestTicketRaised:
    def test_alerts_every_ticket_role(self, gateway, audience):
        TicketEventsHandler().on_ticket_raised(_ticket_raised())

        for user_id in ("ops-1", "admin-1", "qc-1", "accounts-1"):
            messages = _messages_for(gateway, audience[user_id])
            assert len(messages) == 1
            assert messages[0]["notification"]["title"] == "🚨 HIGH PRIORITY: GRN Mismatch Ticket"
            assert messages[0]["data"]["type"] == "GRN_TICKET_CREATED"
            assert messages[0]["data"]["ticketNumber"] == "TKT-20260314-001-42"
            assert messages[0]["android"]["priority"] == "high"

    def test_alerts_vendor(self, gateway, audience):
        TicketEventsHandler().on_ticket_raised(_ticket_raised())

        messages = _messages_for(gateway, audience["vendor-user-1"])
        assert len(messages) == 1
        assert messages[0]["notification"]["title"] == "Quality Issue Reported"
        assert messages[0]["data"]["type"] == "VENDOR_QUALITY_ISSUE"
        assert messages[0]["webpush"]["fcm_options"]["link"] == "/tickets/ticket-001"

    def test_no_vendor_alert_without_vendor_user(self, gateway, audience):
        TicketEventsHandler().on_ticket_raised(_ticket_raised(vendor_user_id=None))
        assert _messages_for(gateway, audience["vendor-user-1"]) == []

    def test_assignee_is_told(self, gateway, audience):
        TicketEventsHandler().on_ticket_raised(_ticket_raised(assignee_id="ops-7"))

        titles = [m["notification"]["title"] for m in _messages_for(gateway, audience["ops-7"])]
        assert "Ticket Assigned to You" in titles

    @pytest.mark.parametrize(
        "priority, label",
        [("URGENT", "🔥 URGENT"), ("MEDIUM", "⚠️ MEDIUM"), ("LOW", "LOW")],
    )
    def test_title_reflects_priority(self, gateway, audience, priority, label):
        TicketEventsHandler().on_ticket_raised(_ticket_raised(priority=priority))

        messages = _messages_for(gateway, audience["ops-1"])
        assert messages[0]["notification"]["title"] == f"{label}: GRN Mismatch Ticket"

    def test_gateway_failure_is_swallowed(self, gateway, audience):
        gateway.configure(batch_error="push provider down")
        TicketEventsHandler().on_ticket_raised(_ticket_raised())

    def test_dispatcher_crash_is_swallowed(self, audience):
        class ExplodingDispatcher(NotificationDispatcher):
            def send_to_role(self, roles, payload, options=None):
                raise RuntimeError("directory unreachable")

        handler = TicketEventsHandler(dispatcher=ExplodingDispatcher(enabled=True))
        handler.on_ticket_raised(_ticket_raised())


class TestTicketAssigned:
    def test_urgent_for_high_priority(self, gateway, audience):
        TicketEventsHandler().on_ticket_assigned(
            TicketAssigned(
                ticket_id="ticket-001",
                ticket_number="TKT-20260314-001-42",
                title="GRN Mismatch",
                priority="HIGH",
                assignee_id="ops-7",
                assigned_by="ops-1",
                assigned_at=datetime.now(UTC),
            )
        )

        messages = _messages_for(gateway, audience["ops-7"])
        assert len(messages) == 1
        assert messages[0]["data"]["type"] == "TICKET_ASSIGNED"
        assert messages[0]["apns"]["headers"]["apns-priority"] == "10"

    def test_normal_for_low_priority(self, gateway, audience):
        TicketEventsHandler().on_ticket_assigned(
            TicketAssigned(
                ticket_id="ticket-001",
                ticket_number="TKT-20260314-001-42",
                title="GRN Mismatch",
                priority="LOW",
                assignee_id="ops-7",
                assigned_by="ops-1",
                assigned_at=datetime.now(UTC),
            )
        )

        messages = _messages_for(gateway, audience["ops-7"])
        assert messages[0]["apns"]["headers"]["apns-priority"] == "5"


class TestTicketStatusChanged:
    @pytest.mark.parametrize("status, title", [("RESOLVED", "Ticket Resolved"), ("CLOSED", "Ticket Closed")])
    def test_resolution_is_announced(self, gateway, audience, status, title):
        TicketEventsHandler().on_ticket_status_changed(_status_changed(status))

        for user_id in ("ops-1", "admin-1"):
            messages = _messages_for(gateway, audience[user_id])
            assert [m["notification"]["title"] for m in messages] == [title]
            assert messages[0]["data"]["type"] == "TICKET_STATUS_UPDATED"

        vendor = _messages_for(gateway, audience["vendor-user-1"])
        assert vendor[0]["notification"]["title"] == "Quality Issue Resolved"
        assert vendor[0]["data"]["type"] == "VENDOR_TICKET_RESOLVED"

    def test_qc_and_accounts_are_not_told(self, gateway, audience):
        TicketEventsHandler().on_ticket_status_changed(_status_changed("RESOLVED"))

        assert _messages_for(gateway, audience["qc-1"]) == []
        assert _messages_for(gateway, audience["accounts-1"]) == []

    @pytest.mark.parametrize("status", ["OPEN", "IN_PROGRESS"])
    def test_other_statuses_are_quiet(self, gateway, audience, status):
        TicketEventsHandler().on_ticket_status_changed(_status_changed(status))
        assert gateway.sent_batches == []
