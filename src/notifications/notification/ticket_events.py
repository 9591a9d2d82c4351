"""Inbound cross-domain event handler: Notifications reacts to Receiving ticket events.

Listens for TicketRaised (alert operations roles, the vendor, and any
assignee), TicketAssigned (tell the assignee), and TicketStatusChanged
(announce resolutions). Delivery problems are logged and never propagate:
the ticket already exists whether or not anyone was told about it.
"""

import structlog
from notifications import config
from notifications.domain import notifications
from notifications.notification.dispatcher import NotificationDispatcher
from notifications.notification.notification import NotificationRecord
from notifications.notification.payload import NotificationPayload, NotificationPriority
from protean.utils.mixins import handle
from shared.events.receiving import TicketAssigned, TicketRaised, TicketStatusChanged

logger = structlog.get_logger(__name__)

notifications.register_external_event(TicketRaised, "Receiving.TicketRaised.v1")
notifications.register_external_event(TicketAssigned, "Receiving.TicketAssigned.v1")
notifications.register_external_event(TicketStatusChanged, "Receiving.TicketStatusChanged.v1")

PRIORITY_LABELS = {
    "URGENT": "🔥 URGENT",
    "HIGH": "🚨 HIGH PRIORITY",
    "MEDIUM": "⚠️ MEDIUM",
    "LOW": "LOW",
}

_RESOLVED_STATUSES = {"RESOLVED", "CLOSED"}


def _ticket_link(ticket_id) -> str:
    return f"/tickets/{ticket_id}"


def _deliver(description: str, send, **context) -> dict | None:
    """Run one send, logging instead of raising when it blows up."""
    try:
        result = send()
    except Exception as exc:
        logger.error(f"Failed to send {description}", error=str(exc), **context)
        return None

    if not result.get("success", False):
        logger.warning(f"{description.capitalize()} not fully delivered", **context)
    return result


@notifications.event_handler(part_of=NotificationRecord, stream_category="receiving::ticket")
class TicketEventsHandler:
    """Sends push notifications about goods-receipt tickets."""

    def __init__(self, dispatcher: NotificationDispatcher | None = None):
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> NotificationDispatcher:
        if self._dispatcher is None:
            self._dispatcher = NotificationDispatcher()
        return self._dispatcher

    @handle(TicketRaised)
    def on_ticket_raised(self, event: TicketRaised) -> None:
        ticket_id = str(event.ticket_id)
        label = PRIORITY_LABELS.get(event.priority, event.priority)
        data = {
            "ticketId": ticket_id,
            "ticketNumber": event.ticket_number,
            "goodsReceiptId": str(event.goods_receipt_id),
            "grnNumber": event.grn_number,
            "priority": event.priority,
        }

        staff_alert = NotificationPayload(
            title=f"{label}: GRN Mismatch Ticket",
            body=(
                f"Ticket {event.ticket_number} raised for {event.grn_number}: "
                f"{event.mismatch_count} item(s) need attention."
            ),
            priority=NotificationPriority.URGENT.value,
            data={**data, "type": "GRN_TICKET_CREATED"},
            click_action=_ticket_link(ticket_id),
        )
        _deliver(
            "ticket alert to staff roles",
            lambda: self.dispatcher.send_to_role(config.TICKET_ALERT_ROLES, staff_alert),
            ticket_number=event.ticket_number,
        )

        if event.vendor_user_id:
            vendor_alert = NotificationPayload(
                title="Quality Issue Reported",
                body=(
                    f"Goods receipt {event.grn_number} has {event.mismatch_count} item(s) with issues. "
                    f"Ticket {event.ticket_number} needs your response."
                ),
                priority=NotificationPriority.URGENT.value,
                data={**data, "type": "VENDOR_QUALITY_ISSUE"},
                click_action=_ticket_link(ticket_id),
            )
            _deliver(
                "ticket alert to vendor",
                lambda: self.dispatcher.send_to_user(event.vendor_user_id, vendor_alert),
                ticket_number=event.ticket_number,
                vendor_user_id=str(event.vendor_user_id),
            )

        if event.assignee_id:
            self._notify_assignee(
                assignee_id=event.assignee_id,
                ticket_id=ticket_id,
                ticket_number=event.ticket_number,
                title=event.title,
                priority=event.priority,
            )

        logger.info("Ticket raised notifications processed", ticket_number=event.ticket_number)

    @handle(TicketAssigned)
    def on_ticket_assigned(self, event: TicketAssigned) -> None:
        self._notify_assignee(
            assignee_id=event.assignee_id,
            ticket_id=str(event.ticket_id),
            ticket_number=event.ticket_number,
            title=event.title,
            priority=event.priority,
        )

    @handle(TicketStatusChanged)
    def on_ticket_status_changed(self, event: TicketStatusChanged) -> None:
        if event.new_status not in _RESOLVED_STATUSES:
            logger.debug(
                "Ticket status change needs no notification",
                ticket_number=event.ticket_number,
                new_status=event.new_status,
            )
            return

        ticket_id = str(event.ticket_id)
        verb = event.new_status.lower()
        data = {
            "ticketId": ticket_id,
            "ticketNumber": event.ticket_number,
            "status": event.new_status,
        }

        staff_update = NotificationPayload(
            title=f"Ticket {verb.capitalize()}",
            body=f"Ticket {event.ticket_number} was marked as {verb}.",
            priority=NotificationPriority.NORMAL.value,
            data={**data, "type": "TICKET_STATUS_UPDATED"},
            click_action=_ticket_link(ticket_id),
        )
        _deliver(
            "ticket status update to staff roles",
            lambda: self.dispatcher.send_to_role(config.TICKET_RESOLUTION_ROLES, staff_update),
            ticket_number=event.ticket_number,
        )

        if event.vendor_user_id:
            vendor_update = NotificationPayload(
                title="Quality Issue Resolved",
                body=f"Ticket {event.ticket_number} has been {verb}. Thank you for your cooperation.",
                priority=NotificationPriority.NORMAL.value,
                data={**data, "type": "VENDOR_TICKET_RESOLVED"},
                click_action=_ticket_link(ticket_id),
            )
            _deliver(
                "ticket status update to vendor",
                lambda: self.dispatcher.send_to_user(event.vendor_user_id, vendor_update),
                ticket_number=event.ticket_number,
                vendor_user_id=str(event.vendor_user_id),
            )

    def _notify_assignee(self, assignee_id, ticket_id, ticket_number, title, priority) -> None:
        payload = NotificationPayload(
            title="Ticket Assigned to You",
            body=f"{ticket_number}: {title}",
            priority=(
                NotificationPriority.URGENT.value
                if priority in ("URGENT", "HIGH")
                else NotificationPriority.NORMAL.value
            ),
            data={"type": "TICKET_ASSIGNED", "ticketId": ticket_id, "ticketNumber": ticket_number},
            click_action=_ticket_link(ticket_id),
        )
        _deliver(
            "ticket assignment notice",
            lambda: self.dispatcher.send_to_user(assignee_id, payload),
            ticket_number=ticket_number,
            assignee_id=str(assignee_id),
        )
