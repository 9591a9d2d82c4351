"""In-process entry points for the receiving flow.

Upstream business code (HTTP handlers, jobs) calls these inside an active
``receiving`` domain context. Typed failures come back in the result
instead of being raised:

    InvalidStateError     receipt already verified, or ticket transition refused
    ObjectNotFoundError   unknown receipt, line, or ticket
    ValidationError       malformed quantities or input
    InfrastructureError   anything else, typically the store failing mid-write
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain
from shared.errors import InfrastructureError, InvalidStateError
from shared.logging import bind_request_context, clear_request_context

from receiving.goods_receipt.goods_receipt import GoodsReceipt
from receiving.goods_receipt.receipt import ReceiveGoods
from receiving.goods_receipt.verification import VerifyGoodsReceipt
from receiving.ticket.management import AssignTicket, ChangeTicketStatus
from receiving.ticket.ticket import Ticket

logger = structlog.get_logger(__name__)

VERIFICATION_FAILED_MESSAGE = "Failed to process GRN verification"
TICKET_UPDATE_FAILED_MESSAGE = "Failed to update ticket"


def _failure(message: str, error: Exception, **extra) -> dict:
    return {"success": False, "message": message, "error": error, **extra}


def receive_goods(
    dispatch_id: str,
    vendor_id: str,
    lines: list[dict],
    vendor_user_id: str | None = None,
) -> str:
    """Record a pending goods receipt and return its id."""
    return current_domain.process(
        ReceiveGoods(
            dispatch_id=dispatch_id,
            vendor_id=vendor_id,
            vendor_user_id=vendor_user_id,
            lines=json.dumps(lines),
        ),
        asynchronous=False,
    )


def process_grn_verification(
    goods_receipt_id: str,
    lines: list[dict],
    verified_by: str,
    remarks: str | None = None,
    assignee_id: str | None = None,
) -> dict:
    """Verify a pending goods receipt, raising a ticket when lines mismatch.

    Returns ``{success, grn, ticket, message}``. On failure ``grn`` is the
    receipt as currently stored (still pending unless someone else verified
    it first), ``ticket`` is None, and ``error`` holds the typed exception.
    """
    bind_request_context(goods_receipt_id=str(goods_receipt_id), verified_by=str(verified_by))
    try:
        outcome = current_domain.process(
            VerifyGoodsReceipt(
                goods_receipt_id=goods_receipt_id,
                lines=json.dumps(lines),
                verified_by=verified_by,
                remarks=remarks,
                assignee_id=assignee_id,
            ),
            asynchronous=False,
        )
    except InvalidStateError as exc:
        logger.warning("Goods receipt verification rejected", reason=str(exc))
        return _failure(_first_message(exc), exc, grn=_current_grn(goods_receipt_id), ticket=None)
    except ObjectNotFoundError as exc:
        logger.warning("Goods receipt verification target not found", reason=str(exc))
        return _failure(_first_message(exc), exc, grn=None, ticket=None)
    except ValidationError as exc:
        logger.warning("Goods receipt verification input invalid", reason=str(exc))
        return _failure(_first_message(exc), exc, grn=_current_grn(goods_receipt_id), ticket=None)
    except Exception as exc:
        logger.exception("Goods receipt verification failed", error=str(exc))
        return _failure(
            VERIFICATION_FAILED_MESSAGE,
            InfrastructureError(str(exc), cause=exc),
            grn=None,
            ticket=None,
        )
    finally:
        clear_request_context()

    grn = current_domain.repository_for(GoodsReceipt).get(outcome["goods_receipt_id"])
    ticket = None
    if outcome["ticket_id"]:
        ticket = current_domain.repository_for(Ticket).get(outcome["ticket_id"])

    if ticket is not None:
        message = f"GRN verified with mismatches. Ticket {ticket.ticket_number} created automatically."
    else:
        message = "GRN verified successfully with no issues."

    return {
        "success": True,
        "grn": grn.to_dict(),
        "ticket": ticket.to_dict() if ticket is not None else None,
        "message": message,
    }


def update_ticket_status(
    ticket_id: str,
    new_status: str,
    actor_id: str,
    comment: str | None = None,
) -> dict:
    """Move a ticket to ``new_status``. Returns ``{success, ticket, message}``."""
    try:
        current_domain.process(
            ChangeTicketStatus(ticket_id=ticket_id, new_status=new_status, changed_by=actor_id, note=comment),
            asynchronous=False,
        )
    except ObjectNotFoundError as exc:
        return _failure(_first_message(exc), exc, ticket=None)
    except ValidationError as exc:
        logger.warning("Ticket status change rejected", ticket_id=str(ticket_id), reason=str(exc))
        return _failure(_first_message(exc), exc, ticket=_current_ticket(ticket_id))
    except Exception as exc:
        logger.exception("Ticket status change failed", ticket_id=str(ticket_id), error=str(exc))
        return _failure(TICKET_UPDATE_FAILED_MESSAGE, InfrastructureError(str(exc), cause=exc), ticket=None)

    ticket = current_domain.repository_for(Ticket).get(ticket_id)
    logger.info("Ticket status updated", ticket_number=ticket.ticket_number, status=ticket.status)
    return {
        "success": True,
        "ticket": ticket.to_dict(),
        "message": f"Ticket {ticket.ticket_number} is now {ticket.status}",
    }


def assign_ticket(ticket_id: str, assignee_id: str, actor_id: str) -> dict:
    try:
        current_domain.process(
            AssignTicket(ticket_id=ticket_id, assignee_id=assignee_id, assigned_by=actor_id),
            asynchronous=False,
        )
    except ObjectNotFoundError as exc:
        return _failure(_first_message(exc), exc, ticket=None)
    except ValidationError as exc:
        return _failure(_first_message(exc), exc, ticket=_current_ticket(ticket_id))
    except Exception as exc:
        logger.exception("Ticket assignment failed", ticket_id=str(ticket_id), error=str(exc))
        return _failure(TICKET_UPDATE_FAILED_MESSAGE, InfrastructureError(str(exc), cause=exc), ticket=None)

    ticket = current_domain.repository_for(Ticket).get(ticket_id)
    return {
        "success": True,
        "ticket": ticket.to_dict(),
        "message": f"Ticket {ticket.ticket_number} assigned",
    }


def get_ticket_by_goods_receipt_id(goods_receipt_id: str) -> dict | None:
    ticket = current_domain.repository_for(Ticket).find_by_goods_receipt(goods_receipt_id)
    return ticket.to_dict() if ticket is not None else None


def _first_message(exc: ValidationError | ObjectNotFoundError) -> str:
    messages = getattr(exc, "messages", None) or str(exc)
    if isinstance(messages, dict):
        for value in messages.values():
            if isinstance(value, list) and value:
                return str(value[0])
            if value:
                return str(value)
    return str(messages)


def _current_grn(goods_receipt_id: str) -> dict | None:
    try:
        return current_domain.repository_for(GoodsReceipt).get(goods_receipt_id).to_dict()
    except ObjectNotFoundError:
        return None


def _current_ticket(ticket_id: str) -> dict | None:
    try:
        return current_domain.repository_for(Ticket).get(ticket_id).to_dict()
    except ObjectNotFoundError:
        return None
