"""Goods receipt verification: command and handler.

The handler is the atomic boundary of the receiving flow. Within one unit
of work it settles the receipt and its lines and, when anything is off,
opens the ticket with its summary comment. If any step raises, nothing is
committed and the receipt stays pending.

Notifying people about the ticket is not done here. The ticket's
TicketRaised event carries that out of the transaction.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain
from shared.errors import InvalidStateError

from receiving.domain import receiving
from receiving.goods_receipt.goods_receipt import GoodsReceipt
from receiving.ticket.content import build_description, build_mismatch_summary, build_title
from receiving.ticket.numbering import TicketNumberGenerator, issued_numbers
from receiving.ticket.priority import compute_priority, total_critical_quantity
from receiving.ticket.ticket import Ticket

logger = structlog.get_logger(__name__)


@receiving.command(part_of="GoodsReceipt")
class VerifyGoodsReceipt:
    """Verify counted quantities for every line of a pending goods receipt."""

    goods_receipt_id = Identifier(required=True)
    lines = Text(required=True)  # JSON list of per-line results
    verified_by = Identifier(required=True)
    remarks = Text()
    assignee_id = Identifier()


@receiving.command_handler(part_of=GoodsReceipt)
class VerifyGoodsReceiptHandler:
    @handle(VerifyGoodsReceipt)
    def verify_goods_receipt(self, command):
        line_results = json.loads(command.lines) if isinstance(command.lines, str) else command.lines

        grn_repo = current_domain.repository_for(GoodsReceipt)
        ticket_repo = current_domain.repository_for(Ticket)

        grn = grn_repo.get(command.goods_receipt_id)
        mismatched = grn.verify(
            line_results=line_results,
            verified_by=command.verified_by,
            remarks=command.remarks,
        )

        ticket = None
        if mismatched:
            if ticket_repo.find_by_goods_receipt(grn.id) is not None:
                raise InvalidStateError({"ticket": [f"Goods receipt {grn.grn_number} already has a ticket"]})

            generator = TicketNumberGenerator(
                is_taken=ticket_repo.ticket_number_taken,
                last_sequence=ticket_repo.last_sequence_for,
                claim=issued_numbers.claim,
            )
            ticket_number = generator.generate()
            priority = compute_priority(mismatched)

            ticket = Ticket.raise_for(
                goods_receipt=grn,
                ticket_number=ticket_number,
                sequence_date=ticket_number.split("-")[1],
                title=build_title(grn),
                description=build_description(grn, mismatched),
                priority=priority,
                summary=build_mismatch_summary(mismatched),
                created_by=command.verified_by,
                assignee_id=command.assignee_id,
            )

            logger.info(
                "Ticket raised for goods receipt mismatch",
                goods_receipt_id=str(grn.id),
                ticket_number=ticket_number,
                priority=priority.value,
                mismatch_count=len(mismatched),
                total_critical_qty=total_critical_quantity(mismatched),
            )

        grn_repo.add(grn)
        if ticket is not None:
            ticket_repo.add(ticket)

        return {
            "goods_receipt_id": str(grn.id),
            "ticket_id": str(ticket.id) if ticket is not None else None,
        }
