"""Shared BDD fixtures and step definitions for the Receiving domain."""

from protean import current_domain
from pytest_bdd import given, parsers, then, when
from receiving.goods_receipt.goods_receipt import GoodsReceipt
from receiving.services import get_ticket_by_goods_receipt_id, process_grn_verification, receive_goods
from receiving.ticket.ticket import Ticket


def _verify(goods_receipt_id, received, damaged=False):
    grn = current_domain.repository_for(GoodsReceipt).get(goods_receipt_id)
    line = grn.lines[0]
    return process_grn_verification(
        goods_receipt_id,
        [{"line_id": str(line.id), "received_qty": received, "damage_reported": damaged}],
        verified_by="operator-bdd",
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse("a pending goods receipt with a line of {confirmed:d} confirmed units"),
    target_fixture="goods_receipt_id",
)
def pending_goods_receipt(confirmed):
    return receive_goods(
        dispatch_id="dispatch-bdd",
        vendor_id="vendor-bdd",
        lines=[{"assignment_item_id": "item-bdd", "product_name": "Seed trays", "assigned_qty": confirmed}],
        vendor_user_id="vendor-user-bdd",
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse("the operator verifies {received:d} units received"),
    target_fixture="verification",
)
@when(
    parsers.cfparse("the operator verifies {received:d} units received"),
    target_fixture="verification",
)
def verify_received(goods_receipt_id, received):
    return _verify(goods_receipt_id, received)


@when(
    parsers.cfparse("the operator verifies {received:d} units received with damage"),
    target_fixture="verification",
)
def verify_received_with_damage(goods_receipt_id, received):
    return _verify(goods_receipt_id, received, damaged=True)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the goods receipt status is "{status}"'))
def goods_receipt_status_is(goods_receipt_id, status):
    grn = current_domain.repository_for(GoodsReceipt).get(goods_receipt_id)
    assert grn.status == status


@then(parsers.cfparse('the line status is "{status}" with a discrepancy of {discrepancy:d}'))
def line_status_is(goods_receipt_id, status, discrepancy):
    line = current_domain.repository_for(GoodsReceipt).get(goods_receipt_id).lines[0]
    assert line.status == status
    assert line.discrepancy_qty == discrepancy


@then("no ticket is raised")
def no_ticket_raised(goods_receipt_id, verification):
    assert verification["ticket"] is None
    assert get_ticket_by_goods_receipt_id(goods_receipt_id) is None


@then(parsers.cfparse('a ticket is raised with priority "{priority}"'))
def ticket_raised_with_priority(goods_receipt_id, verification, priority):
    assert verification["success"] is True
    ticket = get_ticket_by_goods_receipt_id(goods_receipt_id)
    assert ticket is not None
    assert ticket["priority"] == priority
    assert ticket["status"] == "OPEN"


@then("the verification fails")
def verification_fails(verification):
    assert verification["success"] is False
    assert verification["error"] is not None


@then("exactly one ticket exists for the goods receipt")
def exactly_one_ticket(goods_receipt_id):
    tickets = current_domain.repository_for(Ticket)._dao.query.filter(goods_receipt_id=goods_receipt_id).all().items
    assert len(tickets) == 1
