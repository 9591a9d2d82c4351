"""Goods receipt creation: command and handler."""

import json

from protean import handle
from protean.fields import DateTime, Identifier, Text
from protean.utils.globals import current_domain

from receiving.domain import receiving
from receiving.goods_receipt.goods_receipt import GoodsReceipt


@receiving.command(part_of="GoodsReceipt")
class ReceiveGoods:
    """Record goods that arrived at the dock against a vendor dispatch."""

    dispatch_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    vendor_user_id = Identifier()
    lines = Text(required=True)  # JSON list of line dicts
    received_at = DateTime()


@receiving.command_handler(part_of=GoodsReceipt)
class ReceiveGoodsHandler:
    @handle(ReceiveGoods)
    def receive_goods(self, command):
        lines_data = json.loads(command.lines) if isinstance(command.lines, str) else command.lines
        grn = GoodsReceipt.receive(
            dispatch_id=command.dispatch_id,
            vendor_id=command.vendor_id,
            lines_data=lines_data,
            vendor_user_id=command.vendor_user_id,
            received_at=command.received_at,
        )
        current_domain.repository_for(GoodsReceipt).add(grn)
        return str(grn.id)
