"""GoodsReceipt domain events."""

from protean.fields import DateTime, Identifier, Integer, String

from receiving.domain import receiving


@receiving.event(part_of="GoodsReceipt")
class GoodsReceived:
    """Goods were received at the dock against a dispatch."""

    __version__ = 1

    goods_receipt_id = Identifier(required=True)
    grn_number = String(required=True)
    dispatch_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    line_count = Integer(required=True)
    received_at = DateTime(required=True)


@receiving.event(part_of="GoodsReceipt")
class GoodsReceiptVerified:
    """A goods receipt was verified and moved to a terminal status."""

    __version__ = 1

    goods_receipt_id = Identifier(required=True)
    grn_number = String(required=True)
    status = String(required=True)
    mismatch_count = Integer(required=True)
    verified_by = Identifier(required=True)
    verified_at = DateTime(required=True)
