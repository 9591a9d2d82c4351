"""GoodsReceipt aggregate (CQRS): what physically arrived against a dispatch.

A goods receipt (GRN) is recorded when a vendor dispatch reaches the dock,
one line per assigned order item. Verification counts each line, classifies
it, and moves the receipt to a terminal status exactly once.

State Machine:
    PENDING_VERIFICATION → VERIFIED_OK
    PENDING_VERIFICATION → PARTIALLY_VERIFIED
    PENDING_VERIFICATION → VERIFIED_MISMATCH
"""

from datetime import UTC, datetime
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text
from shared.errors import InvalidStateError

from receiving.domain import receiving
from receiving.goods_receipt.classification import (
    GoodsReceiptStatus,
    LineStatus,
    aggregate_status,
    classify_line,
    discrepancy_matches_status,
    validate_quantity,
)
from receiving.goods_receipt.events import GoodsReceived, GoodsReceiptVerified


def generate_grn_number(now: datetime) -> str:
    return f"GRN-{int(now.timestamp() * 1000)}-{uuid4().hex[:4].upper()}"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@receiving.entity(part_of="GoodsReceipt")
class GoodsReceiptLine:
    """One assigned order item as counted at the dock.

    ``status`` stays empty until the receipt is verified.
    """

    assignment_item_id = Identifier(required=True)
    sku = String(max_length=100)
    product_name = String(max_length=255)
    assigned_qty = Integer(required=True, min_value=0)
    confirmed_qty = Integer(required=True, min_value=0)
    received_qty = Integer(min_value=0)
    discrepancy_qty = Integer(default=0)
    status = String(max_length=50, choices=LineStatus)
    damage_reported = Boolean(default=False)
    damage_description = String(max_length=1000)
    item_remarks = String(max_length=1000)

    @invariant.post
    def discrepancy_agrees_with_status(self):
        if self.status is None:
            return
        if not discrepancy_matches_status(self.status, self.discrepancy_qty or 0, self.damage_reported):
            raise ValidationError(
                {"discrepancy_qty": [f"Discrepancy {self.discrepancy_qty} is inconsistent with status {self.status}"]}
            )

    @property
    def is_mismatch(self) -> bool:
        return self.status is not None and LineStatus(self.status) != LineStatus.VERIFIED_OK


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@receiving.aggregate
class GoodsReceipt:
    grn_number = String(required=True, max_length=50, unique=True)
    dispatch_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    vendor_user_id = Identifier()
    status = String(
        max_length=50,
        choices=GoodsReceiptStatus,
        default=GoodsReceiptStatus.PENDING_VERIFICATION.value,
    )
    operator_remarks = Text()
    verified_by = Identifier()
    lines = HasMany(GoodsReceiptLine)
    received_at = DateTime()
    verified_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def verified_receipt_records_verifier(self):
        if self.status == GoodsReceiptStatus.PENDING_VERIFICATION.value:
            return
        if not self.verified_by or self.verified_at is None:
            raise ValidationError({"verified_by": ["A verified goods receipt must record who verified it and when"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def receive(
        cls,
        dispatch_id: str,
        vendor_id: str,
        lines_data: list[dict],
        vendor_user_id: str | None = None,
        received_at: datetime | None = None,
    ):
        """Record goods received against a dispatch, pending verification.

        Each entry in ``lines_data`` needs ``assignment_item_id`` and
        ``assigned_qty``. ``confirmed_qty`` defaults to the assigned quantity.
        """
        if not lines_data:
            raise ValidationError({"lines": ["A goods receipt needs at least one line"]})

        now = datetime.now(UTC)
        grn = cls(
            grn_number=generate_grn_number(now),
            dispatch_id=dispatch_id,
            vendor_id=vendor_id,
            vendor_user_id=vendor_user_id,
            status=GoodsReceiptStatus.PENDING_VERIFICATION.value,
            received_at=received_at or now,
            created_at=now,
            updated_at=now,
        )

        for line_data in lines_data:
            assigned_qty = validate_quantity("assigned_qty", line_data.get("assigned_qty"))
            confirmed_qty = line_data.get("confirmed_qty")
            if confirmed_qty is None:
                confirmed_qty = assigned_qty
            validate_quantity("confirmed_qty", confirmed_qty)

            grn.add_lines(
                GoodsReceiptLine(
                    assignment_item_id=line_data["assignment_item_id"],
                    sku=line_data.get("sku"),
                    product_name=line_data.get("product_name"),
                    assigned_qty=assigned_qty,
                    confirmed_qty=confirmed_qty,
                )
            )

        grn.raise_(
            GoodsReceived(
                goods_receipt_id=str(grn.id),
                grn_number=grn.grn_number,
                dispatch_id=dispatch_id,
                vendor_id=vendor_id,
                line_count=len(lines_data),
                received_at=grn.received_at,
            )
        )
        return grn

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_pending(self) -> bool:
        return GoodsReceiptStatus(self.status) == GoodsReceiptStatus.PENDING_VERIFICATION

    @property
    def mismatched_lines(self) -> list[GoodsReceiptLine]:
        return [line for line in (self.lines or []) if line.is_mismatch]

    # -------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------
    def verify(
        self,
        line_results: list[dict],
        verified_by: str,
        remarks: str | None = None,
        verified_at: datetime | None = None,
    ) -> list[GoodsReceiptLine]:
        """Apply counted quantities to every line and settle the receipt status.

        Each entry in ``line_results`` carries ``line_id``, ``received_qty``
        and optionally ``damage_reported``, ``damage_description``,
        ``remarks`` and ``shortage_status``. Every line of the receipt must be
        reported exactly once.

        Returns the lines that did not verify cleanly.
        """
        if not self.is_pending:
            raise InvalidStateError(
                {"status": [f"Goods receipt {self.grn_number} is already {self.status} and cannot be re-verified"]}
            )

        lines_by_id = {str(line.id): line for line in (self.lines or [])}
        results_by_id = {}
        for result in line_results:
            line_id = str(result["line_id"])
            if line_id not in lines_by_id:
                raise ObjectNotFoundError({"_entity": f"Line {line_id} does not belong to goods receipt {self.grn_number}"})
            if line_id in results_by_id:
                raise ValidationError({"lines": [f"Line {line_id} was reported more than once"]})
            results_by_id[line_id] = result

        unreported = [line_id for line_id in lines_by_id if line_id not in results_by_id]
        if unreported:
            raise ValidationError({"lines": [f"{len(unreported)} line(s) were not verified"]})

        # Classify everything before touching state so a bad line leaves the receipt untouched
        classified = {}
        for line_id, result in results_by_id.items():
            line = lines_by_id[line_id]
            status, discrepancy = classify_line(
                confirmed_qty=line.confirmed_qty,
                received_qty=result.get("received_qty"),
                damage_reported=bool(result.get("damage_reported", False)),
                shortage_status=result.get("shortage_status"),
            )
            classified[line_id] = (status, discrepancy)

        for line_id, (status, discrepancy) in classified.items():
            line = lines_by_id[line_id]
            result = results_by_id[line_id]
            # Status is assigned last so the line invariant sees a complete picture
            line.damage_reported = bool(result.get("damage_reported", False))
            line.damage_description = result.get("damage_description")
            line.item_remarks = result.get("remarks")
            line.received_qty = result["received_qty"]
            line.discrepancy_qty = discrepancy
            line.status = status.value

        now = verified_at or datetime.now(UTC)
        new_status = aggregate_status(status for status, _ in classified.values())

        with atomic_change(self):
            self.status = new_status.value
            self.verified_by = verified_by
            self.verified_at = now
            self.operator_remarks = remarks
            self.updated_at = now

        mismatched = self.mismatched_lines
        self.raise_(
            GoodsReceiptVerified(
                goods_receipt_id=str(self.id),
                grn_number=self.grn_number,
                status=self.status,
                mismatch_count=len(mismatched),
                verified_by=verified_by,
                verified_at=now,
            )
        )
        return mismatched
