"""Ticket title, description, and mismatch summary text."""

from collections import defaultdict

from receiving.goods_receipt.classification import LineStatus

_STATUS_ORDER = [
    LineStatus.DAMAGE_REPORTED,
    LineStatus.SHORTAGE_REPORTED,
    LineStatus.QUANTITY_MISMATCH,
    LineStatus.EXCESS_RECEIVED,
]


def _label(line) -> str:
    return line.product_name or line.sku or str(line.assignment_item_id)


def build_title(goods_receipt) -> str:
    return f"GRN Mismatch - {goods_receipt.grn_number} ({goods_receipt.dispatch_id})"


def build_description(goods_receipt, mismatched_lines) -> str:
    """Operator-facing description listing every line that did not verify cleanly."""
    out = [
        f"Goods receipt {goods_receipt.grn_number} for dispatch {goods_receipt.dispatch_id} "
        f"has {len(mismatched_lines)} item(s) with issues.",
        "",
        "Mismatch details:",
    ]

    for index, line in enumerate(mismatched_lines, start=1):
        out.append(f"{index}. {_label(line)}")
        out.append(f"   - Assigned: {line.assigned_qty} units")
        out.append(f"   - Confirmed: {line.confirmed_qty} units")
        out.append(f"   - Received: {line.received_qty} units")
        out.append(f"   - Discrepancy: {line.discrepancy_qty:+d} units")
        out.append(f"   - Status: {line.status}")
        if line.damage_reported:
            out.append(f"   - Damage: {line.damage_description or 'reported'}")
        if line.item_remarks:
            out.append(f"   - Remarks: {line.item_remarks}")

    if goods_receipt.operator_remarks:
        out += ["", f"Operator remarks: {goods_receipt.operator_remarks}"]

    out += [
        "",
        "Action Required:",
        "- Review the discrepancies with the vendor",
        "- Coordinate replacement or credit for short and damaged items",
        "- Decide whether excess stock is kept or returned",
        "- Update inventory records once resolved",
    ]
    return "\n".join(out)


def build_mismatch_summary(mismatched_lines) -> str:
    """System comment text: mismatches grouped by status."""
    grouped = defaultdict(list)
    for line in mismatched_lines:
        grouped[LineStatus(line.status)].append(line)

    out = ["Mismatch Summary:", ""]
    for status in _STATUS_ORDER:
        lines = grouped.get(status)
        if not lines:
            continue
        out.append(f"{status.value}: {len(lines)} item(s)")
        for line in lines:
            out.append(f"  - {_label(line)}")
            out.append(f"    Discrepancy: {line.discrepancy_qty:+d} units")
            if line.item_remarks:
                out.append(f"    Remarks: {line.item_remarks}")
        out.append("")

    out.append(f"Total items with issues: {len(mismatched_lines)}")
    out.append("Requires vendor coordination and resolution.")
    return "\n".join(out)
