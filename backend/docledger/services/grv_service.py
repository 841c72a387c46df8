# Overview: Service-layer operations for goods received vouchers; encapsulates business logic.

"""
GRV (Goods Received Voucher) Service

Document-first stock receiving from a supplier.

LIFECYCLE:
1. Draft: created, lines added/edited/removed
2. Posted: each line received into inventory (one IN movement per line)
3. Cancelled: from Draft (no inventory effect) or from Posted (each receipt
   reversed, last line first)

IMMUTABLE: once Posted, lines cannot change. Corrections are a cancel plus a
new GRV.

DESIGN:
- Supplier is required to post, optional while drafting
- Line item fields are snapshotted from the stock item when the line is added
- Inventory is received at the line's unit cost; discounts only affect the
  document's money totals
- A Posted GRV referenced by a non-voided supplier bill cannot be cancelled
"""

from __future__ import annotations

from flask import current_app

from ..errors import DocumentNotFound, InvalidTransition, ValidationError
from ..extensions import db
from ..models import GoodsReceivedVoucher, GRVLine, InventoryMovement, SupplierBill
from ..money import DISCOUNT_TYPES, grv_line_amounts, sum_grv_totals
from ..time_utils import utcnow
from ..validation import (
    clean_text,
    parse_datetime_field,
    require_amount_cents,
    require_choice,
    require_list,
    require_non_negative,
    require_positive,
)
from .concurrency import lock_for_update, run_with_retry
from .document_service import _next_number_for_inner
from .inventory_service import _receive_inner, _reverse_inner, get_stock_item, lock_stock_items
from .lifecycle_service import plan_transition
from .tenant_service import get_supplier


VARIANCE_REASONS = {"none", "damaged", "short_delivery", "wrong_item", "free_stock", "other"}
REFERENCE_TYPES = {"purchase_order", "delivery_note", "supplier_invoice", "other"}


def get_grv(tenant_id: int, grv_id: int, *, lock: bool = False) -> GoodsReceivedVoucher:
    query = db.session.query(GoodsReceivedVoucher).filter_by(tenant_id=tenant_id, id=grv_id)
    if lock:
        query = lock_for_update(query)
    grv = query.first()
    if grv is None:
        raise DocumentNotFound("GRV not found", {"grv_id": grv_id})
    return grv


def _recompute_totals(grv: GoodsReceivedVoucher) -> None:
    totals = sum_grv_totals(grv.lines)
    grv.subtotal_cents = totals["subtotal_cents"]
    grv.discount_total_cents = totals["discount_total_cents"]
    grv.vat_total_cents = totals["vat_total_cents"]
    grv.grand_total_cents = totals["grand_total_cents"]


def _apply_line_fields(line: GRVLine, payload: dict, *, default_cost: int) -> None:
    received_qty = require_positive(payload.get("received_qty", line.received_qty), "received_qty")
    ordered_raw = payload.get("ordered_qty", line.ordered_qty)
    ordered_qty = require_non_negative(ordered_raw if ordered_raw is not None else received_qty, "ordered_qty")
    unit_cost_raw = payload.get("unit_cost_cents", line.unit_cost_cents)
    unit_cost = require_amount_cents(unit_cost_raw if unit_cost_raw is not None else default_cost, "unit_cost_cents")
    discount_type = require_choice(
        payload.get("discount_type", line.discount_type or "none"), "discount_type", DISCOUNT_TYPES
    )
    discount_value = require_non_negative(payload.get("discount_value", line.discount_value or 0), "discount_value")
    variance_reason = require_choice(
        payload.get("variance_reason", line.variance_reason or "none"), "variance_reason", VARIANCE_REASONS
    )

    amounts = grv_line_amounts(
        received_qty,
        unit_cost,
        discount_type,
        discount_value,
        line.vat_rate_bps,
        line.is_vat_exempt,
    )

    line.received_qty = received_qty
    line.ordered_qty = ordered_qty
    line.unit_cost_cents = unit_cost
    line.discount_type = discount_type
    line.discount_value = discount_value
    line.variance_reason = variance_reason
    if "remarks" in payload:
        line.remarks = clean_text(payload.get("remarks"), "remarks", max_length=2000) or None
    line.discount_cents = amounts.discount_cents
    line.subtotal_cents = amounts.subtotal_cents
    line.vat_amount_cents = amounts.vat_amount_cents
    line.total_cents = amounts.total_cents


def _add_line_inner(grv: GoodsReceivedVoucher, payload: dict) -> GRVLine:
    if not isinstance(payload, dict):
        raise ValidationError("line must be an object")
    item = get_stock_item(grv.tenant_id, payload.get("stock_item_id"))
    if not item.is_active:
        raise ValidationError("Stock item is inactive", {"stock_item_id": item.id})

    next_no = max((l.line_no for l in grv.lines), default=0) + 1
    line = GRVLine(
        line_no=next_no,
        **item.snapshot(),
        ordered_qty=None,
        received_qty=None,
        unit_cost_cents=None,
        discount_type="none",
        discount_value=0,
        variance_reason="none",
    )
    _apply_line_fields(line, payload, default_cost=item.cost_price_cents)
    grv.lines.append(line)
    return line


def create_grv(
    tenant_id: int,
    *,
    supplier_id: int | None = None,
    reference_type: str | None = None,
    reference_number: str | None = None,
    received_at=None,
    notes: str | None = None,
    lines=None,
    user_id: int | None = None,
) -> GoodsReceivedVoucher:
    """Create a Draft GRV (optionally with lines). Numbered immediately."""
    received_dt = parse_datetime_field(received_at, "received_at") or utcnow()
    if reference_type is not None:
        require_choice(reference_type, "reference_type", REFERENCE_TYPES)
    line_payloads = require_list(lines, "lines")

    def _op() -> GoodsReceivedVoucher:
        supplier = get_supplier(tenant_id, supplier_id) if supplier_id else None
        grv = GoodsReceivedVoucher(
            tenant_id=tenant_id,
            grv_number=_next_number_for_inner(tenant_id, "grv", when=received_dt),
            supplier_id=supplier.id if supplier else None,
            supplier_snapshot=supplier.snapshot() if supplier else None,
            reference_type=reference_type,
            reference_number=clean_text(reference_number, "reference_number", max_length=128) or None,
            received_at=received_dt,
            status="Draft",
            notes=clean_text(notes, "notes", max_length=4000) or None,
            created_by_user_id=user_id,
        )
        db.session.add(grv)
        for payload in line_payloads:
            _add_line_inner(grv, payload)
        _recompute_totals(grv)
        db.session.commit()
        return grv

    return run_with_retry(_op)


def update_grv(tenant_id: int, grv_id: int, payload: dict) -> GoodsReceivedVoucher:
    """Edit Draft header fields (supplier, reference, received_at, notes)."""
    def _op() -> GoodsReceivedVoucher:
        grv = get_grv(tenant_id, grv_id, lock=True)
        plan_transition("grv", grv.status, "edit", document_id=grv.id)
        if "supplier_id" in payload:
            supplier = get_supplier(tenant_id, payload["supplier_id"])
            grv.supplier_id = supplier.id
            grv.supplier_snapshot = supplier.snapshot()
        if "reference_type" in payload:
            grv.reference_type = require_choice(payload["reference_type"], "reference_type", REFERENCE_TYPES)
        if "reference_number" in payload:
            grv.reference_number = clean_text(payload["reference_number"], "reference_number", max_length=128) or None
        if "received_at" in payload:
            grv.received_at = parse_datetime_field(payload["received_at"], "received_at") or grv.received_at
        if "notes" in payload:
            grv.notes = clean_text(payload["notes"], "notes", max_length=4000) or None
        db.session.commit()
        return grv

    return run_with_retry(_op)


def add_grv_line(tenant_id: int, grv_id: int, payload: dict) -> GoodsReceivedVoucher:
    def _op() -> GoodsReceivedVoucher:
        grv = get_grv(tenant_id, grv_id, lock=True)
        plan_transition("grv", grv.status, "edit", document_id=grv.id)
        _add_line_inner(grv, payload)
        _recompute_totals(grv)
        db.session.commit()
        return grv

    return run_with_retry(_op)


def _find_line(grv: GoodsReceivedVoucher, line_id) -> GRVLine:
    for line in grv.lines:
        if line.id == line_id:
            return line
    raise DocumentNotFound("GRV line not found", {"grv_id": grv.id, "line_id": line_id})


def update_grv_line(tenant_id: int, grv_id: int, line_id: int, payload: dict) -> GoodsReceivedVoucher:
    def _op() -> GoodsReceivedVoucher:
        grv = get_grv(tenant_id, grv_id, lock=True)
        plan_transition("grv", grv.status, "edit", document_id=grv.id)
        line = _find_line(grv, line_id)
        _apply_line_fields(line, payload, default_cost=line.unit_cost_cents)
        _recompute_totals(grv)
        db.session.commit()
        return grv

    return run_with_retry(_op)


def remove_grv_line(tenant_id: int, grv_id: int, line_id: int) -> GoodsReceivedVoucher:
    def _op() -> GoodsReceivedVoucher:
        grv = get_grv(tenant_id, grv_id, lock=True)
        plan_transition("grv", grv.status, "edit", document_id=grv.id)
        grv.lines.remove(_find_line(grv, line_id))
        _recompute_totals(grv)
        db.session.commit()
        return grv

    return run_with_retry(_op)


def post_grv(tenant_id: int, grv_id: int, *, user_id: int | None = None) -> GoodsReceivedVoucher:
    """
    Draft -> Posted.

    Receives every line into inventory in one unit of work: either every line
    gets its IN movement or none does.
    """
    def _op() -> GoodsReceivedVoucher:
        grv = get_grv(tenant_id, grv_id, lock=True)
        new_status = plan_transition("grv", grv.status, "post", document_id=grv.id)
        if not grv.supplier_id:
            raise ValidationError("GRV requires a supplier before posting", {"grv_id": grv.id})
        if not grv.lines:
            raise ValidationError("GRV requires at least one line before posting", {"grv_id": grv.id})

        items = lock_stock_items(tenant_id, [line.stock_item_id for line in grv.lines])
        for line in grv.lines:
            movement = _receive_inner(
                items[line.stock_item_id],
                line.received_qty,
                line.unit_cost_cents,
                source_type="GRV",
                source_id=grv.id,
                source_line_id=line.id,
                note=grv.grv_number,
                user_id=user_id,
            )
            line.inventory_movement_id = movement.id

        grv.status = new_status
        grv.posted_at = utcnow()
        grv.posted_by_user_id = user_id
        db.session.commit()
        current_app.logger.info("Posted %s (%s lines)", grv.grv_number, len(grv.lines))
        return grv

    return run_with_retry(_op)


def cancel_grv(
    tenant_id: int,
    grv_id: int,
    *,
    reason: str | None = None,
    user_id: int | None = None,
) -> GoodsReceivedVoucher:
    """
    Draft -> Cancelled (no inventory effect) or Posted -> Cancelled.

    Posted: reverses each line's receipt, last line first. If any reversal
    had to be flagged, the GRV is marked requires_review.
    """
    def _op() -> GoodsReceivedVoucher:
        grv = get_grv(tenant_id, grv_id, lock=True)
        was_posted = grv.status == "Posted"
        new_status = plan_transition("grv", grv.status, "cancel", document_id=grv.id)

        if was_posted:
            if grv.billed_by_bill_id is not None:
                bill = db.session.get(SupplierBill, grv.billed_by_bill_id)
                if bill is not None and bill.status != "Voided":
                    raise InvalidTransition(
                        "GRV is referenced by a supplier bill; void the bill first",
                        kind="grv",
                        document_id=grv.id,
                        action="cancel",
                        current_status=grv.status,
                        details={"bill_id": bill.id, "bill_number": bill.bill_number},
                    )

            items = lock_stock_items(tenant_id, [line.stock_item_id for line in grv.lines])
            flagged = False
            for line in reversed(grv.lines):
                if line.inventory_movement_id is None:
                    continue
                original = db.session.get(InventoryMovement, line.inventory_movement_id)
                reversal = _reverse_inner(
                    tenant_id,
                    original,
                    items[line.stock_item_id],
                    source_id=grv.id,
                    note=f"Cancel {grv.grv_number}",
                    user_id=user_id,
                )
                flagged = flagged or reversal.needs_review
            grv.requires_review = flagged

        grv.status = new_status
        grv.cancelled_at = utcnow()
        grv.cancelled_by_user_id = user_id
        grv.cancellation_reason = clean_text(reason, "reason", max_length=2000) or None
        db.session.commit()
        if grv.requires_review:
            current_app.logger.warning("Cancelled %s requires manual stock review", grv.grv_number)
        return grv

    return run_with_retry(_op)


def list_unbilled_grvs(tenant_id: int, supplier_id: int) -> list[GoodsReceivedVoucher]:
    """Posted GRVs for a supplier not linked to a live bill, newest first."""
    get_supplier(tenant_id, supplier_id)
    return (
        GoodsReceivedVoucher.query.filter_by(
            tenant_id=tenant_id,
            supplier_id=supplier_id,
            status="Posted",
            billed_by_bill_id=None,
        )
        .order_by(GoodsReceivedVoucher.received_at.desc(), GoodsReceivedVoucher.id.desc())
        .all()
    )
