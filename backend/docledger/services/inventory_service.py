# Overview: Service-layer operations for inventory; weighted-average cost ledger over stock items.

"""
Inventory Valuation Ledger (authoritative)

Canonical time handling:
- All internal datetimes are UTC-naive (tzinfo=None).

Inventory model:
- StockItem carries the running position (on_hand, reserved, average_cost_cents).
- Every change to on_hand or cost is mirrored by exactly one append-only
  InventoryMovement row holding before/after snapshots.
- Only this module writes on_hand, average_cost_cents and cost_price_cents.
- Direct receive/consume/reverse is limited to ADJUSTMENT, SALE, TRANSFER and
  RETURN movements. GRV movements change only through the GRV lifecycle.

Business invariants:
- on_hand >= 0 and available (on_hand - reserved) >= 0 at all times for
  tracked items.
- RECEIVE: avg' = round((on_hand * avg + qty * cost) / (on_hand + qty)), half-up.
- CONSUME: valued at the current average; does NOT change the average.
- REVERSE: a compensating movement. Cost is recomputed as if the original had
  never happened when that is provable; otherwise the movement is flagged for
  manual review and the average is left alone.

Locking:
- Every write locks the item row (SELECT ... FOR UPDATE) and bumps the
  optimistic version column.
- Multi-item callers lock in ascending id order via lock_stock_items().
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DocumentNotFound, InsufficientStock, InvalidTransition, ValidationError
from ..extensions import db
from ..models import InventoryMovement, StockItem
from ..models.inventory import DIRECT_SOURCE_TYPES, DOCUMENT_SOURCE_TYPES, MOVEMENT_SOURCE_TYPES
from ..money import round_half_up_div, weighted_average_cost
from ..validation import clean_text, require_amount_cents, require_choice, require_non_negative, require_positive
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# Stock items
# =============================================================================

def create_stock_item(
    *,
    tenant_id: int,
    sku: str,
    name: str,
    unit: str = "each",
    vat_rate_bps: int | None = None,
    is_vat_exempt: bool = False,
    track_inventory: bool = True,
    reorder_level: int = 0,
    sale_price_cents: int = 0,
) -> StockItem:
    """Create a stock item with an empty position. Cost fields start at zero."""
    sku = clean_text(sku, "sku", max_length=64, required=True)
    name = clean_text(name, "name", max_length=255, required=True)
    if vat_rate_bps is None:
        vat_rate_bps = current_app.config.get("LEDGER_DEFAULT_VAT_RATE_BPS", 1500)

    item = StockItem(
        tenant_id=tenant_id,
        sku=sku,
        name=name,
        unit=clean_text(unit, "unit", max_length=32) or "each",
        vat_rate_bps=require_non_negative(vat_rate_bps, "vat_rate_bps"),
        is_vat_exempt=bool(is_vat_exempt),
        track_inventory=bool(track_inventory),
        reorder_level=require_non_negative(reorder_level, "reorder_level"),
        sale_price_cents=require_amount_cents(sale_price_cents, "sale_price_cents"),
        on_hand=0,
        reserved=0,
        cost_price_cents=0,
        average_cost_cents=0,
    )

    def _op() -> StockItem:
        db.session.add(item)
        try:
            db.session.flush()
        except IntegrityError:
            raise ValidationError("SKU already exists for this tenant", {"sku": sku})
        db.session.commit()
        return item

    return run_with_retry(_op)


def get_stock_item(tenant_id: int, stock_item_id: int, *, lock: bool = False) -> StockItem:
    query = db.session.query(StockItem).filter_by(tenant_id=tenant_id, id=stock_item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise DocumentNotFound("Stock item not found", {"stock_item_id": stock_item_id})
    return item


def find_stock_item_by_sku(tenant_id: int, sku: str) -> StockItem:
    item = StockItem.query.filter_by(tenant_id=tenant_id, sku=sku).first()
    if item is None:
        raise DocumentNotFound("Stock item not found", {"sku": sku})
    return item


def lock_stock_items(tenant_id: int, stock_item_ids) -> dict[int, StockItem]:
    """Lock every item a document touches, in ascending id order."""
    ids = sorted(set(stock_item_ids))
    if not ids:
        return {}
    query = (
        db.session.query(StockItem)
        .filter(StockItem.tenant_id == tenant_id, StockItem.id.in_(ids))
        .order_by(StockItem.id.asc())
    )
    items = {item.id: item for item in lock_for_update(query).all()}
    missing = [i for i in ids if i not in items]
    if missing:
        raise DocumentNotFound("Stock item not found", {"stock_item_ids": missing})
    return items


# =============================================================================
# Movements
# =============================================================================

def _append_movement(
    item: StockItem,
    *,
    source_type: str,
    source_id: int | None,
    source_line_id: int | None,
    movement_type: str,
    quantity: int,
    unit_cost_cents: int,
    quantity_before: int,
    cost_before_cents: int,
    note: str | None = None,
    user_id: int | None = None,
    reverses_movement_id: int | None = None,
    needs_review: bool = False,
    review_reason: str | None = None,
) -> InventoryMovement:
    if source_type not in MOVEMENT_SOURCE_TYPES:
        raise ValidationError("Unknown movement source type", {"source_type": source_type})
    movement = InventoryMovement(
        tenant_id=item.tenant_id,
        stock_item_id=item.id,
        source_type=source_type,
        source_id=source_id,
        source_line_id=source_line_id,
        movement_type=movement_type,
        quantity=quantity,
        unit_cost_cents=unit_cost_cents,
        quantity_before=quantity_before,
        quantity_after=item.on_hand,
        cost_before_cents=cost_before_cents,
        cost_after_cents=item.average_cost_cents,
        reverses_movement_id=reverses_movement_id,
        needs_review=needs_review,
        review_reason=review_reason,
        note=note,
        created_by_user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def _receive_inner(
    item: StockItem,
    quantity: int,
    unit_cost_cents: int,
    *,
    source_type: str = "GRV",
    source_id: int | None = None,
    source_line_id: int | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Core RECEIVE logic on an already-locked item. No retry, no commit."""
    quantity = require_positive(quantity, "quantity")
    unit_cost_cents = require_amount_cents(unit_cost_cents, "unit_cost_cents")

    quantity_before = item.on_hand
    cost_before = item.average_cost_cents

    item.average_cost_cents = weighted_average_cost(quantity_before, cost_before, quantity, unit_cost_cents)
    item.on_hand = quantity_before + quantity
    item.cost_price_cents = unit_cost_cents

    return _append_movement(
        item,
        source_type=source_type,
        source_id=source_id,
        source_line_id=source_line_id,
        movement_type="IN",
        quantity=quantity,
        unit_cost_cents=unit_cost_cents,
        quantity_before=quantity_before,
        cost_before_cents=cost_before,
        note=note,
        user_id=user_id,
    )


def receive(
    tenant_id: int,
    stock_item_id: int,
    quantity: int,
    unit_cost_cents: int,
    *,
    source_type: str = "ADJUSTMENT",
    source_id: int | None = None,
    source_line_id: int | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Receive stock at a unit cost and re-average the cost basis."""
    source_type = require_choice(source_type, "source_type", DIRECT_SOURCE_TYPES)

    def _op() -> InventoryMovement:
        item = get_stock_item(tenant_id, stock_item_id, lock=True)
        movement = _receive_inner(
            item,
            quantity,
            unit_cost_cents,
            source_type=source_type,
            source_id=source_id,
            source_line_id=source_line_id,
            note=note,
            user_id=user_id,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def _consume_inner(
    item: StockItem,
    quantity: int,
    *,
    source_type: str = "SALE",
    source_id: int | None = None,
    source_line_id: int | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Core CONSUME logic on an already-locked item. No retry, no commit.

    Untracked items skip the availability check; their on_hand floors at 0.
    """
    quantity = require_positive(quantity, "quantity")

    if item.track_inventory and quantity > item.available:
        raise InsufficientStock(
            "Insufficient stock",
            {
                "stock_item_id": item.id,
                "sku": item.sku,
                "requested": quantity,
                "available": item.available,
            },
        )

    quantity_before = item.on_hand
    cost = item.average_cost_cents
    item.on_hand = max(0, quantity_before - quantity)
    if item.reserved > item.on_hand:
        item.reserved = item.on_hand

    return _append_movement(
        item,
        source_type=source_type,
        source_id=source_id,
        source_line_id=source_line_id,
        movement_type="OUT",
        quantity=quantity,
        unit_cost_cents=cost,
        quantity_before=quantity_before,
        cost_before_cents=cost,
        note=note,
        user_id=user_id,
    )


def consume(
    tenant_id: int,
    stock_item_id: int,
    quantity: int,
    *,
    source_type: str = "SALE",
    source_id: int | None = None,
    source_line_id: int | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Take stock out at the current average cost."""
    source_type = require_choice(source_type, "source_type", DIRECT_SOURCE_TYPES)

    def _op() -> InventoryMovement:
        item = get_stock_item(tenant_id, stock_item_id, lock=True)
        movement = _consume_inner(
            item,
            quantity,
            source_type=source_type,
            source_id=source_id,
            source_line_id=source_line_id,
            note=note,
            user_id=user_id,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def _reversal_source_type(original: InventoryMovement) -> str:
    if original.source_type == "ADJUSTMENT":
        return "ADJUSTMENT"
    return "CANCEL_GRV" if original.movement_type == "IN" else "CANCEL_SALE"


def _reverse_inner(
    tenant_id: int,
    original: InventoryMovement,
    item: StockItem,
    *,
    source_id: int | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """Core REVERSE logic on an already-locked item. No retry, no commit.

    Cost recomputation:
    - no later movements: restore the original's before-snapshot exactly
    - later receipts only: take the original's value out (or put it back)
      and re-divide
    - later consumption, not enough on hand, or a negative residual value:
      flag for review, clamp quantity at zero, keep the current average
    """
    if original.reverses_movement_id is not None:
        raise InvalidTransition(
            "A reversal cannot itself be reversed",
            kind="inventory_movement",
            document_id=original.id,
            action="reverse",
        )
    already = InventoryMovement.query.filter_by(reverses_movement_id=original.id).first()
    if already is not None:
        raise InvalidTransition(
            "Movement has already been reversed",
            kind="inventory_movement",
            document_id=original.id,
            action="reverse",
            details={"reversal_movement_id": already.id},
        )

    later = (
        InventoryMovement.query.filter(
            InventoryMovement.tenant_id == tenant_id,
            InventoryMovement.stock_item_id == item.id,
            InventoryMovement.id > original.id,
        )
        .order_by(InventoryMovement.id.asc())
        .all()
    )
    # A later movement cancels out only against a clean, full reversal of it.
    by_id = {m.id: m for m in later}
    cancelled = set()
    for m in later:
        target = by_id.get(m.reverses_movement_id)
        if target is not None and not m.needs_review and m.quantity == target.quantity:
            cancelled.update((m.id, target.id))
    later = [m for m in later if m.id not in cancelled]
    later_out = any(m.movement_type == "OUT" for m in later)

    quantity_before = item.on_hand
    cost_before = item.average_cost_cents
    qty = original.quantity
    review_reason = None
    # Snapshot restore is only exact while the item sits where the original left it.
    in_step = not later and quantity_before == original.quantity_after

    if original.movement_type == "IN":
        movement_type = "OUT"
        if in_step:
            item.on_hand = original.quantity_before
            item.average_cost_cents = original.cost_before_cents
            applied = qty
        else:
            new_qty = quantity_before - qty
            residual = quantity_before * cost_before - qty * original.unit_cost_cents
            if not later:
                review_reason = "stock position no longer matches the original receipt"
            elif later_out:
                review_reason = "stock consumed after the original receipt"
            elif new_qty < 0:
                review_reason = "insufficient on hand to reverse receipt"
            elif residual < 0:
                review_reason = "negative residual inventory value"

            if review_reason:
                applied = min(qty, quantity_before)
                item.on_hand = quantity_before - applied
            else:
                applied = qty
                item.on_hand = new_qty
                if new_qty > 0:
                    item.average_cost_cents = round_half_up_div(residual, new_qty)
        if item.reserved > item.on_hand:
            item.reserved = item.on_hand
    else:
        movement_type = "IN"
        applied = qty
        if in_step:
            item.on_hand = original.quantity_before
            item.average_cost_cents = original.cost_before_cents
        elif not later or later_out:
            if later_out:
                review_reason = "stock consumed after the original issue"
            else:
                review_reason = "stock position no longer matches the original issue"
            item.on_hand = quantity_before + qty
        else:
            new_qty = quantity_before + qty
            value = quantity_before * cost_before + qty * original.unit_cost_cents
            item.on_hand = new_qty
            item.average_cost_cents = round_half_up_div(value, new_qty)

    try:
        with db.session.begin_nested():
            movement = _append_movement(
                item,
                source_type=_reversal_source_type(original),
                source_id=source_id if source_id is not None else original.source_id,
                source_line_id=original.source_line_id,
                movement_type=movement_type,
                quantity=applied,
                unit_cost_cents=original.unit_cost_cents,
                quantity_before=quantity_before,
                cost_before_cents=cost_before,
                note=note,
                user_id=user_id,
                reverses_movement_id=original.id,
                needs_review=review_reason is not None,
                review_reason=review_reason,
            )
    except IntegrityError:
        raise InvalidTransition(
            "Movement has already been reversed",
            kind="inventory_movement",
            document_id=original.id,
            action="reverse",
        )

    if review_reason:
        current_app.logger.warning(
            "Inventory reversal flagged for review: movement=%s item=%s reason=%s",
            original.id,
            item.id,
            review_reason,
        )
    return movement


def _get_movement(tenant_id: int, movement_id: int) -> InventoryMovement:
    movement = InventoryMovement.query.filter_by(tenant_id=tenant_id, id=movement_id).first()
    if movement is None:
        raise DocumentNotFound("Inventory movement not found", {"movement_id": movement_id})
    return movement


def reverse_movement(
    tenant_id: int,
    movement_id: int,
    *,
    note: str | None = None,
    user_id: int | None = None,
) -> InventoryMovement:
    """
    Append the compensating movement for `movement_id` (at most once).

    Only direct movements (adjustments, sales, transfers, returns) are
    reversible here. Movements owned by a GRV are reversed by cancelling
    the GRV, so the document status and its stock never disagree.
    """
    def _op() -> InventoryMovement:
        original = _get_movement(tenant_id, movement_id)
        if original.source_type in DOCUMENT_SOURCE_TYPES:
            raise InvalidTransition(
                "Movement belongs to a GRV; cancel the GRV instead",
                kind="inventory_movement",
                document_id=original.id,
                action="reverse",
                details={
                    "source_type": original.source_type,
                    "source_id": original.source_id,
                    "use": "grv:cancel",
                },
            )
        item = get_stock_item(tenant_id, original.stock_item_id, lock=True)
        movement = _reverse_inner(tenant_id, original, item, note=note, user_id=user_id)
        db.session.commit()
        return movement

    return run_with_retry(_op)


# =============================================================================
# Reservations
# =============================================================================

def reserve(tenant_id: int, stock_item_id: int, quantity: int) -> StockItem:
    """Hold stock against future consumption. Keeps 0 <= reserved <= on_hand."""
    quantity = require_positive(quantity, "quantity")

    def _op() -> StockItem:
        item = get_stock_item(tenant_id, stock_item_id, lock=True)
        if quantity > item.available:
            raise InsufficientStock(
                "Insufficient stock to reserve",
                {"stock_item_id": item.id, "requested": quantity, "available": item.available},
            )
        item.reserved += quantity
        db.session.commit()
        return item

    return run_with_retry(_op)


def release(tenant_id: int, stock_item_id: int, quantity: int) -> StockItem:
    quantity = require_positive(quantity, "quantity")

    def _op() -> StockItem:
        item = get_stock_item(tenant_id, stock_item_id, lock=True)
        if quantity > item.reserved:
            raise ValidationError(
                "Cannot release more than is reserved",
                {"stock_item_id": item.id, "requested": quantity, "reserved": item.reserved},
            )
        item.reserved -= quantity
        db.session.commit()
        return item

    return run_with_retry(_op)


# =============================================================================
# Reads
# =============================================================================

def get_stock_summary(tenant_id: int, stock_item_id: int) -> dict:
    item = get_stock_item(tenant_id, stock_item_id)
    return {
        "stock_item_id": item.id,
        "sku": item.sku,
        "name": item.name,
        "track_inventory": item.track_inventory,
        "on_hand": item.on_hand,
        "reserved": item.reserved,
        "available": item.available,
        "average_cost_cents": item.average_cost_cents,
        "cost_price_cents": item.cost_price_cents,
        "inventory_value_cents": item.inventory_value_cents,
        "reorder_level": item.reorder_level,
        "below_reorder_level": bool(item.track_inventory and item.on_hand <= item.reorder_level),
    }


def list_movements(tenant_id: int, stock_item_id: int, *, limit: int = 100) -> list[InventoryMovement]:
    """Movements for one item, newest first."""
    get_stock_item(tenant_id, stock_item_id)
    return (
        InventoryMovement.query.filter_by(tenant_id=tenant_id, stock_item_id=stock_item_id)
        .order_by(InventoryMovement.id.desc())
        .limit(max(1, min(int(limit), 1000)))
        .all()
    )
