from __future__ import annotations

from sqlalchemy import event

from ..errors import LedgerError
from ..extensions import db
from ..time_utils import to_utc_z


# Sources a caller may name when moving stock directly
DIRECT_SOURCE_TYPES = {"ADJUSTMENT", "SALE", "TRANSFER", "RETURN"}
# Sources owned by a document state machine; only that document may reverse them
DOCUMENT_SOURCE_TYPES = {"GRV", "CANCEL_GRV"}
MOVEMENT_SOURCE_TYPES = DIRECT_SOURCE_TYPES | DOCUMENT_SOURCE_TYPES | {"CANCEL_SALE"}
MOVEMENT_TYPES = {"IN", "OUT"}


class StockItem(db.Model):
    """
    Stock item master data plus its running inventory position.

    SKU is unique per tenant. on_hand, reserved, average_cost_cents and
    cost_price_cents are written ONLY by inventory_service; every change is
    mirrored by an InventoryMovement row.

    INVARIANTS:
    - on_hand >= 0
    - 0 <= reserved <= on_hand (so available >= 0)
    """
    __tablename__ = "stock_items"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sku", name="uq_stock_items_tenant_sku"),
        db.Index("ix_stock_items_tenant_name", "tenant_id", "name"),
        db.CheckConstraint("on_hand >= 0", name="ck_stock_items_on_hand_non_negative"),
        db.CheckConstraint("reserved >= 0", name="ck_stock_items_reserved_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="each")
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=1500)
    is_vat_exempt = db.Column(db.Boolean, nullable=False, default=False)
    track_inventory = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Inventory position
    on_hand = db.Column(db.Integer, nullable=False, default=0)
    reserved = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    # Pricing (cents). Cost fields are ledger-owned.
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    average_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved

    @property
    def inventory_value_cents(self) -> int:
        return self.on_hand * self.average_cost_cents

    def snapshot(self) -> dict:
        return {
            "stock_item_id": self.id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "vat_rate_bps": self.vat_rate_bps,
            "is_vat_exempt": self.is_vat_exempt,
        }

    def __repr__(self) -> str:
        return f"<StockItem id={self.id} sku={self.sku!r} on_hand={self.on_hand} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "vat_rate_bps": self.vat_rate_bps,
            "is_vat_exempt": self.is_vat_exempt,
            "track_inventory": self.track_inventory,
            "is_active": self.is_active,
            "on_hand": self.on_hand,
            "reserved": self.reserved,
            "available": self.available,
            "reorder_level": self.reorder_level,
            "sale_price_cents": self.sale_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "average_cost_cents": self.average_cost_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only record of one stock change.

    APPEND-ONLY: rows are never updated or deleted (enforced by the mapper
    listeners below). A mistake is corrected by a compensating movement whose
    reverses_movement_id points at the original; the unique constraint on that
    column means a movement can be reversed at most once.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.UniqueConstraint("reverses_movement_id", name="uq_inventory_movements_reverses"),
        db.Index("ix_inventory_movements_item_id", "stock_item_id", "id"),
        db.Index("ix_inventory_movements_source", "tenant_id", "source_type", "source_id"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_movements_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    stock_item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=False, index=True)

    # GRV, SALE, ADJUSTMENT, TRANSFER, RETURN, CANCEL_GRV, CANCEL_SALE
    source_type = db.Column(db.String(16), nullable=False)
    source_id = db.Column(db.Integer, nullable=True)
    source_line_id = db.Column(db.Integer, nullable=True)

    # IN or OUT; quantity is the applied amount (0 only for a fully clamped reversal)
    movement_type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)
    cost_before_cents = db.Column(db.Integer, nullable=False)
    cost_after_cents = db.Column(db.Integer, nullable=False)

    reverses_movement_id = db.Column(db.Integer, db.ForeignKey("inventory_movements.id"), nullable=True)
    needs_review = db.Column(db.Boolean, nullable=False, default=False)
    review_reason = db.Column(db.String(255), nullable=True)

    note = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    stock_item = db.relationship("StockItem", backref=db.backref("movements", lazy="dynamic"))

    @property
    def value_cents(self) -> int:
        return self.quantity * self.unit_cost_cents

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement id={self.id} {self.movement_type} {self.quantity} "
            f"item={self.stock_item_id} source={self.source_type}:{self.source_id}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "stock_item_id": self.stock_item_id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "source_line_id": self.source_line_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "cost_before_cents": self.cost_before_cents,
            "cost_after_cents": self.cost_after_cents,
            "reverses_movement_id": self.reverses_movement_id,
            "needs_review": self.needs_review,
            "review_reason": self.review_reason,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class MovementImmutableError(LedgerError):
    code = "MOVEMENT_IMMUTABLE"
    http_status = 409


@event.listens_for(InventoryMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise MovementImmutableError(
        "inventory movements are append-only",
        {"movement_id": target.id, "operation": "update"},
    )


@event.listens_for(InventoryMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise MovementImmutableError(
        "inventory movements are append-only",
        {"movement_id": target.id, "operation": "delete"},
    )
