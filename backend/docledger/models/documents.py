from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DocumentCounter(db.Model):
    """
    Atomic per-tenant document counters.

    One row per (tenant_id, key). next_number only ever increases; the
    sequencer advances it with a single UPDATE ... SET next_number = next_number + 1.
    """
    __tablename__ = "document_counters"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "key", name="uq_document_counters_tenant_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    key = db.Column(db.String(64), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    prefix = db.Column(db.String(32), nullable=False, default="")
    padding = db.Column(db.Integer, nullable=False, default=5)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "key": self.key,
            "next_number": self.next_number,
            "prefix": self.prefix,
            "padding": self.padding,
            "updated_at": to_utc_z(self.updated_at),
        }


class GoodsReceivedVoucher(db.Model):
    """
    Goods received voucher (GRV).

    LIFECYCLE:
    1. Draft: created, lines being added/edited
    2. Posted: every line received into inventory (one IN movement per line)
    3. Cancelled: from Draft (no inventory effect) or from Posted (every
       receipt reversed by a compensating movement)

    A Posted GRV referenced by a non-voided supplier bill cannot be cancelled.
    """
    __tablename__ = "grvs"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "grv_number", name="uq_grvs_tenant_number"),
        db.Index("ix_grvs_tenant_status", "tenant_id", "status"),
        db.Index("ix_grvs_supplier", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Human-readable number (e.g., "GRV-202610-000042")
    grv_number = db.Column(db.String(64), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)
    supplier_snapshot = db.Column(db.JSON, nullable=True)

    # PO, delivery note, supplier invoice, ...
    reference_type = db.Column(db.String(32), nullable=True)
    reference_number = db.Column(db.String(128), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    status = db.Column(db.String(16), nullable=False, default="Draft", index=True)

    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    posted_by_user_id = db.Column(db.Integer, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    billed_by_bill_id = db.Column(db.Integer, db.ForeignKey("supplier_bills.id"), nullable=True, index=True)
    requires_review = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "GRVLine",
        backref="grv",
        lazy=True,
        order_by="GRVLine.line_no",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<GRV id={self.id} number={self.grv_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "grv_number": self.grv_number,
            "supplier_id": self.supplier_id,
            "supplier_snapshot": self.supplier_snapshot,
            "reference_type": self.reference_type,
            "reference_number": self.reference_number,
            "received_at": to_utc_z(self.received_at),
            "status": self.status,
            "posted_at": to_utc_z(self.posted_at),
            "posted_by_user_id": self.posted_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "cancellation_reason": self.cancellation_reason,
            "billed_by_bill_id": self.billed_by_bill_id,
            "requires_review": self.requires_review,
            "notes": self.notes,
            "subtotal_cents": self.subtotal_cents,
            "discount_total_cents": self.discount_total_cents,
            "vat_total_cents": self.vat_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class GRVLine(db.Model):
    """
    One received stock line. Item fields are a snapshot taken when the line
    is added; amounts come from money.grv_line_amounts().
    """
    __tablename__ = "grv_lines"
    __table_args__ = (
        db.UniqueConstraint("grv_id", "line_no", name="uq_grv_lines_grv_line_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    grv_id = db.Column(db.Integer, db.ForeignKey("grvs.id"), nullable=False, index=True)
    line_no = db.Column(db.Integer, nullable=False)

    stock_item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=False, index=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="each")
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    is_vat_exempt = db.Column(db.Boolean, nullable=False, default=False)

    ordered_qty = db.Column(db.Integer, nullable=False, default=0)
    received_qty = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    # none, percent (discount_value in bps), amount (discount_value per unit)
    discount_type = db.Column(db.String(16), nullable=False, default="none")
    discount_value = db.Column(db.Integer, nullable=False, default=0)

    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # none, damaged, short_delivery, wrong_item, free_stock, other
    variance_reason = db.Column(db.String(32), nullable=False, default="none")
    remarks = db.Column(db.Text, nullable=True)

    inventory_movement_id = db.Column(db.Integer, db.ForeignKey("inventory_movements.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "grv_id": self.grv_id,
            "line_no": self.line_no,
            "stock_item_id": self.stock_item_id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "vat_rate_bps": self.vat_rate_bps,
            "is_vat_exempt": self.is_vat_exempt,
            "ordered_qty": self.ordered_qty,
            "received_qty": self.received_qty,
            "unit_cost_cents": self.unit_cost_cents,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "discount_cents": self.discount_cents,
            "subtotal_cents": self.subtotal_cents,
            "vat_amount_cents": self.vat_amount_cents,
            "total_cents": self.total_cents,
            "variance_reason": self.variance_reason,
            "remarks": self.remarks,
            "inventory_movement_id": self.inventory_movement_id,
        }


class SupplierBill(db.Model):
    """
    Supplier bill built from one or more Posted GRVs of the same supplier.

    LIFECYCLE: Draft -> Posted -> PartiallyPaid -> Paid, or
    Posted/PartiallyPaid -> Voided. Voiding releases the GRVs for re-billing.
    """
    __tablename__ = "supplier_bills"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "bill_number", name="uq_supplier_bills_tenant_number"),
        db.Index("ix_supplier_bills_tenant_status", "tenant_id", "status"),
        db.CheckConstraint("paid_cents >= 0", name="ck_supplier_bills_paid_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    bill_number = db.Column(db.String(64), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_snapshot = db.Column(db.JSON, nullable=True)

    bill_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reference = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="Draft", index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)

    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    posted_by_user_id = db.Column(db.Integer, nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_user_id = db.Column(db.Integer, nullable=True)
    void_warning = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "SupplierBillLine",
        backref="bill",
        lazy=True,
        order_by="SupplierBillLine.line_no",
        cascade="all, delete-orphan",
    )
    grvs = db.relationship(
        "GoodsReceivedVoucher",
        backref="billed_by",
        lazy=True,
        foreign_keys="GoodsReceivedVoucher.billed_by_bill_id",
        order_by="GoodsReceivedVoucher.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def balance_due_cents(self) -> int:
        return self.total_cents - self.paid_cents

    def __repr__(self) -> str:
        return f"<SupplierBill id={self.id} number={self.bill_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "bill_number": self.bill_number,
            "supplier_id": self.supplier_id,
            "supplier_snapshot": self.supplier_snapshot,
            "grv_ids": [grv.id for grv in self.grvs],
            "bill_date": to_utc_z(self.bill_date),
            "due_date": to_utc_z(self.due_date),
            "reference": self.reference,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "vat_total_cents": self.vat_total_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "posted_at": to_utc_z(self.posted_at),
            "posted_by_user_id": self.posted_by_user_id,
            "voided_at": to_utc_z(self.voided_at),
            "voided_by_user_id": self.voided_by_user_id,
            "void_warning": self.void_warning,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SupplierBillLine(db.Model):
    __tablename__ = "supplier_bill_lines"
    __table_args__ = (
        db.UniqueConstraint("bill_id", "line_no", name="uq_supplier_bill_lines_bill_line_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("supplier_bills.id"), nullable=False, index=True)
    line_no = db.Column(db.Integer, nullable=False)

    # Traceability back to the GRV line this was copied from
    grv_id = db.Column(db.Integer, db.ForeignKey("grvs.id"), nullable=False, index=True)
    grv_line_id = db.Column(db.Integer, db.ForeignKey("grv_lines.id"), nullable=False)

    stock_item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "line_no": self.line_no,
            "grv_id": self.grv_id,
            "grv_line_id": self.grv_line_id,
            "stock_item_id": self.stock_item_id,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "discount_cents": self.discount_cents,
            "subtotal_cents": self.subtotal_cents,
            "vat_amount_cents": self.vat_amount_cents,
            "total_cents": self.total_cents,
        }
