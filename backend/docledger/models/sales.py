from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class _SalesLineMixin:
    """Line shape shared by quotes and invoices; conversion copies it verbatim."""

    id = db.Column(db.Integer, primary_key=True)
    line_no = db.Column(db.Integer, nullable=False)
    sku_snapshot = db.Column(db.String(64), nullable=True)
    name_snapshot = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    taxable = db.Column(db.Boolean, nullable=False, default=True)
    is_vat_exempt = db.Column(db.Boolean, nullable=False, default=False)
    line_total_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_no": self.line_no,
            "stock_item_id": self.stock_item_id,
            "sku_snapshot": self.sku_snapshot,
            "name_snapshot": self.name_snapshot,
            "description": self.description,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "taxable": self.taxable,
            "is_vat_exempt": self.is_vat_exempt,
            "line_total_cents": self.line_total_cents,
        }


class SalesQuote(db.Model):
    """
    Sales quote.

    LIFECYCLE: draft -> sent -> accepted | rejected | expired.
    An accepted quote converts to at most one invoice (related_invoice_id).
    """
    __tablename__ = "sales_quotes"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "quote_number", name="uq_sales_quotes_tenant_number"),
        db.Index("ix_sales_quotes_tenant_status", "tenant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    quote_number = db.Column(db.String(64), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    client_snapshot = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    vat_mode = db.Column(db.String(16), nullable=False, default="exclusive")
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=1500)

    sub_total_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expired_at = db.Column(db.DateTime(timezone=True), nullable=True)

    related_invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    client = db.relationship("Client")
    lines = db.relationship(
        "SalesQuoteLine",
        backref="quote",
        lazy=True,
        order_by="SalesQuoteLine.line_no",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SalesQuote id={self.id} number={self.quote_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "quote_number": self.quote_number,
            "client_id": self.client_id,
            "client_snapshot": self.client_snapshot,
            "status": self.status,
            "vat_mode": self.vat_mode,
            "vat_rate_bps": self.vat_rate_bps,
            "sub_total_cents": self.sub_total_cents,
            "vat_total_cents": self.vat_total_cents,
            "total_cents": self.total_cents,
            "valid_until": to_utc_z(self.valid_until),
            "notes": self.notes,
            "sent_at": to_utc_z(self.sent_at),
            "accepted_at": to_utc_z(self.accepted_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "expired_at": to_utc_z(self.expired_at),
            "related_invoice_id": self.related_invoice_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SalesQuoteLine(_SalesLineMixin, db.Model):
    __tablename__ = "sales_quote_lines"
    __table_args__ = (
        db.UniqueConstraint("quote_id", "line_no", name="uq_sales_quote_lines_quote_line_no"),
        {"sqlite_autoincrement": True},
    )

    quote_id = db.Column(db.Integer, db.ForeignKey("sales_quotes.id"), nullable=False, index=True)
    stock_item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=True)


class SalesInvoice(db.Model):
    """
    Sales invoice.

    LIFECYCLE: draft -> issued -> partially_paid -> paid, or
    draft/issued -> cancelled while nothing has been paid.

    `overdue` is never stored. It is derived by invoice_service.effective_status()
    from the stored status and due_date; overdue_at only records when the
    sweep first noticed it.

    Numbering: invoices get their number at issue, not at creation.
    """
    __tablename__ = "sales_invoices"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_number", name="uq_sales_invoices_tenant_number"),
        db.Index("ix_sales_invoices_tenant_status", "tenant_id", "status"),
        db.Index("ix_sales_invoices_tenant_due", "tenant_id", "due_date"),
        db.CheckConstraint("amount_paid_cents >= 0", name="ck_sales_invoices_paid_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(64), nullable=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    client_snapshot = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    vat_mode = db.Column(db.String(16), nullable=False, default="exclusive")
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=1500)

    sub_total_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)

    source_quote_id = db.Column(db.Integer, nullable=True, index=True)
    payment_terms_days = db.Column(db.Integer, nullable=False, default=30)
    issue_date = db.Column(db.DateTime(timezone=True), nullable=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    overdue_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    client = db.relationship("Client")
    lines = db.relationship(
        "SalesInvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="SalesInvoiceLine.line_no",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SalesInvoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = True, effective_status: str | None = None) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "invoice_number": self.invoice_number,
            "client_id": self.client_id,
            "client_snapshot": self.client_snapshot,
            "status": effective_status or self.status,
            "stored_status": self.status,
            "vat_mode": self.vat_mode,
            "vat_rate_bps": self.vat_rate_bps,
            "sub_total_cents": self.sub_total_cents,
            "vat_total_cents": self.vat_total_cents,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "source_quote_id": self.source_quote_id,
            "payment_terms_days": self.payment_terms_days,
            "issue_date": to_utc_z(self.issue_date),
            "due_date": to_utc_z(self.due_date),
            "notes": self.notes,
            "issued_at": to_utc_z(self.issued_at),
            "paid_at": to_utc_z(self.paid_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "overdue_at": to_utc_z(self.overdue_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SalesInvoiceLine(_SalesLineMixin, db.Model):
    __tablename__ = "sales_invoice_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "line_no", name="uq_sales_invoice_lines_invoice_line_no"),
        {"sqlite_autoincrement": True},
    )

    invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=False, index=True)
    stock_item_id = db.Column(db.Integer, db.ForeignKey("stock_items.id"), nullable=True)
