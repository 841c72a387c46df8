from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PAYMENT_METHODS = {"cash", "card", "eft", "cheque", "other"}


class _PaymentMixin:
    """
    Header fields shared by customer and supplier payments.

    unallocated_cents = amount_cents - sum(active allocations). It is stored
    and recomputed by allocation_service on every change.
    """

    id = db.Column(db.Integer, primary_key=True)
    payment_number = db.Column(db.String(64), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    unallocated_cents = db.Column(db.Integer, nullable=False, default=0)
    method = db.Column(db.String(16), nullable=False, default="eft")
    reference = db.Column(db.String(128), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # posted or reversed
    status = db.Column(db.String(16), nullable=False, default="posted", index=True)
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reversal_reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def active_allocations(self) -> list:
        return [a for a in self.allocations if a.reversed_at is None]

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "payment_number": self.payment_number,
            "amount_cents": self.amount_cents,
            "unallocated_cents": self.unallocated_cents,
            "method": self.method,
            "reference": self.reference,
            "payment_date": to_utc_z(self.payment_date),
            "status": self.status,
            "reversed_at": to_utc_z(self.reversed_at),
            "reversal_reason": self.reversal_reason,
            "notes": self.notes,
            "allocations": [a.to_dict() for a in self.allocations],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerPayment(_PaymentMixin, db.Model):
    __tablename__ = "customer_payments"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "payment_number", name="uq_customer_payments_tenant_number"),
        db.CheckConstraint("amount_cents > 0", name="ck_customer_payments_amount_positive"),
        db.CheckConstraint("unallocated_cents >= 0", name="ck_customer_payments_unallocated_non_negative"),
        {"sqlite_autoincrement": True},
    )

    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    client_snapshot = db.Column(db.JSON, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    allocations = db.relationship(
        "CustomerPaymentAllocation",
        backref="payment",
        lazy=True,
        order_by="CustomerPaymentAllocation.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CustomerPayment id={self.id} number={self.payment_number!r} amount={self.amount_cents}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["client_id"] = self.client_id
        data["client_snapshot"] = self.client_snapshot
        return data


class CustomerPaymentAllocation(db.Model):
    """
    Portion of a customer payment applied to one invoice.

    Rows are appended in caller order. Reversal stamps reversed_at instead of
    deleting so the history stays visible.
    """
    __tablename__ = "customer_payment_allocations"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_customer_allocations_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("customer_payments.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    allocated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def document_id(self) -> int:
        return self.invoice_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "allocated_at": to_utc_z(self.allocated_at),
            "reversed_at": to_utc_z(self.reversed_at),
        }


class SupplierPayment(_PaymentMixin, db.Model):
    __tablename__ = "supplier_payments"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "payment_number", name="uq_supplier_payments_tenant_number"),
        db.CheckConstraint("amount_cents > 0", name="ck_supplier_payments_amount_positive"),
        db.CheckConstraint("unallocated_cents >= 0", name="ck_supplier_payments_unallocated_non_negative"),
        {"sqlite_autoincrement": True},
    )

    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_snapshot = db.Column(db.JSON, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    allocations = db.relationship(
        "SupplierPaymentAllocation",
        backref="payment",
        lazy=True,
        order_by="SupplierPaymentAllocation.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SupplierPayment id={self.id} number={self.payment_number!r} amount={self.amount_cents}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["supplier_id"] = self.supplier_id
        data["supplier_snapshot"] = self.supplier_snapshot
        return data


class SupplierPaymentAllocation(db.Model):
    __tablename__ = "supplier_payment_allocations"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_supplier_allocations_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("supplier_payments.id"), nullable=False, index=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("supplier_bills.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    allocated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def document_id(self) -> int:
        return self.bill_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.bill_id,
            "amount_cents": self.amount_cents,
            "allocated_at": to_utc_z(self.allocated_at),
            "reversed_at": to_utc_z(self.reversed_at),
        }
