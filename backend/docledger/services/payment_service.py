# Overview: Service-layer operations for customer and supplier payments.

"""
Payment Service

LIFECYCLE: posted -> reversed

- Payments are recorded already posted, with a PAY/SP number.
- Allocations may be supplied at recording time; they are applied in the same
  unit of work, so a bad allocation means no payment either.
- Reversal undoes every active allocation (targets' paid amounts and statuses
  are re-derived) and marks the payment reversed. All-or-nothing.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import CustomerPayment, SupplierPayment
from ..models.payments import PAYMENT_METHODS
from ..time_utils import utcnow
from ..validation import clean_text, parse_datetime_field, require_amount_cents, require_choice, require_list
from .allocation_service import _allocate_inner, get_payment, unallocate_all
from .concurrency import run_with_retry
from .document_service import _next_number_for_inner
from .lifecycle_service import plan_transition
from .tenant_service import get_client, get_supplier


def _record_payment(
    tenant_id: int,
    kind: str,
    *,
    party,
    amount_cents,
    method: str,
    reference: str | None,
    payment_date,
    notes: str | None,
    allocations,
):
    amount = require_amount_cents(amount_cents, "amount_cents", allow_zero=False)
    method = require_choice(method, "method", PAYMENT_METHODS)
    paid_on = parse_datetime_field(payment_date, "payment_date") or utcnow()
    rows = require_list(allocations, "allocations")

    def _op():
        party_row = party()
        common = dict(
            tenant_id=tenant_id,
            payment_number=_next_number_for_inner(tenant_id, kind, when=paid_on),
            amount_cents=amount,
            unallocated_cents=amount,
            method=method,
            reference=clean_text(reference, "reference", max_length=128) or None,
            payment_date=paid_on,
            status="posted",
            notes=clean_text(notes, "notes", max_length=4000) or None,
        )
        if kind == "customer_payment":
            payment = CustomerPayment(client_id=party_row.id, client_snapshot=party_row.snapshot(), **common)
        else:
            payment = SupplierPayment(supplier_id=party_row.id, supplier_snapshot=party_row.snapshot(), **common)
        db.session.add(payment)
        db.session.flush()
        if rows:
            _allocate_inner(tenant_id, kind, payment, rows)
        db.session.commit()
        return payment

    return run_with_retry(_op)


def record_customer_payment(
    tenant_id: int,
    *,
    client_id: int,
    amount_cents: int,
    method: str = "eft",
    reference: str | None = None,
    payment_date=None,
    notes: str | None = None,
    allocations=None,
) -> CustomerPayment:
    return _record_payment(
        tenant_id,
        "customer_payment",
        party=lambda: get_client(tenant_id, client_id),
        amount_cents=amount_cents,
        method=method,
        reference=reference,
        payment_date=payment_date,
        notes=notes,
        allocations=allocations,
    )


def record_supplier_payment(
    tenant_id: int,
    *,
    supplier_id: int,
    amount_cents: int,
    method: str = "eft",
    reference: str | None = None,
    payment_date=None,
    notes: str | None = None,
    allocations=None,
) -> SupplierPayment:
    return _record_payment(
        tenant_id,
        "supplier_payment",
        party=lambda: get_supplier(tenant_id, supplier_id),
        amount_cents=amount_cents,
        method=method,
        reference=reference,
        payment_date=payment_date,
        notes=notes,
        allocations=allocations,
    )


def reverse_payment(tenant_id: int, kind: str, payment_id: int, *, reason: str | None = None):
    """posted -> reversed, undoing every allocation in one unit of work."""
    reason = clean_text(reason, "reason", max_length=2000) or None

    def _op():
        payment = get_payment(tenant_id, kind, payment_id, lock=True)
        new_status = plan_transition(kind, payment.status, "reverse", document_id=payment.id)
        payment.status = new_status
        affected = unallocate_all(payment)
        payment.reversed_at = utcnow()
        payment.reversal_reason = reason
        db.session.commit()
        current_app.logger.info(
            "Reversed %s %s; released allocations on %s documents",
            kind,
            payment.payment_number,
            len(affected),
        )
        return payment

    return run_with_retry(_op)
