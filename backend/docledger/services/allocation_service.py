# Overview: Apply payments against invoice and bill balances.

"""
Allocation Engine

allocate_payment() applies part or all of a posted payment to one or more
documents of the same party.

RULES:
- every amount is a positive integer number of cents
- sum(amounts) <= payment.unallocated_cents
- per document: sum(amounts for that document) <= its current balance
- targets must belong to the payment's party and be in a payable status
- all-or-nothing: a single bad row rejects the whole batch

Effects per target: paid amount up, balance recomputed, status re-derived.
Allocation rows are appended in caller order.
"""

from __future__ import annotations

from ..errors import DocumentNotFound, InvalidTransition, OverAllocation, ValidationError
from ..extensions import db
from ..models import (
    CustomerPayment,
    CustomerPaymentAllocation,
    SalesInvoice,
    SupplierBill,
    SupplierPayment,
    SupplierPaymentAllocation,
)
from ..time_utils import utcnow
from ..validation import coerce_int, require_list
from .concurrency import lock_for_update, run_with_retry
from .lifecycle_service import derive_bill_status, derive_invoice_status, require_payable


PAYMENT_KINDS = {
    "customer_payment": {
        "payment_model": CustomerPayment,
        "allocation_model": CustomerPaymentAllocation,
        "document_model": SalesInvoice,
        "document_kind": "invoice",
        "document_fk": "invoice_id",
        "party_field": "client_id",
    },
    "supplier_payment": {
        "payment_model": SupplierPayment,
        "allocation_model": SupplierPaymentAllocation,
        "document_model": SupplierBill,
        "document_kind": "supplier_bill",
        "document_fk": "bill_id",
        "party_field": "supplier_id",
    },
}


def _config(kind: str) -> dict:
    cfg = PAYMENT_KINDS.get(kind)
    if cfg is None:
        raise ValidationError("Unknown payment kind", {"kind": kind})
    return cfg


def get_payment(tenant_id: int, kind: str, payment_id: int, *, lock: bool = False):
    model = _config(kind)["payment_model"]
    query = db.session.query(model).filter_by(tenant_id=tenant_id, id=payment_id)
    if lock:
        query = lock_for_update(query)
    payment = query.first()
    if payment is None:
        raise DocumentNotFound("Payment not found", {"kind": kind, "payment_id": payment_id})
    return payment


def _apply_paid(document, delta: int) -> None:
    """Move a target's paid amount by `delta` and re-derive its status."""
    now = utcnow()
    if isinstance(document, SalesInvoice):
        document.amount_paid_cents += delta
        document.balance_due_cents = document.total_cents - document.amount_paid_cents
        if document.status != "cancelled":
            document.status = derive_invoice_status(document.total_cents, document.amount_paid_cents)
        document.paid_at = now if document.status == "paid" else None
    else:
        document.paid_cents += delta
        if document.status != "Voided":
            document.status = derive_bill_status(document.total_cents, document.paid_cents)


def _normalize_rows(rows) -> list[tuple[int, int]]:
    normalized = []
    for index, row in enumerate(require_list(rows, "allocations")):
        if not isinstance(row, dict):
            raise ValidationError("allocation must be an object", {"index": index})
        document_id = coerce_int(row.get("document_id"), "document_id")
        amount = coerce_int(row.get("amount_cents"), "amount_cents")
        if amount <= 0:
            raise ValidationError(
                "allocation amount must be positive",
                {"index": index, "document_id": document_id, "amount_cents": amount},
            )
        normalized.append((document_id, amount))
    if not normalized:
        raise ValidationError("at least one allocation is required")
    return normalized


def _allocate_inner(tenant_id: int, kind: str, payment, rows) -> None:
    """Validate every row first, then apply. No retry, no commit."""
    cfg = _config(kind)
    doc_model = cfg["document_model"]
    doc_kind = cfg["document_kind"]
    party_field = cfg["party_field"]

    if payment.status != "posted":
        raise InvalidTransition(
            "Only posted payments can be allocated",
            kind=kind,
            document_id=payment.id,
            action="allocate",
            current_status=payment.status,
        )

    normalized = _normalize_rows(rows)
    total = sum(amount for _, amount in normalized)
    if total > payment.unallocated_cents:
        raise OverAllocation(
            "Allocations exceed the payment's unallocated amount",
            {
                "payment_id": payment.id,
                "requested_cents": total,
                "unallocated_cents": payment.unallocated_cents,
            },
        )

    per_document: dict[int, int] = {}
    for document_id, amount in normalized:
        per_document[document_id] = per_document.get(document_id, 0) + amount

    query = (
        db.session.query(doc_model)
        .filter(doc_model.tenant_id == tenant_id, doc_model.id.in_(sorted(per_document)))
        .order_by(doc_model.id.asc())
    )
    documents = {doc.id: doc for doc in lock_for_update(query).all()}

    for document_id, amount in per_document.items():
        document = documents.get(document_id)
        if document is None:
            raise DocumentNotFound("Allocation target not found", {"kind": doc_kind, "document_id": document_id})
        if getattr(document, party_field) != getattr(payment, party_field):
            raise ValidationError(
                "Allocation target belongs to a different party",
                {"document_id": document_id, party_field: getattr(document, party_field)},
            )
        require_payable(doc_kind, document.status, document_id=document_id)
        balance = document.balance_due_cents
        if amount > balance:
            raise OverAllocation(
                "Allocation exceeds the document balance",
                {"document_id": document_id, "requested_cents": amount, "balance_due_cents": balance},
            )

    now = utcnow()
    allocation_model = cfg["allocation_model"]
    for document_id, amount in normalized:
        payment.allocations.append(
            allocation_model(**{cfg["document_fk"]: document_id, "amount_cents": amount, "allocated_at": now})
        )
    for document_id, amount in per_document.items():
        _apply_paid(documents[document_id], amount)
    _recompute_unallocated(payment)


def _recompute_unallocated(payment) -> None:
    allocated = sum(a.amount_cents for a in payment.active_allocations)
    payment.unallocated_cents = payment.amount_cents - allocated if payment.status == "posted" else 0


def allocate_payment(tenant_id: int, kind: str, payment_id: int, allocations):
    """
    Apply a batch of allocations to a posted payment.

    Args:
        kind: "customer_payment" (targets invoices) or "supplier_payment" (targets bills)
        allocations: [{"document_id": int, "amount_cents": int}, ...]
    """
    def _op():
        payment = get_payment(tenant_id, kind, payment_id, lock=True)
        _allocate_inner(tenant_id, kind, payment, allocations)
        db.session.commit()
        return payment

    return run_with_retry(_op)


def unallocate_all(payment) -> list[int]:
    """
    Undo every active allocation of `payment` and re-derive target statuses.

    Runs inside the caller's unit of work. Returns the affected document ids.
    """
    cfg = PAYMENT_KINDS["customer_payment" if isinstance(payment, CustomerPayment) else "supplier_payment"]
    doc_model = cfg["document_model"]
    active = payment.active_allocations
    totals: dict[int, int] = {}
    for allocation in active:
        totals[allocation.document_id] = totals.get(allocation.document_id, 0) + allocation.amount_cents

    if totals:
        query = (
            db.session.query(doc_model)
            .filter(doc_model.tenant_id == payment.tenant_id, doc_model.id.in_(sorted(totals)))
            .order_by(doc_model.id.asc())
        )
        documents = {doc.id: doc for doc in lock_for_update(query).all()}
        for document_id, amount in totals.items():
            _apply_paid(documents[document_id], -amount)

    now = utcnow()
    for allocation in active:
        allocation.reversed_at = now
    _recompute_unallocated(payment)
    return list(totals)
