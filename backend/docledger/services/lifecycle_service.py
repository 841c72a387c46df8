# Overview: Transition tables for every document kind and the shared transition check.

"""
Document Lifecycle Service

================================================================================
PURPOSE: One table per document kind; every status change goes through here
================================================================================

STATE MACHINES:

    GRV:            Draft -> Posted -> Cancelled
                    Draft -> Cancelled
    Quote:          draft -> sent -> accepted | rejected | expired
    Invoice:        draft -> issued -> partially_paid -> paid
                    draft | issued -> cancelled          (nothing paid)
    Supplier bill:  Draft -> Posted -> PartiallyPaid -> Paid
                    Posted | PartiallyPaid -> Voided
    Payment:        posted -> reversed

RULES (NON-NEGOTIABLE):
1. A (status, action) pair missing from the table is an InvalidTransition.
2. Payment-driven statuses (partially_paid/paid, PartiallyPaid/Paid) are never
   requested directly; they are derived from paid vs total.
3. Invoice `overdue` is not a stored status; see invoice_service.effective_status.
4. Re-invoking a completed transition fails here instead of repeating effects.

================================================================================
"""

from __future__ import annotations

from ..errors import InvalidTransition


TRANSITIONS: dict[str, dict[tuple[str, str], str]] = {
    "grv": {
        ("Draft", "edit"): "Draft",
        ("Draft", "post"): "Posted",
        ("Draft", "cancel"): "Cancelled",
        ("Posted", "cancel"): "Cancelled",
    },
    "quote": {
        ("draft", "edit"): "draft",
        ("draft", "send"): "sent",
        ("sent", "accept"): "accepted",
        ("sent", "reject"): "rejected",
        ("sent", "expire"): "expired",
        ("accepted", "convert"): "accepted",
    },
    "invoice": {
        ("draft", "edit"): "draft",
        ("draft", "issue"): "issued",
        ("draft", "cancel"): "cancelled",
        ("issued", "cancel"): "cancelled",
    },
    "supplier_bill": {
        ("Draft", "post"): "Posted",
        ("Posted", "void"): "Voided",
        ("PartiallyPaid", "void"): "Voided",
    },
    "customer_payment": {
        ("posted", "reverse"): "reversed",
    },
    "supplier_payment": {
        ("posted", "reverse"): "reversed",
    },
}

# Statuses that accept payment allocations
PAYABLE_STATUSES = {
    "invoice": {"issued", "partially_paid"},
    "supplier_bill": {"Posted", "PartiallyPaid"},
}


def plan_transition(
    kind: str,
    current_status: str,
    action: str,
    *,
    document_id: int | None = None,
) -> str:
    """
    Return the status `action` moves a `kind` document to from `current_status`.

    Raises:
        InvalidTransition: carrying kind, document id, action and current status.
    """
    table = TRANSITIONS.get(kind)
    if table is None:
        raise InvalidTransition(
            f"Unknown document kind '{kind}'",
            kind=kind,
            document_id=document_id,
            action=action,
            current_status=current_status,
        )
    target = table.get((current_status, action))
    if target is None:
        raise InvalidTransition(
            f"Cannot {action} {kind} in status '{current_status}'",
            kind=kind,
            document_id=document_id,
            action=action,
            current_status=current_status,
        )
    return target


def allowed_actions(kind: str, current_status: str) -> list[str]:
    return sorted(action for (status, action) in TRANSITIONS.get(kind, {}) if status == current_status)


def require_payable(kind: str, current_status: str, *, document_id: int | None = None) -> None:
    if current_status not in PAYABLE_STATUSES.get(kind, set()):
        raise InvalidTransition(
            f"Cannot allocate payment to {kind} in status '{current_status}'",
            kind=kind,
            document_id=document_id,
            action="allocate",
            current_status=current_status,
        )


def derive_invoice_status(total_cents: int, amount_paid_cents: int) -> str:
    if amount_paid_cents <= 0:
        return "issued"
    if amount_paid_cents >= total_cents:
        return "paid"
    return "partially_paid"


def derive_bill_status(total_cents: int, paid_cents: int) -> str:
    if paid_cents <= 0:
        return "Posted"
    if paid_cents >= total_cents:
        return "Paid"
    return "PartiallyPaid"
