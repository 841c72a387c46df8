# Overview: Single dispatch point from (kind, action, payload) to the document services.

"""
Action boundary.

perform_action(tenant_id, kind, document_id, action, payload) is what the
JSON routes call. It maps a camelCase action name onto a service call and
returns the updated document as a dict. Unknown actions are InvalidTransition
carrying the document's current status and the lifecycle actions open to it.

create_document(tenant_id, kind, payload) is the matching entry point for
document creation.
"""

from __future__ import annotations

from ..errors import InvalidTransition, ValidationError
from ..validation import coerce_int, optional_int
from .lifecycle_service import allowed_actions
from . import (
    allocation_service,
    conversion_service,
    grv_service,
    invoice_service,
    payment_service,
    quote_service,
    supplier_bill_service,
)


def _serialize(kind: str, doc) -> dict:
    if kind == "invoice":
        return invoice_service.invoice_to_dict(doc)
    return doc.to_dict()


def _line_id(payload: dict) -> int:
    return coerce_int(payload.get("line_id"), "line_id")


def _user(payload: dict):
    return optional_int(payload.get("user_id"), "user_id")


ACTIONS = {
    "grv": {
        "update": lambda t, i, p: grv_service.update_grv(t, i, p.get("fields") or {}),
        "addLine": lambda t, i, p: grv_service.add_grv_line(t, i, p.get("line") or {}),
        "updateLine": lambda t, i, p: grv_service.update_grv_line(t, i, _line_id(p), p.get("line") or {}),
        "removeLine": lambda t, i, p: grv_service.remove_grv_line(t, i, _line_id(p)),
        "post": lambda t, i, p: grv_service.post_grv(t, i, user_id=_user(p)),
        "cancel": lambda t, i, p: grv_service.cancel_grv(t, i, reason=p.get("reason"), user_id=_user(p)),
    },
    "quote": {
        "addLine": lambda t, i, p: quote_service.add_quote_line(t, i, p.get("line") or {}),
        "removeLine": lambda t, i, p: quote_service.remove_quote_line(t, i, _line_id(p)),
        "send": lambda t, i, p: quote_service.send_quote(t, i),
        "accept": lambda t, i, p: quote_service.accept_quote(t, i),
        "reject": lambda t, i, p: quote_service.reject_quote(t, i),
        "expire": lambda t, i, p: quote_service.expire_quote(t, i),
        "convertToInvoice": lambda t, i, p: conversion_service.convert_quote_to_invoice(
            t, i, payment_terms_days=p.get("payment_terms_days")
        ),
    },
    "invoice": {
        "addLine": lambda t, i, p: invoice_service.add_invoice_line(t, i, p.get("line") or {}),
        "removeLine": lambda t, i, p: invoice_service.remove_invoice_line(t, i, _line_id(p)),
        "issue": lambda t, i, p: invoice_service.issue_invoice(t, i, issue_date=p.get("issue_date")),
        "cancel": lambda t, i, p: invoice_service.cancel_invoice(t, i),
    },
    "supplier_bill": {
        "post": lambda t, i, p: supplier_bill_service.post_bill(t, i, user_id=_user(p)),
        "void": lambda t, i, p: supplier_bill_service.void_bill(t, i, user_id=_user(p)),
    },
    "customer_payment": {
        "allocatePayment": lambda t, i, p: allocation_service.allocate_payment(
            t, "customer_payment", i, p.get("lines")
        ),
        "reverse": lambda t, i, p: payment_service.reverse_payment(
            t, "customer_payment", i, reason=p.get("reason")
        ),
    },
    "supplier_payment": {
        "allocatePayment": lambda t, i, p: allocation_service.allocate_payment(
            t, "supplier_payment", i, p.get("lines")
        ),
        "reverse": lambda t, i, p: payment_service.reverse_payment(
            t, "supplier_payment", i, reason=p.get("reason")
        ),
    },
}

# Actions whose result is a different document than the one acted on
_RESULT_KIND = {("quote", "convertToInvoice"): "invoice"}


def perform_action(tenant_id: int, kind: str, document_id: int, action: str, payload: dict | None = None) -> dict:
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object")
    handlers = ACTIONS.get(kind)
    if handlers is None:
        raise ValidationError("Unknown document kind", {"kind": kind})
    handler = handlers.get(action)
    if handler is None:
        doc = GETTERS[kind](tenant_id, document_id)
        raise InvalidTransition(
            f"Unknown action '{action}' for {kind}",
            kind=kind,
            document_id=document_id,
            action=action,
            current_status=doc.status,
            details={
                "allowed": sorted(handlers),
                "available_now": allowed_actions(kind, doc.status),
            },
        )
    doc = handler(tenant_id, document_id, payload)
    return _serialize(_RESULT_KIND.get((kind, action), kind), doc)


CREATORS = {
    "grv": lambda t, p: grv_service.create_grv(
        t,
        supplier_id=p.get("supplier_id"),
        reference_type=p.get("reference_type"),
        reference_number=p.get("reference_number"),
        received_at=p.get("received_at"),
        notes=p.get("notes"),
        lines=p.get("lines"),
        user_id=_user(p),
    ),
    "quote": lambda t, p: quote_service.create_quote(
        t,
        client_id=p.get("client_id"),
        vat_mode=p.get("vat_mode"),
        vat_rate_bps=p.get("vat_rate_bps"),
        valid_until=p.get("valid_until"),
        notes=p.get("notes"),
        lines=p.get("lines"),
    ),
    "invoice": lambda t, p: invoice_service.create_invoice(
        t,
        client_id=p.get("client_id"),
        vat_mode=p.get("vat_mode"),
        vat_rate_bps=p.get("vat_rate_bps"),
        payment_terms_days=p.get("payment_terms_days"),
        notes=p.get("notes"),
        lines=p.get("lines"),
    ),
    "supplier_bill": lambda t, p: conversion_service.create_bill_from_grvs(
        t,
        p.get("grv_ids"),
        bill_date=p.get("bill_date"),
        reference=p.get("reference"),
        payment_terms_days=p.get("payment_terms_days"),
    ),
    "customer_payment": lambda t, p: payment_service.record_customer_payment(
        t,
        client_id=p.get("client_id"),
        amount_cents=p.get("amount_cents"),
        method=p.get("method", "eft"),
        reference=p.get("reference"),
        payment_date=p.get("payment_date"),
        notes=p.get("notes"),
        allocations=p.get("allocations"),
    ),
    "supplier_payment": lambda t, p: payment_service.record_supplier_payment(
        t,
        supplier_id=p.get("supplier_id"),
        amount_cents=p.get("amount_cents"),
        method=p.get("method", "eft"),
        reference=p.get("reference"),
        payment_date=p.get("payment_date"),
        notes=p.get("notes"),
        allocations=p.get("allocations"),
    ),
}

GETTERS = {
    "grv": grv_service.get_grv,
    "quote": quote_service.get_quote,
    "invoice": invoice_service.get_invoice,
    "supplier_bill": supplier_bill_service.get_bill,
    "customer_payment": lambda t, i: allocation_service.get_payment(t, "customer_payment", i),
    "supplier_payment": lambda t, i: allocation_service.get_payment(t, "supplier_payment", i),
}


def create_document(tenant_id: int, kind: str, payload: dict | None = None) -> dict:
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValidationError("payload must be an object")
    creator = CREATORS.get(kind)
    if creator is None:
        raise ValidationError("Unknown document kind", {"kind": kind})
    return _serialize(kind, creator(tenant_id, payload))


def get_document(tenant_id: int, kind: str, document_id: int) -> dict:
    getter = GETTERS.get(kind)
    if getter is None:
        raise ValidationError("Unknown document kind", {"kind": kind})
    return _serialize(kind, getter(tenant_id, document_id))
