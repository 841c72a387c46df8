# Overview: Service-layer operations for sales invoices.

"""
Sales Invoice Service

LIFECYCLE:
    draft -> issued -> partially_paid -> paid      (payment-driven)
    draft | issued -> cancelled                    (only while nothing is paid)

WHY numbering at issue: drafts can be abandoned; only issued invoices consume
a number, so the INV sequence has no gaps from discarded drafts.

OVERDUE is derived, never stored. effective_status() reports `overdue` for an
issued or partially_paid invoice once `now > due_date`; the stored status stays
put so allocations keep working against it.

Issuing does NOT move stock. Stock leaves via inventory_service.consume().
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from ..errors import DocumentNotFound, InvalidTransition, ValidationError
from ..extensions import db
from ..models import SalesInvoice, SalesInvoiceLine
from ..time_utils import utcnow
from ..validation import clean_text, parse_datetime_field, require_list, require_non_negative
from .concurrency import lock_for_update, run_with_retry
from .document_service import _next_number_for_inner
from .lifecycle_service import plan_transition
from .sales_common import build_line, find_line, next_line_no, recompute_totals, resolve_vat_settings
from .tenant_service import get_client


OVERDUE_CANDIDATES = {"issued", "partially_paid"}


def get_invoice(tenant_id: int, invoice_id: int, *, lock: bool = False) -> SalesInvoice:
    query = db.session.query(SalesInvoice).filter_by(tenant_id=tenant_id, id=invoice_id)
    if lock:
        query = lock_for_update(query)
    invoice = query.first()
    if invoice is None:
        raise DocumentNotFound("Invoice not found", {"invoice_id": invoice_id})
    return invoice


def effective_status(invoice: SalesInvoice, now: datetime | None = None) -> str:
    now = now or utcnow()
    if invoice.status in OVERDUE_CANDIDATES and invoice.due_date is not None and now > invoice.due_date:
        return "overdue"
    return invoice.status


def invoice_to_dict(invoice: SalesInvoice, now: datetime | None = None) -> dict:
    return invoice.to_dict(effective_status=effective_status(invoice, now))


def _resolve_terms(payment_terms_days) -> int:
    if payment_terms_days is None:
        payment_terms_days = current_app.config.get("LEDGER_DEFAULT_PAYMENT_TERMS_DAYS", 30)
    return require_non_negative(payment_terms_days, "payment_terms_days")


def _create_invoice_inner(
    tenant_id: int,
    *,
    client,
    vat_mode: str,
    vat_rate_bps: int,
    payment_terms_days: int,
    notes: str | None = None,
    source_quote_id: int | None = None,
) -> SalesInvoice:
    """Draft invoice without lines. Unnumbered until issued."""
    invoice = SalesInvoice(
        tenant_id=tenant_id,
        invoice_number=None,
        client_id=client.id,
        client_snapshot=client.snapshot(),
        status="draft",
        vat_mode=vat_mode,
        vat_rate_bps=vat_rate_bps,
        payment_terms_days=payment_terms_days,
        source_quote_id=source_quote_id,
        notes=notes,
        amount_paid_cents=0,
        balance_due_cents=0,
    )
    db.session.add(invoice)
    return invoice


def create_invoice(
    tenant_id: int,
    *,
    client_id: int,
    vat_mode: str | None = None,
    vat_rate_bps: int | None = None,
    payment_terms_days: int | None = None,
    notes: str | None = None,
    lines=None,
) -> SalesInvoice:
    vat_mode, vat_rate_bps = resolve_vat_settings(vat_mode, vat_rate_bps)
    terms = _resolve_terms(payment_terms_days)
    line_payloads = require_list(lines, "lines")
    notes = clean_text(notes, "notes", max_length=4000) or None

    def _op() -> SalesInvoice:
        client = get_client(tenant_id, client_id)
        invoice = _create_invoice_inner(
            tenant_id,
            client=client,
            vat_mode=vat_mode,
            vat_rate_bps=vat_rate_bps,
            payment_terms_days=terms,
            notes=notes,
        )
        for index, payload in enumerate(line_payloads, start=1):
            invoice.lines.append(build_line(SalesInvoiceLine, tenant_id, payload, index))
        recompute_totals(invoice)
        invoice.balance_due_cents = invoice.total_cents
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def add_invoice_line(tenant_id: int, invoice_id: int, payload: dict) -> SalesInvoice:
    def _op() -> SalesInvoice:
        invoice = get_invoice(tenant_id, invoice_id, lock=True)
        plan_transition("invoice", invoice.status, "edit", document_id=invoice.id)
        invoice.lines.append(build_line(SalesInvoiceLine, tenant_id, payload, next_line_no(invoice)))
        recompute_totals(invoice)
        invoice.balance_due_cents = invoice.total_cents
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def remove_invoice_line(tenant_id: int, invoice_id: int, line_id: int) -> SalesInvoice:
    def _op() -> SalesInvoice:
        invoice = get_invoice(tenant_id, invoice_id, lock=True)
        plan_transition("invoice", invoice.status, "edit", document_id=invoice.id)
        invoice.lines.remove(find_line(invoice, line_id))
        recompute_totals(invoice)
        invoice.balance_due_cents = invoice.total_cents
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def issue_invoice(tenant_id: int, invoice_id: int, *, issue_date=None) -> SalesInvoice:
    """
    draft -> issued.

    Assigns the INV number (if none yet), issue_date and
    due_date = issue_date + payment_terms_days. Totals are re-confirmed from
    the lines so balance_due starts at the true total.
    """
    issue_dt = parse_datetime_field(issue_date, "issue_date")

    def _op() -> SalesInvoice:
        invoice = get_invoice(tenant_id, invoice_id, lock=True)
        new_status = plan_transition("invoice", invoice.status, "issue", document_id=invoice.id)
        if not invoice.lines:
            raise ValidationError("Invoice requires at least one line before issuing", {"invoice_id": invoice.id})

        now = utcnow()
        issued_on = issue_dt or now
        if not invoice.invoice_number:
            invoice.invoice_number = _next_number_for_inner(tenant_id, "invoice", when=issued_on)
        recompute_totals(invoice)
        invoice.status = new_status
        invoice.issued_at = now
        invoice.issue_date = issued_on
        invoice.due_date = issued_on + timedelta(days=invoice.payment_terms_days)
        invoice.amount_paid_cents = 0
        invoice.balance_due_cents = invoice.total_cents
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def cancel_invoice(tenant_id: int, invoice_id: int) -> SalesInvoice:
    """draft|issued -> cancelled, refused once any payment is allocated."""
    def _op() -> SalesInvoice:
        invoice = get_invoice(tenant_id, invoice_id, lock=True)
        if invoice.amount_paid_cents > 0:
            raise InvalidTransition(
                "Cannot cancel an invoice with payments allocated; reverse the payments first",
                kind="invoice",
                document_id=invoice.id,
                action="cancel",
                current_status=invoice.status,
                details={"amount_paid_cents": invoice.amount_paid_cents},
            )
        invoice.status = plan_transition("invoice", invoice.status, "cancel", document_id=invoice.id)
        invoice.cancelled_at = utcnow()
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def list_overdue_candidates(tenant_id: int, now: datetime | None = None) -> list[SalesInvoice]:
    now = now or utcnow()
    return (
        SalesInvoice.query.filter(
            SalesInvoice.tenant_id == tenant_id,
            SalesInvoice.status.in_(sorted(OVERDUE_CANDIDATES)),
            SalesInvoice.due_date.isnot(None),
            SalesInvoice.due_date < now,
        )
        .order_by(SalesInvoice.due_date.asc(), SalesInvoice.id.asc())
        .all()
    )
