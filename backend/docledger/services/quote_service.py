# Overview: Service-layer operations for sales quotes.

"""
Sales Quote Service

LIFECYCLE: draft -> sent -> accepted | rejected | expired

- Lines can only change while draft.
- A quote needs at least one line to be sent.
- Accepted quotes are converted by conversion_service, at most once.
- Sent quotes past valid_until are expired by the sweep (sweep_service).
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..errors import DocumentNotFound, ValidationError
from ..extensions import db
from ..models import SalesQuote, SalesQuoteLine
from ..time_utils import utcnow
from ..validation import clean_text, parse_datetime_field, require_list
from .concurrency import lock_for_update, run_with_retry
from .document_service import _next_number_for_inner
from .lifecycle_service import plan_transition
from .sales_common import build_line, find_line, next_line_no, recompute_totals, resolve_vat_settings
from .tenant_service import get_client


def get_quote(tenant_id: int, quote_id: int, *, lock: bool = False) -> SalesQuote:
    query = db.session.query(SalesQuote).filter_by(tenant_id=tenant_id, id=quote_id)
    if lock:
        query = lock_for_update(query)
    quote = query.first()
    if quote is None:
        raise DocumentNotFound("Quote not found", {"quote_id": quote_id})
    return quote


def create_quote(
    tenant_id: int,
    *,
    client_id: int,
    vat_mode: str | None = None,
    vat_rate_bps: int | None = None,
    valid_until=None,
    notes: str | None = None,
    lines=None,
) -> SalesQuote:
    vat_mode, vat_rate_bps = resolve_vat_settings(vat_mode, vat_rate_bps)
    valid_dt = parse_datetime_field(valid_until, "valid_until")
    line_payloads = require_list(lines, "lines")

    def _op() -> SalesQuote:
        client = get_client(tenant_id, client_id)
        now = utcnow()
        quote = SalesQuote(
            tenant_id=tenant_id,
            quote_number=_next_number_for_inner(tenant_id, "quote", when=now),
            client_id=client.id,
            client_snapshot=client.snapshot(),
            status="draft",
            vat_mode=vat_mode,
            vat_rate_bps=vat_rate_bps,
            valid_until=valid_dt
            or now + timedelta(days=current_app.config.get("LEDGER_DEFAULT_QUOTE_VALIDITY_DAYS", 30)),
            notes=clean_text(notes, "notes", max_length=4000) or None,
        )
        db.session.add(quote)
        for index, payload in enumerate(line_payloads, start=1):
            quote.lines.append(build_line(SalesQuoteLine, tenant_id, payload, index))
        recompute_totals(quote)
        db.session.commit()
        return quote

    return run_with_retry(_op)


def add_quote_line(tenant_id: int, quote_id: int, payload: dict) -> SalesQuote:
    def _op() -> SalesQuote:
        quote = get_quote(tenant_id, quote_id, lock=True)
        plan_transition("quote", quote.status, "edit", document_id=quote.id)
        quote.lines.append(build_line(SalesQuoteLine, tenant_id, payload, next_line_no(quote)))
        recompute_totals(quote)
        db.session.commit()
        return quote

    return run_with_retry(_op)


def remove_quote_line(tenant_id: int, quote_id: int, line_id: int) -> SalesQuote:
    def _op() -> SalesQuote:
        quote = get_quote(tenant_id, quote_id, lock=True)
        plan_transition("quote", quote.status, "edit", document_id=quote.id)
        quote.lines.remove(find_line(quote, line_id))
        recompute_totals(quote)
        db.session.commit()
        return quote

    return run_with_retry(_op)


def _transition(tenant_id: int, quote_id: int, action: str, stamp_field: str) -> SalesQuote:
    def _op() -> SalesQuote:
        quote = get_quote(tenant_id, quote_id, lock=True)
        new_status = plan_transition("quote", quote.status, action, document_id=quote.id)
        if action == "send" and not quote.lines:
            raise ValidationError("Quote requires at least one line before sending", {"quote_id": quote.id})
        quote.status = new_status
        setattr(quote, stamp_field, utcnow())
        db.session.commit()
        return quote

    return run_with_retry(_op)


def send_quote(tenant_id: int, quote_id: int) -> SalesQuote:
    return _transition(tenant_id, quote_id, "send", "sent_at")


def accept_quote(tenant_id: int, quote_id: int) -> SalesQuote:
    return _transition(tenant_id, quote_id, "accept", "accepted_at")


def reject_quote(tenant_id: int, quote_id: int) -> SalesQuote:
    return _transition(tenant_id, quote_id, "reject", "rejected_at")


def expire_quote(tenant_id: int, quote_id: int) -> SalesQuote:
    return _transition(tenant_id, quote_id, "expire", "expired_at")
