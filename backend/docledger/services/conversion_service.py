# Overview: Derive one document from another (quote -> invoice, GRVs -> supplier bill).

"""
Conversion Engine

Conversions copy snapshots, they never re-read live master data:

- convert_quote_to_invoice: accepted quote -> new draft invoice, lines copied
  verbatim (snapshot fields and pricing), totals recomputed from the copies.
  A quote converts at most once (related_invoice_id).
- create_bill_from_grvs: Posted, unbilled GRVs of one supplier -> new Draft
  supplier bill. GRV line amounts are copied as-is, not recomputed, so the
  bill matches what was received.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..errors import DocumentNotFound, InvalidTransition, ValidationError
from ..extensions import db
from ..models import GoodsReceivedVoucher, SalesInvoiceLine, SupplierBill, SupplierBillLine
from ..money import sum_grv_totals
from ..time_utils import utcnow
from ..validation import clean_text, coerce_int, parse_datetime_field, require_list
from .concurrency import lock_for_update, run_with_retry
from .document_service import _next_number_for_inner
from .invoice_service import _create_invoice_inner, _resolve_terms
from .lifecycle_service import plan_transition
from .quote_service import get_quote
from .sales_common import recompute_totals

_COPIED_LINE_FIELDS = (
    "line_no",
    "stock_item_id",
    "sku_snapshot",
    "name_snapshot",
    "description",
    "qty",
    "unit_price_cents",
    "discount_cents",
    "taxable",
    "is_vat_exempt",
    "line_total_cents",
)


def convert_quote_to_invoice(tenant_id: int, quote_id: int, *, payment_terms_days: int | None = None):
    """accepted quote -> draft invoice linked by source_quote_id."""
    terms = _resolve_terms(payment_terms_days)

    def _op():
        quote = get_quote(tenant_id, quote_id, lock=True)
        plan_transition("quote", quote.status, "convert", document_id=quote.id)
        if quote.related_invoice_id is not None:
            raise InvalidTransition(
                "Quote has already been converted",
                kind="quote",
                document_id=quote.id,
                action="convert",
                current_status=quote.status,
                details={"related_invoice_id": quote.related_invoice_id},
            )

        invoice = _create_invoice_inner(
            tenant_id,
            client=quote.client,
            vat_mode=quote.vat_mode,
            vat_rate_bps=quote.vat_rate_bps,
            payment_terms_days=terms,
            notes=quote.notes,
            source_quote_id=quote.id,
        )
        # Party snapshot follows the quote, not the live client row.
        invoice.client_snapshot = quote.client_snapshot
        for line in quote.lines:
            invoice.lines.append(SalesInvoiceLine(**{f: getattr(line, f) for f in _COPIED_LINE_FIELDS}))
        recompute_totals(invoice)
        invoice.balance_due_cents = invoice.total_cents
        db.session.flush()

        quote.related_invoice_id = invoice.id
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def create_bill_from_grvs(
    tenant_id: int,
    grv_ids,
    *,
    bill_date=None,
    reference: str | None = None,
    payment_terms_days: int | None = None,
):
    """Posted GRVs of one supplier -> one Draft supplier bill."""
    ids = [coerce_int(g, "grv_id") for g in require_list(grv_ids, "grv_ids")]
    if not ids:
        raise ValidationError("At least one GRV is required", {"field": "grv_ids"})
    if len(set(ids)) != len(ids):
        raise ValidationError("Duplicate GRV ids", {"grv_ids": ids})
    bill_dt = parse_datetime_field(bill_date, "bill_date") or utcnow()
    terms = _resolve_terms(payment_terms_days)
    reference = clean_text(reference, "reference", max_length=128) or None

    def _op():
        query = (
            db.session.query(GoodsReceivedVoucher)
            .filter(GoodsReceivedVoucher.tenant_id == tenant_id, GoodsReceivedVoucher.id.in_(sorted(ids)))
            .order_by(GoodsReceivedVoucher.id.asc())
        )
        grvs = {grv.id: grv for grv in lock_for_update(query).all()}
        missing = [i for i in ids if i not in grvs]
        if missing:
            raise DocumentNotFound("GRV not found", {"grv_ids": missing})

        ordered = [grvs[i] for i in ids]
        supplier_ids = {grv.supplier_id for grv in ordered}
        if len(supplier_ids) != 1 or None in supplier_ids:
            raise ValidationError("All GRVs must belong to the same supplier", {"supplier_ids": [g.supplier_id for g in ordered]})
        for grv in ordered:
            if grv.status != "Posted":
                raise InvalidTransition(
                    "Only Posted GRVs can be billed",
                    kind="grv",
                    document_id=grv.id,
                    action="bill",
                    current_status=grv.status,
                )
            if grv.billed_by_bill_id is not None:
                raise InvalidTransition(
                    "GRV is already billed",
                    kind="grv",
                    document_id=grv.id,
                    action="bill",
                    current_status=grv.status,
                    details={"billed_by_bill_id": grv.billed_by_bill_id},
                )

        first = ordered[0]
        bill = SupplierBill(
            tenant_id=tenant_id,
            bill_number=_next_number_for_inner(tenant_id, "supplier_bill", when=bill_dt),
            supplier_id=first.supplier_id,
            supplier_snapshot=first.supplier_snapshot,
            bill_date=bill_dt,
            due_date=bill_dt + timedelta(days=terms),
            reference=reference,
            status="Draft",
            paid_cents=0,
        )
        line_no = 0
        for grv in ordered:
            for grv_line in grv.lines:
                line_no += 1
                bill.lines.append(
                    SupplierBillLine(
                        line_no=line_no,
                        grv_id=grv.id,
                        grv_line_id=grv_line.id,
                        stock_item_id=grv_line.stock_item_id,
                        sku=grv_line.sku,
                        name=grv_line.name,
                        quantity=grv_line.received_qty,
                        unit_cost_cents=grv_line.unit_cost_cents,
                        discount_cents=grv_line.discount_cents,
                        subtotal_cents=grv_line.subtotal_cents,
                        vat_amount_cents=grv_line.vat_amount_cents,
                        total_cents=grv_line.total_cents,
                    )
                )
        totals = sum_grv_totals(bill.lines)
        bill.subtotal_cents = totals["subtotal_cents"]
        bill.vat_total_cents = totals["vat_total_cents"]
        bill.total_cents = totals["grand_total_cents"]
        db.session.add(bill)
        db.session.flush()

        for grv in ordered:
            grv.billed_by_bill_id = bill.id
        db.session.commit()
        current_app.logger.info("Created %s from %s GRVs", bill.bill_number, len(ordered))
        return bill

    return run_with_retry(_op)
