# Overview: Line and totals handling shared by quotes and invoices.

from __future__ import annotations

from flask import current_app

from ..errors import DocumentNotFound, ValidationError
from ..money import MoneyLine, VAT_MODES, document_totals, line_total
from ..validation import clean_text, require_amount_cents, require_choice, require_non_negative, require_positive
from .inventory_service import get_stock_item


def resolve_vat_settings(vat_mode=None, vat_rate_bps=None) -> tuple[str, int]:
    if vat_mode is None:
        vat_mode = current_app.config.get("LEDGER_DEFAULT_VAT_MODE", "exclusive")
    if vat_rate_bps is None:
        vat_rate_bps = current_app.config.get("LEDGER_DEFAULT_VAT_RATE_BPS", 1500)
    return require_choice(vat_mode, "vat_mode", VAT_MODES), require_non_negative(vat_rate_bps, "vat_rate_bps")


def build_line(model, tenant_id: int, payload: dict, line_no: int):
    """
    Build a quote/invoice line from a payload.

    With a stock_item_id the SKU, name, VAT exemption and default price are
    snapshotted from the item; without one a name is required.
    """
    if not isinstance(payload, dict):
        raise ValidationError("line must be an object")

    item = None
    if payload.get("stock_item_id") is not None:
        item = get_stock_item(tenant_id, payload["stock_item_id"])

    name = clean_text(payload.get("name") or (item.name if item else None), "name", max_length=255, required=True)
    unit_price = payload.get("unit_price_cents")
    if unit_price is None:
        if item is None:
            raise ValidationError("unit_price_cents is required", {"field": "unit_price_cents"})
        unit_price = item.sale_price_cents
    is_vat_exempt = payload.get("is_vat_exempt")
    if is_vat_exempt is None:
        is_vat_exempt = item.is_vat_exempt if item else False

    qty = require_positive(payload.get("qty"), "qty")
    unit_price = require_amount_cents(unit_price, "unit_price_cents")
    discount = require_amount_cents(payload.get("discount_cents", 0), "discount_cents")

    return model(
        line_no=line_no,
        stock_item_id=item.id if item else None,
        sku_snapshot=item.sku if item else None,
        name_snapshot=name,
        description=clean_text(payload.get("description"), "description", max_length=2000) or None,
        qty=qty,
        unit_price_cents=unit_price,
        discount_cents=discount,
        taxable=bool(payload.get("taxable", True)),
        is_vat_exempt=bool(is_vat_exempt),
        line_total_cents=line_total(qty, unit_price, discount),
    )


def next_line_no(doc) -> int:
    return max((l.line_no for l in doc.lines), default=0) + 1


def find_line(doc, line_id):
    for line in doc.lines:
        if line.id == line_id:
            return line
    raise DocumentNotFound("Line not found", {"document_id": doc.id, "line_id": line_id})


def recompute_totals(doc) -> None:
    """Refresh line totals and the header sub/vat/total from the lines."""
    money_lines = []
    for line in doc.lines:
        line.line_total_cents = line_total(line.qty, line.unit_price_cents, line.discount_cents)
        money_lines.append(
            MoneyLine(
                qty=line.qty,
                unit_price_cents=line.unit_price_cents,
                discount_cents=line.discount_cents,
                taxable=line.taxable,
                is_vat_exempt=line.is_vat_exempt,
            )
        )
    totals = document_totals(money_lines, doc.vat_rate_bps, doc.vat_mode)
    doc.sub_total_cents = totals.sub_total_cents
    doc.vat_total_cents = totals.vat_total_cents
    doc.total_cents = totals.total_cents
