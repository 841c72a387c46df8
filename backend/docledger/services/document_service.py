# Overview: Gapless per-tenant document numbering.

from __future__ import annotations

import re
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateNumber, ValidationError
from ..extensions import db
from ..models import (
    CustomerPayment,
    DocumentCounter,
    GoodsReceivedVoucher,
    SalesInvoice,
    SalesQuote,
    SupplierBill,
    SupplierPayment,
)
from ..time_utils import period_stamp, utcnow
from .concurrency import run_with_retry


# kind -> (counter key stem, printed prefix, period granularity, padding)
NUMBERING = {
    "quote": ("Q", "Q", "year", 6),
    "invoice": ("INV", "INV", "year", 6),
    "customer_payment": ("PAY", "PAY", "year", 6),
    "supplier_payment": ("SP", "SP", "year", 6),
    "grv": ("GRV", "GRV", "month", 6),
    "supplier_bill": ("BILL", "BILL", "year", 6),
}

_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<period>\d{4}|\d{6})-(?P<seq>\d+)$")


def _read_next_number(tenant_id: int, key: str) -> int | None:
    return (
        db.session.query(DocumentCounter.next_number)
        .filter_by(tenant_id=tenant_id, key=key)
        .scalar()
    )


def _increment(tenant_id: int, key: str) -> int:
    stmt = (
        update(DocumentCounter)
        .where(
            DocumentCounter.tenant_id == tenant_id,
            DocumentCounter.key == key,
        )
        .values(next_number=DocumentCounter.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def _claim_from_update(tenant_id: int, key: str) -> int:
    current = _read_next_number(tenant_id, key)
    if current is None or current < 2:
        raise DuplicateNumber(
            "Document counter read-back is inconsistent",
            {"tenant_id": tenant_id, "key": key, "next_number": current},
        )
    return current - 1


def _next_document_number_inner(
    tenant_id: int,
    key: str,
    *,
    prefix: str = "",
    padding: int = 5,
) -> str:
    """Core read-increment-return without retry or commit.

    Runs inside the caller's unit of work so the number is only consumed if
    the document that carries it is committed too.
    """
    if not tenant_id:
        raise ValidationError("tenant_id is required")
    if not key:
        raise ValidationError("counter key is required")

    rowcount = _increment(tenant_id, key)
    if rowcount == 1:
        n = _claim_from_update(tenant_id, key)
    elif rowcount == 0:
        # First use: create the row having already handed out 1.
        try:
            with db.session.begin_nested():
                db.session.add(
                    DocumentCounter(
                        tenant_id=tenant_id,
                        key=key,
                        next_number=2,
                        prefix=prefix,
                        padding=padding,
                    )
                )
            n = 1
        except IntegrityError:
            # Lost the insert race; the row exists now.
            if _increment(tenant_id, key) != 1:
                raise DuplicateNumber(
                    "Document counter missing after insert conflict",
                    {"tenant_id": tenant_id, "key": key},
                )
            n = _claim_from_update(tenant_id, key)
    else:
        raise DuplicateNumber(
            "Document counter update touched more than one row",
            {"tenant_id": tenant_id, "key": key, "rowcount": rowcount},
        )

    return f"{prefix}{n:0{padding}d}"


def next_document_number(
    tenant_id: int,
    key: str,
    *,
    prefix: str = "",
    padding: int = 5,
) -> str:
    """
    Atomically allocate the next number for (tenant_id, key).

    Standalone unit of work: commits on success. Numbers are gapless and
    strictly increasing per key.
    """
    def _op() -> str:
        number = _next_document_number_inner(tenant_id, key, prefix=prefix, padding=padding)
        db.session.commit()
        return number

    return run_with_retry(_op)


def counter_key_for(kind: str, when: datetime | None = None) -> tuple[str, str, int]:
    """Return (counter key, printed prefix, padding) for a document kind."""
    if kind not in NUMBERING:
        raise ValidationError(f"Unknown document kind: {kind}", {"kind": kind})
    stem, printed, period, padding = NUMBERING[kind]
    when = when or utcnow()
    stamp = period_stamp(when, period)
    return f"{stem}_{stamp}", f"{printed}-{stamp}-", padding


def _next_number_for_inner(tenant_id: int, kind: str, *, when: datetime | None = None) -> str:
    key, prefix, padding = counter_key_for(kind, when)
    return _next_document_number_inner(tenant_id, key, prefix=prefix, padding=padding)


def next_number_for(tenant_id: int, kind: str, *, when: datetime | None = None) -> str:
    """Per-kind number, e.g. INV-2026-000001 or GRV-202610-000001."""
    def _op() -> str:
        number = _next_number_for_inner(tenant_id, kind, when=when)
        db.session.commit()
        return number

    return run_with_retry(_op)


def parse_document_number(number: str | None):
    """'INV-2026-000042' -> ('INV', 2026, 42); None if the shape is unknown."""
    if not number:
        return None
    match = _NUMBER_RE.match(number.strip())
    if not match:
        return None
    return match.group("prefix"), int(match.group("period")[:4]), int(match.group("seq"))


def peek_counter(tenant_id: int, key: str) -> DocumentCounter | None:
    return DocumentCounter.query.filter_by(tenant_id=tenant_id, key=key).first()


# kind -> (model, column holding its printed number)
NUMBER_COLUMNS = {
    "quote": (SalesQuote, SalesQuote.quote_number),
    "invoice": (SalesInvoice, SalesInvoice.invoice_number),
    "customer_payment": (CustomerPayment, CustomerPayment.payment_number),
    "supplier_payment": (SupplierPayment, SupplierPayment.payment_number),
    "grv": (GoodsReceivedVoucher, GoodsReceivedVoucher.grv_number),
    "supplier_bill": (SupplierBill, SupplierBill.bill_number),
}


def audit_numbering(tenant_id: int, kind: str, *, when: datetime | None = None) -> dict:
    """
    Compare the numbers stored on `kind` documents for one period with the counter.

    Every number from 1 up to next_number - 1 should be on exactly one
    document. Returns the counter key, the counter position, and any
    missing, duplicated or out-of-range sequence numbers.
    """
    key, prefix, _ = counter_key_for(kind, when)
    model, column = NUMBER_COLUMNS[kind]
    counter = peek_counter(tenant_id, key)
    next_number = counter.next_number if counter is not None else 1

    rows = (
        db.session.query(column)
        .filter(model.tenant_id == tenant_id, column.like(f"{prefix}%"))
        .all()
    )
    seen: dict[int, int] = {}
    for (number,) in rows:
        parsed = parse_document_number(number)
        if parsed is None:
            continue
        seq = parsed[2]
        seen[seq] = seen.get(seq, 0) + 1

    return {
        "kind": kind,
        "key": key,
        "next_number": next_number,
        "issued": len(rows),
        "missing": [n for n in range(1, next_number) if n not in seen],
        "duplicates": sorted(n for n, count in seen.items() if count > 1),
        "ahead_of_counter": sorted(n for n in seen if n >= next_number),
    }
