# Overview: Periodic housekeeping: stamp overdue invoices, expire stale quotes.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import SalesQuote
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .invoice_service import list_overdue_candidates
from .lifecycle_service import plan_transition


def sweep_overdue(tenant_id: int, now: datetime | None = None) -> int:
    """
    Stamp overdue_at on invoices past due for the first time.

    Status is not changed: overdue is derived on read. Returns the number of
    invoices newly stamped.
    """
    now = now or utcnow()

    def _op() -> int:
        stamped = 0
        for invoice in list_overdue_candidates(tenant_id, now):
            if invoice.overdue_at is None:
                invoice.overdue_at = now
                stamped += 1
        db.session.commit()
        return stamped

    count = run_with_retry(_op)
    current_app.logger.info("Overdue sweep tenant=%s stamped=%s", tenant_id, count)
    return count


def expire_quotes(tenant_id: int, now: datetime | None = None) -> int:
    """sent -> expired for quotes whose valid_until has passed."""
    now = now or utcnow()

    def _op() -> int:
        quotes = (
            SalesQuote.query.filter(
                SalesQuote.tenant_id == tenant_id,
                SalesQuote.status == "sent",
                SalesQuote.valid_until.isnot(None),
                SalesQuote.valid_until < now,
            )
            .order_by(SalesQuote.id.asc())
            .all()
        )
        for quote in quotes:
            quote.status = plan_transition("quote", quote.status, "expire", document_id=quote.id)
            quote.expired_at = now
        db.session.commit()
        return len(quotes)

    count = run_with_retry(_op)
    current_app.logger.info("Quote expiry sweep tenant=%s expired=%s", tenant_id, count)
    return count
