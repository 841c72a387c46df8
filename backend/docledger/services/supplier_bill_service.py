# Overview: Service-layer operations for supplier bills.

"""
Supplier Bill Service

LIFECYCLE:
    Draft -> Posted -> PartiallyPaid -> Paid     (payment-driven)
    Posted | PartiallyPaid -> Voided

Bills are created Draft by conversion_service.create_bill_from_grvs(); a
Draft bill has no way out other than posting.

Voiding releases the bill's GRVs (billed_by_bill_id cleared) so they can be
billed again. Voiding a bill that already has payments is allowed: the
paid amount is recorded in void_warning and logged, and the payments stay
on record for an operator to reverse.
"""

from __future__ import annotations

from flask import current_app

from ..errors import DocumentNotFound
from ..extensions import db
from ..models import SupplierBill
from ..money import format_cents
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .lifecycle_service import plan_transition


def get_bill(tenant_id: int, bill_id: int, *, lock: bool = False) -> SupplierBill:
    query = db.session.query(SupplierBill).filter_by(tenant_id=tenant_id, id=bill_id)
    if lock:
        query = lock_for_update(query)
    bill = query.first()
    if bill is None:
        raise DocumentNotFound("Supplier bill not found", {"bill_id": bill_id})
    return bill


def post_bill(tenant_id: int, bill_id: int, *, user_id: int | None = None) -> SupplierBill:
    def _op() -> SupplierBill:
        bill = get_bill(tenant_id, bill_id, lock=True)
        bill.status = plan_transition("supplier_bill", bill.status, "post", document_id=bill.id)
        bill.posted_at = utcnow()
        bill.posted_by_user_id = user_id
        db.session.commit()
        return bill

    return run_with_retry(_op)


def void_bill(tenant_id: int, bill_id: int, *, user_id: int | None = None) -> SupplierBill:
    def _op() -> SupplierBill:
        bill = get_bill(tenant_id, bill_id, lock=True)
        new_status = plan_transition("supplier_bill", bill.status, "void", document_id=bill.id)

        for grv in list(bill.grvs):
            grv.billed_by_bill_id = None

        if bill.paid_cents > 0:
            bill.void_warning = (
                f"Bill voided with {format_cents(bill.paid_cents)} already paid; "
                "reverse the supplier payments to release the funds"
            )

        bill.status = new_status
        bill.voided_at = utcnow()
        bill.voided_by_user_id = user_id
        db.session.commit()

        if bill.void_warning:
            current_app.logger.warning(
                "Voided supplier bill %s with paid_cents=%s", bill.bill_number, bill.paid_cents
            )
        return bill

    return run_with_retry(_op)
