# Overview: Pytest coverage for sales quotes, invoices and quote conversion.

from datetime import datetime, timedelta

import pytest

from docledger.errors import DocumentNotFound, InvalidTransition, ValidationError
from docledger.services import conversion_service, invoice_service, payment_service, quote_service, tenant_service
from docledger.services.invoice_service import effective_status
from docledger.time_utils import utcnow


def _quote(tenant, client_party, widget, **kwargs):
    return quote_service.create_quote(
        tenant.id,
        client_id=client_party.id,
        lines=[{"stock_item_id": widget.id, "qty": 2}],
        **kwargs,
    )


class TestQuotes:
    def test_create_snapshots_item_and_client(self, tenant, client_party, widget):
        quote = _quote(tenant, client_party, widget)

        assert quote.status == "draft"
        assert quote.quote_number.startswith("Q-")
        assert quote.client_snapshot["name"] == "Jane's Hardware"
        line = quote.lines[0]
        assert line.sku_snapshot == "W-001"
        assert line.unit_price_cents == 2000
        assert quote.sub_total_cents == 4000
        assert quote.vat_total_cents == 600
        assert quote.total_cents == 4600

    def test_default_validity(self, app, tenant, client_party, widget):
        quote = _quote(tenant, client_party, widget)
        days = app.config["LEDGER_DEFAULT_QUOTE_VALIDITY_DAYS"]
        assert abs((quote.valid_until - utcnow()) - timedelta(days=days)) < timedelta(minutes=1)

    def test_free_text_line_requires_price(self, tenant, client_party):
        with pytest.raises(ValidationError):
            quote_service.create_quote(tenant.id, client_id=client_party.id, lines=[{"name": "Consulting", "qty": 1}])

    def test_lifecycle(self, tenant, client_party, widget):
        quote = _quote(tenant, client_party, widget)
        quote = quote_service.send_quote(tenant.id, quote.id)
        assert quote.status == "sent"
        assert quote.sent_at is not None

        with pytest.raises(InvalidTransition):
            quote_service.add_quote_line(tenant.id, quote.id, {"stock_item_id": widget.id, "qty": 1})

        quote = quote_service.accept_quote(tenant.id, quote.id)
        assert quote.status == "accepted"

        with pytest.raises(InvalidTransition):
            quote_service.reject_quote(tenant.id, quote.id)

    def test_empty_quote_cannot_be_sent(self, tenant, client_party):
        quote = quote_service.create_quote(tenant.id, client_id=client_party.id)
        with pytest.raises(ValidationError):
            quote_service.send_quote(tenant.id, quote.id)

    def test_inclusive_quote(self, tenant, client_party):
        quote = quote_service.create_quote(
            tenant.id,
            client_id=client_party.id,
            vat_mode="inclusive",
            lines=[{"name": "Boxed kit", "qty": 1, "unit_price_cents": 11500}],
        )
        assert quote.total_cents == 11500
        assert quote.vat_total_cents == 1500
        assert quote.sub_total_cents == 10000

    def test_other_tenants_client_is_not_found(self, other_tenant, client_party):
        with pytest.raises(DocumentNotFound):
            quote_service.create_quote(other_tenant.id, client_id=client_party.id)


class TestConversion:
    def test_accepted_quote_converts_once(self, tenant, client_party, widget):
        quote = _quote(tenant, client_party, widget)
        quote_service.send_quote(tenant.id, quote.id)
        quote_service.accept_quote(tenant.id, quote.id)

        invoice = conversion_service.convert_quote_to_invoice(tenant.id, quote.id, payment_terms_days=14)

        assert invoice.status == "draft"
        assert invoice.invoice_number is None
        assert invoice.source_quote_id == quote.id
        assert invoice.payment_terms_days == 14
        assert invoice.total_cents == 4600
        assert [l.name_snapshot for l in invoice.lines] == ["Widget"]
        assert quote_service.get_quote(tenant.id, quote.id).related_invoice_id == invoice.id

        with pytest.raises(InvalidTransition):
            conversion_service.convert_quote_to_invoice(tenant.id, quote.id)

    def test_conversion_uses_snapshot_not_live_client(self, db_session, tenant, client_party, widget):
        quote = _quote(tenant, client_party, widget)
        quote_service.send_quote(tenant.id, quote.id)
        quote_service.accept_quote(tenant.id, quote.id)

        live = tenant_service.get_client(tenant.id, client_party.id)
        live.name = "Renamed Ltd"
        db_session.commit()

        invoice = conversion_service.convert_quote_to_invoice(tenant.id, quote.id)
        assert invoice.client_snapshot["name"] == "Jane's Hardware"

    def test_unaccepted_quote_cannot_convert(self, tenant, client_party, widget):
        quote = _quote(tenant, client_party, widget)
        with pytest.raises(InvalidTransition):
            conversion_service.convert_quote_to_invoice(tenant.id, quote.id)


class TestInvoices:
    def _draft(self, tenant, client_party, widget, qty=1):
        return invoice_service.create_invoice(
            tenant.id,
            client_id=client_party.id,
            payment_terms_days=30,
            lines=[{"stock_item_id": widget.id, "qty": qty}],
        )

    def test_numbered_at_issue(self, tenant, client_party, widget):
        invoice = self._draft(tenant, client_party, widget)
        assert invoice.invoice_number is None

        issued_on = datetime(2026, 2, 1)
        invoice = invoice_service.issue_invoice(tenant.id, invoice.id, issue_date=issued_on.isoformat())

        assert invoice.status == "issued"
        assert invoice.invoice_number == "INV-2026-000001"
        assert invoice.due_date == issued_on + timedelta(days=30)
        assert invoice.balance_due_cents == invoice.total_cents == 2300

    def test_abandoned_draft_leaves_no_gap(self, tenant, client_party, widget):
        self._draft(tenant, client_party, widget)
        second = self._draft(tenant, client_party, widget)
        second = invoice_service.issue_invoice(tenant.id, second.id, issue_date="2026-05-01T00:00:00Z")
        assert second.invoice_number == "INV-2026-000001"

    def test_issue_twice_fails(self, tenant, client_party, widget):
        invoice = self._draft(tenant, client_party, widget)
        invoice_service.issue_invoice(tenant.id, invoice.id)
        with pytest.raises(InvalidTransition):
            invoice_service.issue_invoice(tenant.id, invoice.id)

    def test_effective_status_reports_overdue(self, tenant, client_party, widget):
        invoice = self._draft(tenant, client_party, widget)
        invoice = invoice_service.issue_invoice(tenant.id, invoice.id, issue_date="2026-01-01T00:00:00")

        later = invoice.due_date + timedelta(days=1)
        assert effective_status(invoice, now=later) == "overdue"
        assert effective_status(invoice, now=invoice.due_date) == "issued"
        data = invoice_service.invoice_to_dict(invoice, now=later)
        assert data["status"] == "overdue"
        assert data["stored_status"] == "issued"

    def test_cancel_refused_once_paid(self, tenant, client_party, widget):
        invoice = self._draft(tenant, client_party, widget)
        invoice_service.issue_invoice(tenant.id, invoice.id)
        payment_service.record_customer_payment(
            tenant.id,
            client_id=client_party.id,
            amount_cents=100,
            allocations=[{"document_id": invoice.id, "amount_cents": 100}],
        )

        with pytest.raises(InvalidTransition):
            invoice_service.cancel_invoice(tenant.id, invoice.id)

    def test_cancel_issued_unpaid(self, tenant, client_party, widget):
        invoice = self._draft(tenant, client_party, widget)
        invoice_service.issue_invoice(tenant.id, invoice.id)
        invoice = invoice_service.cancel_invoice(tenant.id, invoice.id)
        assert invoice.status == "cancelled"
        assert invoice.cancelled_at is not None
