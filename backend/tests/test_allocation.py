# Overview: Pytest coverage for payments, allocations and payment reversal.

"""
Allocation Engine Tests

- Batches are all-or-nothing
- Per-document and per-payment ceilings are enforced
- Statuses are derived from paid vs total
- Reversal releases every allocation and re-derives target statuses
"""

import pytest

from docledger.errors import InvalidTransition, OverAllocation, ValidationError
from docledger.models import CustomerPayment, CustomerPaymentAllocation
from docledger.services import allocation_service, invoice_service, payment_service, tenant_service


@pytest.fixture
def issued_invoices(tenant, client_party):
    """Two issued invoices: R100.00 and R50.00 (VAT-free)."""
    invoices = []
    for price in (10000, 5000):
        invoice = invoice_service.create_invoice(
            tenant.id,
            client_id=client_party.id,
            vat_mode="none",
            lines=[{"name": "Service", "qty": 1, "unit_price_cents": price}],
        )
        invoices.append(invoice_service.issue_invoice(tenant.id, invoice.id))
    return invoices


def _pay(tenant, client_party, amount, allocations=None):
    return payment_service.record_customer_payment(
        tenant.id,
        client_id=client_party.id,
        amount_cents=amount,
        method="eft",
        reference="BANK-1",
        allocations=allocations,
    )


class TestRecording:
    def test_payment_numbered_and_unallocated(self, tenant, client_party):
        payment = _pay(tenant, client_party, 5000)
        assert payment.payment_number.startswith("PAY-")
        assert payment.status == "posted"
        assert payment.unallocated_cents == 5000

    @pytest.mark.parametrize("amount", [0, -1, 12.5, "1e3"])
    def test_bad_amount_rejected(self, tenant, client_party, amount):
        with pytest.raises(ValidationError):
            _pay(tenant, client_party, amount)

    def test_unknown_method_rejected(self, tenant, client_party):
        with pytest.raises(ValidationError):
            payment_service.record_customer_payment(
                tenant.id, client_id=client_party.id, amount_cents=100, method="bitcoin"
            )

    def test_bad_allocation_means_no_payment(self, tenant, client_party, issued_invoices):
        with pytest.raises(OverAllocation):
            _pay(tenant, client_party, 100, [{"document_id": issued_invoices[0].id, "amount_cents": 200}])
        assert CustomerPayment.query.count() == 0


class TestAllocate:
    def test_partial_then_full(self, tenant, client_party, issued_invoices):
        inv_a, inv_b = issued_invoices
        payment = _pay(tenant, client_party, 12000)

        payment = allocation_service.allocate_payment(
            tenant.id,
            "customer_payment",
            payment.id,
            [{"document_id": inv_a.id, "amount_cents": 10000}, {"document_id": inv_b.id, "amount_cents": 2000}],
        )

        assert payment.unallocated_cents == 0
        inv_a = invoice_service.get_invoice(tenant.id, inv_a.id)
        inv_b = invoice_service.get_invoice(tenant.id, inv_b.id)
        assert inv_a.status == "paid"
        assert inv_a.paid_at is not None
        assert inv_b.status == "partially_paid"
        assert inv_b.balance_due_cents == 3000

    def test_batch_is_all_or_nothing(self, tenant, client_party, issued_invoices):
        inv_a, inv_b = issued_invoices
        payment = _pay(tenant, client_party, 20000)

        with pytest.raises(OverAllocation):
            allocation_service.allocate_payment(
                tenant.id,
                "customer_payment",
                payment.id,
                [{"document_id": inv_a.id, "amount_cents": 1000}, {"document_id": inv_b.id, "amount_cents": 6000}],
            )

        assert invoice_service.get_invoice(tenant.id, inv_a.id).amount_paid_cents == 0
        assert allocation_service.get_payment(tenant.id, "customer_payment", payment.id).unallocated_cents == 20000
        assert CustomerPaymentAllocation.query.count() == 0

    def test_rows_for_same_document_are_summed(self, tenant, client_party, issued_invoices):
        inv_b = issued_invoices[1]
        payment = _pay(tenant, client_party, 10000)

        with pytest.raises(OverAllocation):
            allocation_service.allocate_payment(
                tenant.id,
                "customer_payment",
                payment.id,
                [{"document_id": inv_b.id, "amount_cents": 3000}, {"document_id": inv_b.id, "amount_cents": 3000}],
            )

    def test_cannot_exceed_unallocated(self, tenant, client_party, issued_invoices):
        payment = _pay(tenant, client_party, 1000)
        with pytest.raises(OverAllocation):
            allocation_service.allocate_payment(
                tenant.id, "customer_payment", payment.id, [{"document_id": issued_invoices[0].id, "amount_cents": 1001}]
            )

    def test_draft_invoice_not_payable(self, tenant, client_party):
        draft = invoice_service.create_invoice(
            tenant.id, client_id=client_party.id, lines=[{"name": "X", "qty": 1, "unit_price_cents": 100}]
        )
        payment = _pay(tenant, client_party, 100)
        with pytest.raises(InvalidTransition):
            allocation_service.allocate_payment(
                tenant.id, "customer_payment", payment.id, [{"document_id": draft.id, "amount_cents": 50}]
            )

    def test_other_clients_invoice_rejected(self, tenant, issued_invoices):
        stranger = tenant_service.create_client(tenant_id=tenant.id, name="Stranger")
        payment = _pay(tenant, stranger, 100)
        with pytest.raises(ValidationError):
            allocation_service.allocate_payment(
                tenant.id, "customer_payment", payment.id, [{"document_id": issued_invoices[0].id, "amount_cents": 50}]
            )

    def test_zero_amount_row_rejected(self, tenant, client_party, issued_invoices):
        payment = _pay(tenant, client_party, 100)
        with pytest.raises(ValidationError):
            allocation_service.allocate_payment(
                tenant.id, "customer_payment", payment.id, [{"document_id": issued_invoices[0].id, "amount_cents": 0}]
            )


class TestReversal:
    def test_reverse_releases_allocations(self, tenant, client_party, issued_invoices):
        inv_a, inv_b = issued_invoices
        payment = _pay(
            tenant,
            client_party,
            12000,
            [{"document_id": inv_a.id, "amount_cents": 10000}, {"document_id": inv_b.id, "amount_cents": 2000}],
        )

        payment = payment_service.reverse_payment(tenant.id, "customer_payment", payment.id, reason="bounced")

        assert payment.status == "reversed"
        assert payment.reversal_reason == "bounced"
        assert payment.unallocated_cents == 0
        assert all(a.reversed_at is not None for a in payment.allocations)
        for invoice_id in (inv_a.id, inv_b.id):
            invoice = invoice_service.get_invoice(tenant.id, invoice_id)
            assert invoice.status == "issued"
            assert invoice.amount_paid_cents == 0
            assert invoice.balance_due_cents == invoice.total_cents
            assert invoice.paid_at is None

    def test_reverse_twice_fails(self, tenant, client_party):
        payment = _pay(tenant, client_party, 100)
        payment_service.reverse_payment(tenant.id, "customer_payment", payment.id)
        with pytest.raises(InvalidTransition):
            payment_service.reverse_payment(tenant.id, "customer_payment", payment.id)

    def test_reversed_payment_cannot_allocate(self, tenant, client_party, issued_invoices):
        payment = _pay(tenant, client_party, 100)
        payment_service.reverse_payment(tenant.id, "customer_payment", payment.id)
        with pytest.raises(InvalidTransition):
            allocation_service.allocate_payment(
                tenant.id, "customer_payment", payment.id, [{"document_id": issued_invoices[0].id, "amount_cents": 50}]
            )

    def test_reallocate_after_reversal(self, tenant, client_party, issued_invoices):
        inv_a = issued_invoices[0]
        first = _pay(tenant, client_party, 10000, [{"document_id": inv_a.id, "amount_cents": 10000}])
        payment_service.reverse_payment(tenant.id, "customer_payment", first.id)

        _pay(tenant, client_party, 10000, [{"document_id": inv_a.id, "amount_cents": 10000}])
        assert invoice_service.get_invoice(tenant.id, inv_a.id).status == "paid"
