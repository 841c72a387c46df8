# Overview: Pytest coverage for gapless per-tenant document numbering.

"""
Document Sequencer Tests

- Numbers are strictly increasing and gapless per (tenant, key)
- Keys are isolated per tenant and per period
- A rolled-back unit of work does not consume a number
- The numbering audit reports numbers consumed without a document
- Concurrent callers never receive the same number (file-backed SQLite)
"""

import threading
from datetime import datetime

import pytest

from docledger import create_app
from docledger.errors import ValidationError
from docledger.extensions import db
from docledger.models import DocumentCounter, Tenant
from docledger.services import grv_service
from docledger.services.concurrency import run_with_retry
from docledger.services.document_service import (
    _next_document_number_inner,
    audit_numbering,
    counter_key_for,
    next_document_number,
    next_number_for,
    parse_document_number,
    peek_counter,
)


class TestNextDocumentNumber:
    def test_first_number_is_one_and_gapless(self, tenant):
        numbers = [next_document_number(tenant.id, "TEST", prefix="T-", padding=4) for _ in range(3)]
        assert numbers == ["T-0001", "T-0002", "T-0003"]
        assert peek_counter(tenant.id, "TEST").next_number == 4

    def test_keys_are_independent(self, tenant):
        assert next_document_number(tenant.id, "A") == "00001"
        assert next_document_number(tenant.id, "B") == "00001"
        assert next_document_number(tenant.id, "A") == "00002"

    def test_tenants_are_independent(self, tenant, other_tenant):
        assert next_document_number(tenant.id, "INV_2026") == "00001"
        assert next_document_number(other_tenant.id, "INV_2026") == "00001"
        assert next_document_number(tenant.id, "INV_2026") == "00002"

    def test_missing_tenant_or_key_rejected(self, tenant):
        with pytest.raises(ValidationError):
            next_document_number(None, "A")
        with pytest.raises(ValidationError):
            next_document_number(tenant.id, "")

    def test_rolled_back_unit_of_work_releases_number(self, tenant):
        next_document_number(tenant.id, "RB")

        def _op():
            _next_document_number_inner(tenant.id, "RB")
            raise RuntimeError("document insert failed")

        with pytest.raises(RuntimeError):
            run_with_retry(_op)

        assert next_document_number(tenant.id, "RB") == "00002"


class TestPerKindNumbering:
    def test_invoice_key_embeds_year(self):
        key, prefix, padding = counter_key_for("invoice", datetime(2026, 3, 1))
        assert key == "INV_2026"
        assert prefix == "INV-2026-"
        assert padding == 6

    def test_grv_key_embeds_month(self):
        key, prefix, _ = counter_key_for("grv", datetime(2026, 3, 1))
        assert key == "GRV_202603"
        assert prefix == "GRV-202603-"

    def test_new_year_restarts_sequence(self, tenant):
        assert next_number_for(tenant.id, "invoice", when=datetime(2025, 12, 31)) == "INV-2025-000001"
        assert next_number_for(tenant.id, "invoice", when=datetime(2025, 12, 31)) == "INV-2025-000002"
        assert next_number_for(tenant.id, "invoice", when=datetime(2026, 1, 1)) == "INV-2026-000001"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            counter_key_for("receipt")

    def test_parse_document_number(self):
        assert parse_document_number("INV-2026-000042") == ("INV", 2026, 42)
        assert parse_document_number("GRV-202603-000007") == ("GRV", 2026, 7)
        assert parse_document_number("nonsense") is None
        assert parse_document_number(None) is None

    def test_audit_numbering_reports_gaps(self, tenant, supplier):
        grv = grv_service.create_grv(tenant.id, supplier_id=supplier.id)

        report = audit_numbering(tenant.id, "grv")
        assert report["key"] == counter_key_for("grv")[0]
        assert report["issued"] == 1
        assert report["next_number"] == 2
        assert report["missing"] == []
        assert report["duplicates"] == []
        assert parse_document_number(grv.grv_number)[2] == 1

        # A number handed out without a document is a hole in the sequence.
        next_number_for(tenant.id, "grv")
        report = audit_numbering(tenant.id, "grv")
        assert report["missing"] == [2]
        assert report["ahead_of_counter"] == []

    def test_audit_numbering_without_counter(self, tenant):
        report = audit_numbering(tenant.id, "invoice")
        assert report["next_number"] == 1
        assert report["issued"] == 0
        assert report["missing"] == []


class TestConcurrentNumbering:
    """Several threads race to create and draw from one counter; every number is handed out once."""

    THREADS = 4
    PER_THREAD = 5

    def test_no_duplicates_under_contention(self, tmp_path):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'seq.sqlite3'}",
            'LEDGER_RETRY_ATTEMPTS': 20,
            'LEDGER_RETRY_BACKOFF_SECONDS': 0.01,
        })
        with app.app_context():
            db.create_all()
            t = Tenant(name="Concurrent", code="CONC", is_active=True)
            db.session.add(t)
            db.session.commit()
            tenant_id = t.id

        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            with app.app_context():
                try:
                    for _ in range(self.PER_THREAD):
                        number = next_document_number(tenant_id, "CONC")
                        with lock:
                            results.append(number)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(self.THREADS)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        assert errors == []
        expected = self.THREADS * self.PER_THREAD
        assert len(results) == expected
        assert len(set(results)) == expected
        assert sorted(int(n) for n in results) == list(range(1, expected + 1))

        with app.app_context():
            counter = DocumentCounter.query.filter_by(tenant_id=tenant_id, key="CONC").one()
            assert counter.next_number == expected + 1
            db.drop_all()
            db.engine.dispose()
