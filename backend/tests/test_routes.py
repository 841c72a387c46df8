# Overview: Pytest coverage for the JSON API surface and its error envelope.

"""
Route Tests

Drive the document action surface end to end through the Flask test client:
tenant header handling, create/get/actions, and error rendering.
"""

import pytest


def _headers(tenant):
    return {"X-Tenant-Id": str(tenant.id)}


class TestTenantHeader:
    def test_missing_header_rejected(self, client, db_session):
        resp = client.get("/api/invoices/1")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_unknown_tenant_not_found(self, client, db_session):
        resp = client.get("/api/invoices/1", headers={"X-Tenant-Id": "424242"})
        assert resp.status_code == 404


class TestHealth:
    def test_health_ok(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"
        assert resp.get_json()["review_queue"] == {"movements_needing_review": 0, "grvs_requiring_review": 0}


class TestDocumentFlow:
    def test_grv_to_bill_to_payment(self, client, tenant, supplier, widget):
        headers = _headers(tenant)

        resp = client.post(
            "/api/grvs",
            json={
                "supplier_id": supplier.id,
                "lines": [{"stock_item_id": widget.id, "received_qty": 3, "unit_cost_cents": 1000}],
            },
            headers=headers,
        )
        assert resp.status_code == 201
        grv = resp.get_json()["data"]
        assert grv["status"] == "Draft"

        resp = client.post(f"/api/grvs/{grv['id']}/actions", json={"action": "post"}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "Posted"

        resp = client.get(f"/api/stock-items/{widget.id}", headers=headers)
        assert resp.get_json()["data"]["on_hand"] == 3

        resp = client.get(f"/api/grvs/unbilled?supplier_id={supplier.id}", headers=headers)
        assert [g["id"] for g in resp.get_json()["data"]] == [grv["id"]]

        resp = client.post("/api/supplier-bills", json={"grv_ids": [grv["id"]]}, headers=headers)
        assert resp.status_code == 201
        bill = resp.get_json()["data"]
        assert bill["total_cents"] == 3450

        client.post(f"/api/supplier-bills/{bill['id']}/actions", json={"action": "post"}, headers=headers)
        resp = client.post(
            "/api/supplier-payments",
            json={
                "supplier_id": supplier.id,
                "amount_cents": 3450,
                "allocations": [{"document_id": bill["id"], "amount_cents": 3450}],
            },
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["unallocated_cents"] == 0

        resp = client.get(f"/api/supplier-bills/{bill['id']}", headers=headers)
        assert resp.get_json()["data"]["status"] == "Paid"

    def test_quote_conversion_action_returns_invoice(self, client, tenant, client_party, widget):
        headers = _headers(tenant)
        resp = client.post(
            "/api/quotes",
            json={"client_id": client_party.id, "lines": [{"stock_item_id": widget.id, "qty": 1}]},
            headers=headers,
        )
        quote_id = resp.get_json()["data"]["id"]
        for action in ("send", "accept"):
            client.post(f"/api/quotes/{quote_id}/actions", json={"action": action}, headers=headers)

        resp = client.post(
            f"/api/quotes/{quote_id}/actions", json={"action": "convertToInvoice"}, headers=headers
        )
        assert resp.status_code == 200
        invoice = resp.get_json()["data"]
        assert invoice["source_quote_id"] == quote_id
        assert invoice["status"] == "draft"

        resp = client.post(
            f"/api/invoices/{invoice['id']}/actions",
            json={"action": "issue", "issue_date": "2026-03-01T00:00:00Z"},
            headers=headers,
        )
        assert resp.get_json()["data"]["invoice_number"] == "INV-2026-000001"

    def test_payment_allocate_and_reverse_actions(self, client, tenant, client_party):
        headers = _headers(tenant)
        resp = client.post(
            "/api/invoices",
            json={
                "client_id": client_party.id,
                "vat_mode": "none",
                "lines": [{"name": "Work", "qty": 1, "unit_price_cents": 1000}],
            },
            headers=headers,
        )
        invoice_id = resp.get_json()["data"]["id"]
        client.post(f"/api/invoices/{invoice_id}/actions", json={"action": "issue"}, headers=headers)

        resp = client.post(
            "/api/customer-payments", json={"client_id": client_party.id, "amount_cents": 1000}, headers=headers
        )
        payment_id = resp.get_json()["data"]["id"]

        resp = client.post(
            f"/api/customer-payments/{payment_id}/actions",
            json={"action": "allocatePayment", "lines": [{"document_id": invoice_id, "amount_cents": 1000}]},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["unallocated_cents"] == 0

        resp = client.post(
            f"/api/customer-payments/{payment_id}/actions", json={"action": "reverse"}, headers=headers
        )
        assert resp.get_json()["data"]["status"] == "reversed"
        resp = client.get(f"/api/invoices/{invoice_id}", headers=headers)
        assert resp.get_json()["data"]["balance_due_cents"] == 1000


class TestErrorEnvelope:
    def test_unknown_action_is_invalid_transition(self, client, tenant, supplier):
        headers = _headers(tenant)
        grv_id = client.post("/api/grvs", json={"supplier_id": supplier.id}, headers=headers).get_json()["data"]["id"]

        resp = client.post(f"/api/grvs/{grv_id}/actions", json={"action": "teleport"}, headers=headers)

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "INVALID_TRANSITION"
        assert body["retryable"] is False
        assert "post" in body["details"]["allowed"]
        assert body["details"]["current_status"] == "Draft"
        assert body["details"]["available_now"] == ["cancel", "edit", "post"]

    def test_direct_reverse_of_grv_movement_is_conflict(self, client, tenant, supplier, widget):
        headers = _headers(tenant)
        grv = client.post(
            "/api/grvs",
            json={
                "supplier_id": supplier.id,
                "lines": [{"stock_item_id": widget.id, "received_qty": 2, "unit_cost_cents": 500}],
            },
            headers=headers,
        ).get_json()["data"]
        posted = client.post(f"/api/grvs/{grv['id']}/actions", json={"action": "post"}, headers=headers).get_json()
        movement_id = posted["data"]["lines"][0]["inventory_movement_id"]

        resp = client.post(f"/api/stock-items/movements/{movement_id}/reverse", json={}, headers=headers)

        assert resp.status_code == 409
        assert resp.get_json()["details"]["use"] == "grv:cancel"

    def test_consume_with_document_source_type_rejected(self, client, tenant, widget):
        headers = _headers(tenant)
        client.post(
            f"/api/stock-items/{widget.id}/receive", json={"quantity": 3, "unit_cost_cents": 100}, headers=headers
        )
        resp = client.post(
            f"/api/stock-items/{widget.id}/consume", json={"quantity": 1, "source_type": "GRV"}, headers=headers
        )
        assert resp.status_code == 400
        assert resp.get_json()["details"]["field"] == "source_type"

    @pytest.mark.parametrize("user_id", ["abc", 1.5, True])
    def test_malformed_user_id_rejected(self, client, tenant, supplier, user_id):
        headers = _headers(tenant)
        grv_id = client.post("/api/grvs", json={"supplier_id": supplier.id}, headers=headers).get_json()["data"]["id"]

        resp = client.post(
            f"/api/grvs/{grv_id}/actions", json={"action": "cancel", "user_id": user_id}, headers=headers
        )

        assert resp.status_code == 400
        assert resp.get_json()["details"]["field"] == "user_id"
        assert client.get(f"/api/grvs/{grv_id}", headers=headers).get_json()["data"]["status"] == "Draft"

    def test_insufficient_stock(self, client, tenant, widget):
        resp = client.post(f"/api/stock-items/{widget.id}/consume", json={"quantity": 1}, headers=_headers(tenant))
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "INSUFFICIENT_STOCK"

    def test_cross_tenant_document_not_found(self, client, tenant, other_tenant, supplier):
        grv_id = client.post(
            "/api/grvs", json={"supplier_id": supplier.id}, headers=_headers(tenant)
        ).get_json()["data"]["id"]
        resp = client.get(f"/api/grvs/{grv_id}", headers=_headers(other_tenant))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    @pytest.mark.parametrize("slug", ["receipts", "orders"])
    def test_unknown_kind_slug_is_404(self, client, tenant, slug):
        resp = client.get(f"/api/{slug}/1", headers=_headers(tenant))
        assert resp.status_code == 404
