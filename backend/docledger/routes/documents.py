# Overview: Flask API routes for ledger documents; parses input and returns JSON responses.

"""
Document Routes

One thin surface for every document kind:

    POST /api/<kind>                    create
    GET  /api/<kind>/<id>               read
    POST /api/<kind>/<id>/actions       {"action": "...", ...payload}

<kind> is the URL slug: grvs, quotes, invoices, supplier-bills,
customer-payments, supplier-payments.

All business rules live in the services; errors surface as LedgerError and
are rendered by the app-level handler.
"""

from flask import Blueprint, abort, g, jsonify, request

from ..decorators import json_body, require_tenant
from ..errors import ValidationError
from ..services import action_service, grv_service


documents_bp = Blueprint("documents", __name__, url_prefix="/api")

KIND_SLUGS = {
    "grvs": "grv",
    "quotes": "quote",
    "invoices": "invoice",
    "supplier-bills": "supplier_bill",
    "customer-payments": "customer_payment",
    "supplier-payments": "supplier_payment",
}


def _kind(slug: str) -> str:
    kind = KIND_SLUGS.get(slug)
    if kind is None:
        abort(404)
    return kind


@documents_bp.get("/grvs/unbilled")
@require_tenant
def list_unbilled_grvs_route():
    """Posted GRVs of a supplier that are not on a live bill."""
    supplier_id = request.args.get("supplier_id", type=int)
    if not supplier_id:
        raise ValidationError("supplier_id is required", {"field": "supplier_id"})
    grvs = grv_service.list_unbilled_grvs(g.tenant_id, supplier_id)
    return jsonify({"data": [grv.to_dict(include_lines=False) for grv in grvs]})


@documents_bp.post("/<slug>")
@require_tenant
def create_document_route(slug: str):
    doc = action_service.create_document(g.tenant_id, _kind(slug), json_body())
    return jsonify({"data": doc}), 201


@documents_bp.get("/<slug>/<int:document_id>")
@require_tenant
def get_document_route(slug: str, document_id: int):
    return jsonify({"data": action_service.get_document(g.tenant_id, _kind(slug), document_id)})


@documents_bp.post("/<slug>/<int:document_id>/actions")
@require_tenant
def perform_action_route(slug: str, document_id: int):
    """
    Body: {"action": "post"} or {"action": "allocatePayment", "lines": [...]} etc.
    Everything besides "action" is passed through as the payload.
    """
    body = json_body()
    action = body.pop("action", None)
    if not action:
        raise ValidationError("action is required", {"field": "action"})
    doc = action_service.perform_action(g.tenant_id, _kind(slug), document_id, action, body)
    return jsonify({"data": doc})
