# Overview: Flask API routes for clients and suppliers.

from flask import Blueprint, g, jsonify

from ..decorators import json_body, require_tenant
from ..services import tenant_service


parties_bp = Blueprint("parties", __name__, url_prefix="/api")


@parties_bp.post("/clients")
@require_tenant
def create_client_route():
    data = json_body()
    client = tenant_service.create_client(
        tenant_id=g.tenant_id,
        name=data.get("name"),
        email=data.get("email"),
        phone=data.get("phone"),
    )
    return jsonify({"data": client.to_dict()}), 201


@parties_bp.post("/suppliers")
@require_tenant
def create_supplier_route():
    data = json_body()
    supplier = tenant_service.create_supplier(
        tenant_id=g.tenant_id,
        name=data.get("name"),
        email=data.get("email"),
        phone=data.get("phone"),
    )
    return jsonify({"data": supplier.to_dict()}), 201
