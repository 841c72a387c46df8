# Overview: Flask API routes for stock items and the inventory ledger.

from flask import Blueprint, g, jsonify, request

from ..decorators import json_body, require_tenant
from ..services import inventory_service
from ..validation import optional_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/stock-items")


@inventory_bp.post("")
@require_tenant
def create_stock_item_route():
    data = json_body()
    item = inventory_service.create_stock_item(
        tenant_id=g.tenant_id,
        sku=data.get("sku"),
        name=data.get("name"),
        unit=data.get("unit", "each"),
        vat_rate_bps=data.get("vat_rate_bps"),
        is_vat_exempt=bool(data.get("is_vat_exempt", False)),
        track_inventory=bool(data.get("track_inventory", True)),
        reorder_level=data.get("reorder_level", 0),
        sale_price_cents=data.get("sale_price_cents", 0),
    )
    return jsonify({"data": item.to_dict()}), 201


@inventory_bp.get("/<int:stock_item_id>")
@require_tenant
def stock_summary_route(stock_item_id: int):
    return jsonify({"data": inventory_service.get_stock_summary(g.tenant_id, stock_item_id)})


@inventory_bp.get("/<int:stock_item_id>/movements")
@require_tenant
def list_movements_route(stock_item_id: int):
    limit = request.args.get("limit", 100, type=int)
    movements = inventory_service.list_movements(g.tenant_id, stock_item_id, limit=limit)
    return jsonify({"data": [m.to_dict() for m in movements]})


@inventory_bp.post("/<int:stock_item_id>/receive")
@require_tenant
def receive_route(stock_item_id: int):
    """Direct receipt outside a GRV (opening balances, found stock)."""
    data = json_body()
    movement = inventory_service.receive(
        g.tenant_id,
        stock_item_id,
        data.get("quantity"),
        data.get("unit_cost_cents"),
        source_type="ADJUSTMENT",
        note=data.get("note"),
        user_id=optional_int(data.get("user_id"), "user_id"),
    )
    return jsonify({"data": movement.to_dict()}), 201


@inventory_bp.post("/<int:stock_item_id>/consume")
@require_tenant
def consume_route(stock_item_id: int):
    data = json_body()
    movement = inventory_service.consume(
        g.tenant_id,
        stock_item_id,
        data.get("quantity"),
        source_type=data.get("source_type", "SALE"),
        source_id=data.get("source_id"),
        source_line_id=data.get("source_line_id"),
        note=data.get("note"),
        user_id=optional_int(data.get("user_id"), "user_id"),
    )
    return jsonify({"data": movement.to_dict()}), 201


@inventory_bp.post("/<int:stock_item_id>/reserve")
@require_tenant
def reserve_route(stock_item_id: int):
    item = inventory_service.reserve(g.tenant_id, stock_item_id, json_body().get("quantity"))
    return jsonify({"data": item.to_dict()})


@inventory_bp.post("/<int:stock_item_id>/release")
@require_tenant
def release_route(stock_item_id: int):
    item = inventory_service.release(g.tenant_id, stock_item_id, json_body().get("quantity"))
    return jsonify({"data": item.to_dict()})


@inventory_bp.post("/movements/<int:movement_id>/reverse")
@require_tenant
def reverse_movement_route(movement_id: int):
    data = json_body()
    movement = inventory_service.reverse_movement(
        g.tenant_id,
        movement_id,
        note=data.get("note"),
        user_id=optional_int(data.get("user_id"), "user_id"),
    )
    return jsonify({"data": movement.to_dict()}), 201
