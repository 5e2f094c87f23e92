# Overview: Flask API routes for stock adjustments, the inventory event log and reorder forecasting.

from flask import Blueprint, jsonify, request

from ..services import inventory_service
from ..services.errors import LedgerError
from . import current_settings, ledger_error_response, unexpected_error_response

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def stock_levels():
    return jsonify(inventory_service.stock_snapshot())


@inventory_bp.post("/<int:product_id>/adjust")
def adjust(product_id: int):
    """
    Request body:
    {
        "delta": -2,
        "reason": "Damaged in storage"
    }
    """
    data = request.get_json() or {}
    missing = [f for f in ("delta", "reason") if f not in data]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        event = inventory_service.adjust_stock(product_id, data["delta"], data["reason"])
        return jsonify(event.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("adjust stock")


@inventory_bp.get("/<int:product_id>/events")
def events(product_id: int):
    limit = request.args.get("limit", default=200, type=int)
    return jsonify([e.to_dict() for e in inventory_service.list_inventory_events(product_id, limit=limit)])


@inventory_bp.get("/<int:product_id>/reconcile")
def reconcile(product_id: int):
    """Compare the stock column with the stock implied by the event log."""
    try:
        effective = inventory_service.get_effective_stock(product_id)
    except LedgerError as e:
        return ledger_error_response(e)
    from_events = inventory_service.reconstruct_stock(product_id)
    lookup = inventory_service.build_lookup([product_id])
    stock = lookup[product_id].stock
    return jsonify({
        "product_id": product_id,
        "stock": stock,
        "effective_stock": effective,
        "reconstructed_stock": from_events,
        "in_sync": lookup[product_id].is_bundle or stock == from_events,
    })


@inventory_bp.get("/forecast")
def forecast():
    return jsonify(inventory_service.inventory_forecast(current_settings()))
