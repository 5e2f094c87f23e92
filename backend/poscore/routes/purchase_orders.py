# Overview: Flask API routes for purchase orders.

from flask import Blueprint, jsonify, request

from ..services import purchase_order_service
from ..services.errors import LedgerError
from . import ledger_error_response, unexpected_error_response

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
def list_purchase_orders():
    status = request.args.get("status")
    return jsonify([po.to_dict() for po in purchase_order_service.list_purchase_orders(status)])


@purchase_orders_bp.post("")
def create_purchase_order():
    """
    Request body:
    {
        "wholesaler_id": 1,
        "items": [{"product_id": 3, "quantity": 24, "purchase_price_cents": 850}]
    }
    """
    data = request.get_json() or {}
    try:
        po = purchase_order_service.create_purchase_order(data.get("wholesaler_id"), data.get("items") or [])
        return jsonify(po.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("create purchase order")


@purchase_orders_bp.get("/<po_id>")
def get_purchase_order(po_id: str):
    try:
        return jsonify(purchase_order_service.get_purchase_order(po_id).to_dict())
    except LedgerError as e:
        return ledger_error_response(e)


@purchase_orders_bp.post("/<po_id>/process")
def process_purchase_order(po_id: str):
    try:
        po = purchase_order_service.process_purchase_order(po_id)
        return jsonify(po.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("process purchase order")
