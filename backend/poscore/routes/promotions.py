from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services import promotions_service
from ..services.errors import LedgerError
from . import ledger_error_response, unexpected_error_response

promotions_bp = Blueprint("promotions", __name__, url_prefix="/api/promotions")


@promotions_bp.route("", methods=["GET"])
def list_promotions():
    active_only = request.args.get("active_only", "false").lower() == "true"
    return jsonify([p.to_dict() for p in promotions_service.list_promotions(active_only)])


@promotions_bp.route("", methods=["POST"])
def create_promotion():
    data = request.get_json() or {}
    required = ("name", "code", "promo_type", "discount_value")
    missing = [f for f in required if f not in data]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        promo = promotions_service.create_promotion(data)
        return jsonify(promo.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("create promotion")


@promotions_bp.route("/<int:promo_id>", methods=["PATCH"])
def update_promotion(promo_id: int):
    try:
        promo = promotions_service.update_promotion(promo_id, request.get_json() or {})
        return jsonify(promo.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("update promotion")
