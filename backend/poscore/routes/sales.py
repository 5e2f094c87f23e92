# Overview: Flask API routes for sale preview and commit.

from flask import Blueprint, jsonify, request
from sqlalchemy import inspect

from ..services import pricing_service, sales_service
from ..services.errors import LedgerError
from . import current_settings, ledger_error_response, unexpected_error_response

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/preview")
def preview_sale():
    """
    Price a cart without committing anything.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "promo_code": "SAVE10",          (optional)
        "gift_card_code": "GC-AB12-CD34" (optional)
    }
    """
    data = request.get_json() or {}
    try:
        breakdown = pricing_service.preview_total(
            data.get("items") or [],
            promo_code=data.get("promo_code"),
            gift_card_code=data.get("gift_card_code"),
        )
        return jsonify(breakdown.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("preview sale")


@sales_bp.post("")
def commit_sale():
    """
    Commit a sale.

    Request body:
    {
        "customer_id": 1,
        "items": [{"product_id": 1, "quantity": 2}],
        "promo_code": "SAVE10",           (optional)
        "gift_card_code": "GC-AB12-CD34", (optional)
        "payment_method": "cash",         (optional; omitted for credit sales)
        "transaction_id": "INV-..."       (optional; generated when omitted)
    }

    Returns:
        201: committed (queued_offline tells whether it waits in the offline queue)
        400: validation, stock or credit failure
    """
    data = request.get_json() or {}
    if "customer_id" not in data:
        return jsonify({"error": "Missing required fields: customer_id"}), 400
    try:
        tx = sales_service.commit_sale(
            data["customer_id"],
            data.get("items") or [],
            settings=current_settings(),
            promo_code=data.get("promo_code"),
            gift_card_code=data.get("gift_card_code"),
            payment_method=data.get("payment_method"),
            transaction_id=data.get("transaction_id"),
        )
        return jsonify({
            "transaction": tx.to_dict(),
            "queued_offline": inspect(tx).transient,
        }), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("commit sale")
