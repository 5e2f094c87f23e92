# Overview: Flask API routes for gift card issuance and management.

from datetime import date

from flask import Blueprint, jsonify, request

from ..services import gift_card_service
from ..services.errors import LedgerError
from . import ledger_error_response, parse_date, unexpected_error_response

gift_cards_bp = Blueprint("gift_cards", __name__, url_prefix="/api/gift-cards")


@gift_cards_bp.get("")
def list_gift_cards():
    customer_id = request.args.get("customer_id", type=int)
    return jsonify([c.to_dict() for c in gift_card_service.list_gift_cards(customer_id)])


@gift_cards_bp.get("/<code>")
def get_gift_card(code: str):
    try:
        return jsonify(gift_card_service.get_gift_card(code).to_dict())
    except LedgerError as e:
        return ledger_error_response(e)


@gift_cards_bp.post("")
def issue_gift_card():
    """
    Request body:
    {
        "initial_balance_cents": 5000,
        "customer_id": 1,            (optional)
        "expiry_date": "2026-12-31", (optional)
        "code": "GC-ABCD-1234"       (optional; generated when omitted)
    }
    """
    data = request.get_json() or {}
    if "initial_balance_cents" not in data:
        return jsonify({"error": "Missing required fields: initial_balance_cents"}), 400
    try:
        expiry: date | None = None
        if data.get("expiry_date"):
            expiry = parse_date(data["expiry_date"], "expiry_date")
        card = gift_card_service.issue_gift_card(
            data["initial_balance_cents"],
            customer_id=data.get("customer_id"),
            expiry_date=expiry,
            code=data.get("code"),
        )
        return jsonify(card.to_dict()), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("issue gift card")


@gift_cards_bp.post("/<code>/enabled")
def set_enabled(code: str):
    data = request.get_json() or {}
    if "enabled" not in data:
        return jsonify({"error": "Missing required fields: enabled"}), 400
    try:
        card = gift_card_service.set_gift_card_enabled(code, bool(data["enabled"]))
        return jsonify(card.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("update gift card")
