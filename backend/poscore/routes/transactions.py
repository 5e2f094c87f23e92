# Overview: Flask API routes for committed transactions: listing, returns and the payment lifecycle.

from flask import Blueprint, jsonify, request

from ..services import return_service, sales_service
from ..services.errors import LedgerError
from . import current_settings, ledger_error_response, unexpected_error_response

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
def list_transactions():
    customer_id = request.args.get("customer_id", type=int)
    payment_status = request.args.get("payment_status")
    transactions = sales_service.list_transactions(customer_id=customer_id, payment_status=payment_status)
    return jsonify([tx.to_dict() for tx in transactions])


@transactions_bp.get("/<transaction_id>")
def get_transaction(transaction_id: str):
    try:
        tx = sales_service.get_transaction(transaction_id)
    except LedgerError as e:
        return ledger_error_response(e)
    result = tx.to_dict()
    result["returnable_quantities"] = return_service.returnable_quantities(tx)
    return jsonify(result)


@transactions_bp.post("/<transaction_id>/returns")
def create_return(transaction_id: str):
    """
    Return items from a transaction.

    Request body:
    {
        "items": [{"item_id": 1, "quantity": 1, "reason": "Damaged"}],
        "issue_store_credit": false  (optional)
    }
    """
    data = request.get_json() or {}
    try:
        event = return_service.process_return(
            transaction_id,
            data.get("items") or [],
            settings=current_settings(),
            issue_store_credit=bool(data.get("issue_store_credit", False)),
        )
        return jsonify(event.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("process return")


@transactions_bp.post("/<transaction_id>/pay")
def pay_transaction(transaction_id: str):
    data = request.get_json() or {}
    if "payment_method" not in data:
        return jsonify({"error": "Missing required fields: payment_method"}), 400
    try:
        tx = sales_service.mark_transaction_paid(
            transaction_id,
            data["payment_method"],
            reference=data.get("reference"),
        )
        return jsonify(tx.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("mark transaction paid")


@transactions_bp.post("/<transaction_id>/review")
def submit_for_review(transaction_id: str):
    data = request.get_json() or {}
    try:
        tx = sales_service.submit_payment_for_review(transaction_id, data.get("reference"))
        return jsonify(tx.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("submit payment for review")


@transactions_bp.post("/<transaction_id>/review/reject")
def reject_review(transaction_id: str):
    try:
        tx = sales_service.reject_payment_review(transaction_id)
        return jsonify(tx.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("reject payment review")


@transactions_bp.patch("/<transaction_id>/order-status")
def update_order_status(transaction_id: str):
    data = request.get_json() or {}
    try:
        tx = sales_service.update_order_status(transaction_id, data.get("order_status"))
        return jsonify(tx.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("update order status")
