# Overview: Flask API routes for monthly statements: generation, overdue escalation and payment.

from flask import Blueprint, jsonify, request

from ..services import statement_service
from ..services.errors import LedgerError
from . import current_settings, ledger_error_response, parse_date, unexpected_error_response

statements_bp = Blueprint("statements", __name__, url_prefix="/api/statements")


@statements_bp.get("")
def list_statements():
    customer_id = request.args.get("customer_id", type=int)
    status = request.args.get("status")
    return jsonify([s.to_dict() for s in statement_service.list_statements(customer_id, status)])


@statements_bp.post("/generate")
def generate():
    """
    Request body:
    {
        "period_start": "2025-06-01",
        "period_end": "2025-06-30"
    }
    """
    data = request.get_json() or {}
    try:
        period_start = parse_date(data.get("period_start"), "period_start")
        period_end = parse_date(data.get("period_end"), "period_end")
        created = statement_service.generate_monthly_statements(
            period_start, period_end, settings=current_settings()
        )
        return jsonify([s.to_dict() for s in created]), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("generate statements")


@statements_bp.post("/escalate")
def escalate():
    try:
        escalated = statement_service.escalate_overdue_statements(settings=current_settings())
        return jsonify([s.to_dict() for s in escalated])
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("escalate overdue statements")


@statements_bp.post("/<statement_id>/pay")
def pay(statement_id: str):
    data = request.get_json() or {}
    if "payment_method" not in data:
        return jsonify({"error": "Missing required fields: payment_method"}), 400
    try:
        statement = statement_service.mark_statement_paid(
            statement_id, data["payment_method"], settings=current_settings()
        )
        return jsonify(statement.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("mark statement paid")
