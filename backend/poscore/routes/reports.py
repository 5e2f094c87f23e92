# Overview: Flask API routes for end-of-day reports, sales summaries and receivables aging.

from flask import Blueprint, jsonify, request

from ..services import reporting_service, statement_service
from ..services.errors import LedgerError
from . import ledger_error_response, parse_date, unexpected_error_response

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.post("/z-report")
def z_report():
    """
    Close the day.

    Returns:
        201: report persisted
        200: nothing to report (unsaved empty report, persisted=false)
    """
    try:
        report = reporting_service.generate_z_report()
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("generate z-report")

    persisted = report.transactions_count > 0
    body = report.to_dict()
    body["persisted"] = persisted
    return jsonify(body), 201 if persisted else 200


@reports_bp.get("/daily")
def daily_reports():
    return jsonify([r.to_dict() for r in reporting_service.list_daily_reports()])


@reports_bp.get("/daily/<report_id>")
def daily_report(report_id: str):
    try:
        return jsonify(reporting_service.get_daily_report(report_id).to_dict())
    except LedgerError as e:
        return ledger_error_response(e)


@reports_bp.get("/unreported")
def unreported():
    return jsonify([tx.to_dict() for tx in reporting_service.unreported_transactions()])


@reports_bp.get("/sales-summary")
def sales_summary():
    try:
        start = parse_date(request.args.get("start"), "start")
        end = parse_date(request.args.get("end"), "end")
        return jsonify(reporting_service.sales_summary(start, end))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except LedgerError as e:
        return ledger_error_response(e)


@reports_bp.get("/aging")
def aging():
    try:
        today = parse_date(request.args["as_of"], "as_of") if request.args.get("as_of") else None
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(statement_service.receivables_aging(today))
