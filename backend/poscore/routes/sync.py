# Overview: Flask API routes for connectivity state and the offline transaction queue.

from flask import Blueprint, jsonify, request

from ..services import sync_service
from ..services.errors import LedgerError
from . import ledger_error_response, unexpected_error_response

sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.get("/status")
def status():
    return jsonify(sync_service.sync_status())


@sync_bp.post("/status")
def set_status():
    """
    Request body: {"is_online": true}

    Going online flushes the offline queue.
    """
    data = request.get_json() or {}
    if "is_online" not in data:
        return jsonify({"error": "Missing required fields: is_online"}), 400
    try:
        return jsonify(sync_service.set_online(bool(data["is_online"])))
    except Exception:
        return unexpected_error_response("update sync status")


@sync_bp.get("/queue")
def queue():
    return jsonify(sync_service.pending_offline_transactions())


@sync_bp.post("/flush")
def flush():
    try:
        return jsonify({"flushed_transaction_ids": sync_service.flush_offline_queue()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("flush offline queue")
