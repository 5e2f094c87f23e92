# Overview: Shared helpers for the API blueprints (settings lookup, error responses, request parsing).

from __future__ import annotations

from datetime import date

from flask import current_app, jsonify

from ..services import notification_service
from ..services.errors import LedgerError, NotFoundError
from ..settings import LedgerSettings


def current_settings() -> LedgerSettings:
    return LedgerSettings.from_config(current_app.config)


def ledger_error_response(exc: LedgerError):
    """
    Map a domain error to JSON.

    NotFoundError -> 404, everything else -> 400. Failures the cashier should
    see are recorded as 'error' notifications.
    """
    if isinstance(exc, NotFoundError):
        return jsonify(exc.to_dict()), 404
    notification_service.notify("error", exc.message, commit=True)
    return jsonify(exc.to_dict()), 400


def unexpected_error_response(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": f"Failed to {action}"}), 500


def parse_date(value, field: str) -> date:
    if not value:
        raise ValueError(f"{field} is required")
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be an ISO date (YYYY-MM-DD)") from None
