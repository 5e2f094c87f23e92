# backend/poscore/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/poscore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///poscore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Credit enforcement fallback when a customer has no explicit limit
    DEFAULT_CREDIT_LIMIT_CENTS = int(os.environ.get("DEFAULT_CREDIT_LIMIT_CENTS", "50000"))
    # Ceiling for the automatic +10% limit reward after three on-time statements
    CREDIT_LIMIT_INCREASE_CAP_CENTS = int(os.environ.get("CREDIT_LIMIT_INCREASE_CAP_CENTS", "500000"))

    # Loyalty program
    LOYALTY_ENABLED = _env_bool("LOYALTY_ENABLED", False)
    LOYALTY_POINTS_PER_UNIT = os.environ.get("LOYALTY_POINTS_PER_UNIT", "1")

    # Reorder forecasting
    FORECAST_LOOKBACK_DAYS = int(os.environ.get("FORECAST_LOOKBACK_DAYS", "30"))
    FORECAST_REORDER_THRESHOLD_DAYS = int(os.environ.get("FORECAST_REORDER_THRESHOLD_DAYS", "7"))

    # Monthly statements
    STATEMENT_DUE_DAYS = int(os.environ.get("STATEMENT_DUE_DAYS", "0"))
    OVERDUE_GRACE_DAYS = int(os.environ.get("OVERDUE_GRACE_DAYS", "7"))

    CURRENCY_LABEL = os.environ.get("CURRENCY_LABEL", "MVR")
