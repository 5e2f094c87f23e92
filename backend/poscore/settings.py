# Overview: Immutable configuration value passed explicitly into ledger engines.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping


class SettingsValidationError(ValueError):
    pass


@dataclass(frozen=True)
class LedgerSettings:
    """
    Read-only inputs for credit, loyalty, forecasting and statement rules.

    Engines never read Flask config directly; callers build one of these
    (usually via from_config) and thread it through each call.
    """
    default_credit_limit_cents: int = 50000
    credit_limit_increase_cap_cents: int = 500000
    loyalty_enabled: bool = False
    points_per_unit: Decimal = Decimal("1")
    forecast_lookback_days: int = 30
    forecast_reorder_threshold_days: int = 7
    statement_due_days: int = 0
    overdue_grace_days: int = 7
    currency_label: str = "MVR"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "LedgerSettings":
        return cls(
            default_credit_limit_cents=_as_int(config, "DEFAULT_CREDIT_LIMIT_CENTS", cls.default_credit_limit_cents),
            credit_limit_increase_cap_cents=_as_int(
                config, "CREDIT_LIMIT_INCREASE_CAP_CENTS", cls.credit_limit_increase_cap_cents
            ),
            loyalty_enabled=bool(config.get("LOYALTY_ENABLED", cls.loyalty_enabled)),
            points_per_unit=_as_decimal(config, "LOYALTY_POINTS_PER_UNIT", cls.points_per_unit),
            forecast_lookback_days=_as_int(config, "FORECAST_LOOKBACK_DAYS", cls.forecast_lookback_days),
            forecast_reorder_threshold_days=_as_int(
                config, "FORECAST_REORDER_THRESHOLD_DAYS", cls.forecast_reorder_threshold_days
            ),
            statement_due_days=_as_int(config, "STATEMENT_DUE_DAYS", cls.statement_due_days),
            overdue_grace_days=_as_int(config, "OVERDUE_GRACE_DAYS", cls.overdue_grace_days),
            currency_label=str(config.get("CURRENCY_LABEL", cls.currency_label)),
        )

    def format_money(self, cents: int) -> str:
        return f"{self.currency_label} {cents / 100:.2f}"


def _as_int(config: Mapping[str, Any], key: str, default: int) -> int:
    value = config.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SettingsValidationError(f"{key} must be an integer") from None


def _as_decimal(config: Mapping[str, Any], key: str, default: Decimal) -> Decimal:
    value = config.get(key, default)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise SettingsValidationError(f"{key} must be numeric") from None
    if result < 0:
        raise SettingsValidationError(f"{key} cannot be negative")
    return result
