# Overview: Loyalty engine; point awards on committed sales and one-way tier promotion.

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal

from ..extensions import db
from ..models import Customer, LoyaltyTier
from ..settings import LedgerSettings
from .concurrency import run_atomic
from .errors import LoyaltyError


BASE_MULTIPLIER_BPS = 10000


def list_tiers() -> list[LoyaltyTier]:
    return db.session.query(LoyaltyTier).order_by(LoyaltyTier.min_points.asc()).all()


def resolve_tier(points: int) -> LoyaltyTier | None:
    """Highest tier whose min_points does not exceed `points`."""
    return (
        db.session.query(LoyaltyTier)
        .filter(LoyaltyTier.min_points <= points)
        .order_by(LoyaltyTier.min_points.desc())
        .first()
    )


def create_tier(name: str, min_points: int, point_multiplier_bps: int = BASE_MULTIPLIER_BPS, color: str | None = None) -> LoyaltyTier:
    name = (name or "").strip()
    if not name:
        raise LoyaltyError("Tier name is required")
    if isinstance(min_points, bool) or not isinstance(min_points, int) or min_points < 0:
        raise LoyaltyError("min_points must be a non-negative integer")
    if isinstance(point_multiplier_bps, bool) or not isinstance(point_multiplier_bps, int) or point_multiplier_bps <= 0:
        raise LoyaltyError("point_multiplier_bps must be a positive integer")

    def _op():
        if db.session.query(LoyaltyTier).filter_by(min_points=min_points).first() is not None:
            raise LoyaltyError("A tier with this min_points already exists", details={"min_points": min_points})
        tier = LoyaltyTier(name=name, min_points=min_points, point_multiplier_bps=point_multiplier_bps, color=color)
        db.session.add(tier)
        db.session.flush()
        return tier

    return run_atomic(_op)


def current_tier(customer: Customer) -> LoyaltyTier | None:
    if customer.loyalty_tier is not None:
        return customer.loyalty_tier
    return resolve_tier(customer.loyalty_points or 0)


def points_for_amount(total_cents: int, points_per_unit: Decimal, multiplier_bps: int = BASE_MULTIPLIER_BPS) -> int:
    """floor(total in currency units x points_per_unit x multiplier), computed exactly."""
    if total_cents <= 0 or points_per_unit <= 0:
        return 0
    raw = (Decimal(total_cents) / 100) * points_per_unit * (Decimal(multiplier_bps) / BASE_MULTIPLIER_BPS)
    return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def award_points(customer: Customer, total_cents: int, settings: LedgerSettings) -> int:
    """
    Credit points for a committed sale and promote the tier if earned.

    The multiplier comes from the tier held before this award. Tiers are
    never demoted here. Does not commit. Returns the points awarded.
    """
    if not settings.loyalty_enabled or settings.points_per_unit <= 0:
        return 0

    tier = current_tier(customer)
    multiplier = tier.point_multiplier_bps if tier is not None else BASE_MULTIPLIER_BPS
    earned = points_for_amount(total_cents, settings.points_per_unit, multiplier)
    if earned <= 0:
        return 0

    customer.loyalty_points = (customer.loyalty_points or 0) + earned
    _promote(customer)
    return earned


def deduct_points(customer: Customer, value_cents: int, settings: LedgerSettings) -> int:
    """Take back points for returned goods, floored at zero. Tier is left unchanged."""
    if not settings.loyalty_enabled or settings.points_per_unit <= 0:
        return 0
    points = points_for_amount(value_cents, settings.points_per_unit)
    if points <= 0:
        return 0
    before = customer.loyalty_points or 0
    customer.loyalty_points = max(0, before - points)
    return before - customer.loyalty_points


def _promote(customer: Customer) -> None:
    earned_tier = resolve_tier(customer.loyalty_points or 0)
    if earned_tier is None:
        return
    held = customer.loyalty_tier
    if held is None or earned_tier.min_points > held.min_points:
        customer.loyalty_tier = earned_tier
