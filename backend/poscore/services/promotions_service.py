from __future__ import annotations

from ..extensions import db
from ..models import Promotion
from .concurrency import run_atomic
from .errors import DuplicatePromotionCodeError, InvalidPromotionError, NotFoundError, PromotionError


PROMO_TYPES = ("percentage", "fixed")
MAX_PERCENTAGE_BPS = 10000


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def find_active_promotion(code: str | None) -> Promotion:
    """Resolve a cashier-entered code (trimmed, case-insensitive) to an active promotion."""
    normalized = normalize_code(code)
    promo = None
    if normalized:
        promo = db.session.query(Promotion).filter_by(code_normalized=normalized, is_active=True).first()
    if promo is None:
        raise InvalidPromotionError("Invalid or inactive promo code.", details={"code": code})
    return promo


def _validate_discount(promo_type: str, discount_value) -> None:
    if promo_type not in PROMO_TYPES:
        raise PromotionError("promo_type must be 'percentage' or 'fixed'")
    if isinstance(discount_value, bool) or not isinstance(discount_value, int) or discount_value < 0:
        raise PromotionError("discount_value must be a non-negative integer")
    if promo_type == "percentage" and discount_value > MAX_PERCENTAGE_BPS:
        raise PromotionError("Percentage discount cannot exceed 100%")


def _ensure_code_available(normalized: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Promotion).filter_by(code_normalized=normalized)
    if exclude_id is not None:
        q = q.filter(Promotion.id != exclude_id)
    if q.first() is not None:
        raise DuplicatePromotionCodeError(
            f"Promo code '{normalized}' already exists.",
            details={"code": normalized},
        )


def list_promotions(active_only: bool = False) -> list[Promotion]:
    q = db.session.query(Promotion)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Promotion.created_at.desc(), Promotion.id.desc()).all()


def create_promotion(data: dict) -> Promotion:
    name = (data.get("name") or "").strip()
    if not name:
        raise PromotionError("Promotion name is required")
    code = (data.get("code") or "").strip()
    normalized = normalize_code(code)
    if not normalized:
        raise PromotionError("Promo code is required")
    promo_type = data.get("promo_type")
    discount_value = data.get("discount_value")
    _validate_discount(promo_type, discount_value)

    def _op():
        _ensure_code_available(normalized)
        promo = Promotion(
            name=name,
            code=code,
            code_normalized=normalized,
            promo_type=promo_type,
            discount_value=discount_value,
            is_active=bool(data.get("is_active", True)),
        )
        db.session.add(promo)
        db.session.flush()
        return promo

    return run_atomic(_op)


def update_promotion(promo_id: int, data: dict) -> Promotion:
    def _op():
        promo = db.session.get(Promotion, promo_id)
        if promo is None:
            raise NotFoundError("Promotion not found", details={"promotion_id": promo_id})

        if "code" in data:
            code = (data["code"] or "").strip()
            normalized = normalize_code(code)
            if not normalized:
                raise PromotionError("Promo code is required")
            _ensure_code_available(normalized, exclude_id=promo.id)
            promo.code = code
            promo.code_normalized = normalized
        if "name" in data:
            name = (data["name"] or "").strip()
            if not name:
                raise PromotionError("Promotion name is required")
            promo.name = name

        promo_type = data.get("promo_type", promo.promo_type)
        discount_value = data.get("discount_value", promo.discount_value)
        _validate_discount(promo_type, discount_value)
        promo.promo_type = promo_type
        promo.discount_value = discount_value

        if "is_active" in data:
            promo.is_active = bool(data["is_active"])
        return promo

    return run_atomic(_op)
