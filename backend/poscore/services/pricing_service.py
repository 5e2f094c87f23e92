# Overview: Pricing & discount engine; cart snapshots and layered totals (promotion, then gift card).

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..models import GiftCard, Product, Promotion
from .errors import SaleError
from . import gift_card_service, promotions_service


@dataclass(frozen=True)
class CartItem:
    """Snapshot of a product line in the cart. Never persisted as-is."""
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int
    category: str = "General"
    is_bundle: bool = False

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "category": self.category,
            "is_bundle": self.is_bundle,
            "line_total_cents": self.line_total_cents,
        }


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal_cents: int
    promotion_discount_cents: int
    after_promotion_cents: int
    gift_card_deduction_cents: int
    total_cents: int
    promotion_code: str | None = None
    gift_card_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "promotion_discount_cents": self.promotion_discount_cents,
            "after_promotion_cents": self.after_promotion_cents,
            "gift_card_deduction_cents": self.gift_card_deduction_cents,
            "total_cents": self.total_cents,
            "promotion_code": self.promotion_code,
            "gift_card_id": self.gift_card_id,
        }


def build_cart(items: list[dict]) -> list[CartItem]:
    """
    Turn [{product_id, quantity}] into CartItem snapshots.

    Duplicate product ids are merged; order of first appearance is kept.
    """
    if not items:
        raise SaleError("Cart is empty")

    quantities: dict[int, int] = {}
    for entry in items:
        product_id = entry.get("product_id")
        quantity = entry.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise SaleError("Quantity must be a positive integer", details={"product_id": product_id})
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    cart = []
    for product_id, quantity in quantities.items():
        product = db.session.get(Product, product_id) if isinstance(product_id, int) else None
        if product is None:
            raise SaleError("Product not found", details={"product_id": product_id})
        cart.append(CartItem(
            product_id=product.id,
            name=product.name,
            unit_price_cents=product.price_cents,
            quantity=quantity,
            category=product.category,
            is_bundle=product.is_bundle,
        ))
    return cart


def promotion_discount_cents(subtotal_cents: int, promotion: Promotion | None) -> int:
    """Percentage in basis points rounds half-up to the cent; result is clamped to [0, subtotal]."""
    if promotion is None or subtotal_cents <= 0:
        return 0
    if promotion.promo_type == "percentage":
        discount = (subtotal_cents * promotion.discount_value + 5000) // 10000
    elif promotion.promo_type == "fixed":
        discount = promotion.discount_value
    else:
        discount = 0
    return max(0, min(discount, subtotal_cents))


def compute_totals(
    cart: list[CartItem],
    promotion: Promotion | None = None,
    gift_card: GiftCard | None = None,
) -> PriceBreakdown:
    """
    subtotal -> promotion discount -> gift card deduction -> total.

    The order is fixed: the gift card only ever pays what is left after
    the promotion.
    """
    subtotal = sum(item.line_total_cents for item in cart)
    discount = promotion_discount_cents(subtotal, promotion)
    after_promo = subtotal - discount

    deduction = 0
    if gift_card is not None:
        deduction = max(0, min(after_promo, gift_card.current_balance_cents))

    return PriceBreakdown(
        subtotal_cents=subtotal,
        promotion_discount_cents=discount,
        after_promotion_cents=after_promo,
        gift_card_deduction_cents=deduction,
        total_cents=max(0, after_promo - deduction),
        promotion_code=promotion.code if promotion is not None else None,
        gift_card_id=gift_card.id if gift_card is not None else None,
    )


def resolve_discounts(
    promo_code: str | None,
    gift_card_code: str | None,
    now: datetime | None = None,
) -> tuple[Promotion | None, GiftCard | None]:
    """Blank codes mean 'not applied'; anything else must resolve or raise."""
    promotion = None
    if promo_code is not None and promo_code.strip():
        promotion = promotions_service.find_active_promotion(promo_code)

    gift_card = None
    if gift_card_code is not None and gift_card_code.strip():
        gift_card = gift_card_service.find_redeemable_gift_card(gift_card_code, now)

    return promotion, gift_card


def preview_total(
    items: list[dict],
    promo_code: str | None = None,
    gift_card_code: str | None = None,
    now: datetime | None = None,
) -> PriceBreakdown:
    cart = build_cart(items)
    promotion, gift_card = resolve_discounts(promo_code, gift_card_code, now)
    return compute_totals(cart, promotion, gift_card)
