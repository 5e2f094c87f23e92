# Overview: Pytest coverage for cart pricing, promotions and gift cards.

import random
from datetime import date, datetime

import pytest

from poscore.models import GiftCard, Promotion
from poscore.services import gift_card_service, pricing_service, promotions_service
from poscore.services.errors import (
    DuplicatePromotionCodeError,
    GiftCardError,
    InvalidGiftCardError,
    InvalidPromotionError,
    PromotionError,
    SaleError,
)
from poscore.services.pricing_service import CartItem


def _cart(*line_totals):
    return [CartItem(product_id=i, name=f"Item {i}", unit_price_cents=c, quantity=1) for i, c in enumerate(line_totals, 1)]


def _promo(promo_type, value):
    return Promotion(code="TEST", code_normalized="TEST", promo_type=promo_type, discount_value=value, is_active=True)


def _card(balance):
    return GiftCard(id="GC-TEST-0001", initial_balance_cents=balance, current_balance_cents=balance, is_enabled=True)


class TestComputeTotals:
    """Promotion first, then gift card, then the remaining total."""

    def test_no_discounts(self):
        breakdown = pricing_service.compute_totals(_cart(1200, 800))
        assert breakdown.subtotal_cents == 2000
        assert breakdown.total_cents == 2000
        assert breakdown.promotion_discount_cents == 0
        assert breakdown.gift_card_deduction_cents == 0

    def test_promotion_applies_before_gift_card(self):
        # 10% off 50.00 leaves 45.00; the 30.00 card covers 30.00 of it
        breakdown = pricing_service.compute_totals(_cart(5000), _promo("percentage", 1000), _card(3000))

        assert breakdown.promotion_discount_cents == 500
        assert breakdown.after_promotion_cents == 4500
        assert breakdown.gift_card_deduction_cents == 3000
        assert breakdown.total_cents == 1500

    def test_gift_card_larger_than_total(self):
        breakdown = pricing_service.compute_totals(_cart(2000), _promo("fixed", 500), _card(10000))
        assert breakdown.gift_card_deduction_cents == 1500
        assert breakdown.total_cents == 0

    def test_fixed_discount_clamped_to_subtotal(self):
        breakdown = pricing_service.compute_totals(_cart(300), _promo("fixed", 1000))
        assert breakdown.promotion_discount_cents == 300
        assert breakdown.total_cents == 0

    def test_percentage_rounds_half_up(self):
        # 12.5% of 0.99 = 0.12375 -> 0.12; 12.5% of 1.00 = 0.125 -> 0.13
        assert pricing_service.promotion_discount_cents(99, _promo("percentage", 1250)) == 12
        assert pricing_service.promotion_discount_cents(100, _promo("percentage", 1250)) == 13

    def test_layering_holds_for_random_carts(self):
        rng = random.Random(1234)
        for _ in range(200):
            cart = _cart(*[rng.randint(0, 5000) for _ in range(rng.randint(1, 5))])
            promo = rng.choice([None, _promo("percentage", rng.randint(0, 10000)), _promo("fixed", rng.randint(0, 8000))])
            card = rng.choice([None, _card(rng.randint(1, 10000))])

            b = pricing_service.compute_totals(cart, promo, card)

            assert 0 <= b.promotion_discount_cents <= b.subtotal_cents
            assert b.after_promotion_cents == b.subtotal_cents - b.promotion_discount_cents
            assert 0 <= b.gift_card_deduction_cents <= b.after_promotion_cents
            assert b.total_cents == b.after_promotion_cents - b.gift_card_deduction_cents
            assert b.total_cents >= 0


class TestBuildCart:

    def test_duplicate_products_are_merged(self, make_product):
        product = make_product("Eggs", 350, stock=10)
        cart = pricing_service.build_cart([
            {"product_id": product.id, "quantity": 2},
            {"product_id": product.id, "quantity": 3},
        ])
        assert len(cart) == 1
        assert cart[0].quantity == 5
        assert cart[0].line_total_cents == 1750

    def test_empty_cart_rejected(self, db_session):
        with pytest.raises(SaleError):
            pricing_service.build_cart([])

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
    def test_bad_quantity_rejected(self, make_product, quantity):
        product = make_product("Eggs", 350, stock=10)
        with pytest.raises(SaleError):
            pricing_service.build_cart([{"product_id": product.id, "quantity": quantity}])

    def test_unknown_product_rejected(self, db_session):
        with pytest.raises(SaleError):
            pricing_service.build_cart([{"product_id": 999, "quantity": 1}])


class TestPromotions:

    def test_code_lookup_is_trimmed_and_case_insensitive(self, db_session):
        promotions_service.create_promotion({
            "name": "Ramadan Sale", "code": "Save10", "promo_type": "percentage", "discount_value": 1000,
        })
        promo = promotions_service.find_active_promotion("  save10 ")
        assert promo.code == "Save10"

    def test_inactive_code_is_invalid(self, db_session):
        promo = promotions_service.create_promotion({
            "name": "Old", "code": "OLD5", "promo_type": "fixed", "discount_value": 500,
        })
        promotions_service.update_promotion(promo.id, {"is_active": False})

        with pytest.raises(InvalidPromotionError) as exc:
            promotions_service.find_active_promotion("OLD5")
        assert exc.value.message == "Invalid or inactive promo code."

    def test_duplicate_code_rejected_case_insensitively(self, db_session):
        promotions_service.create_promotion({
            "name": "A", "code": "WELCOME", "promo_type": "fixed", "discount_value": 100,
        })
        with pytest.raises(DuplicatePromotionCodeError):
            promotions_service.create_promotion({
                "name": "B", "code": "welcome", "promo_type": "fixed", "discount_value": 200,
            })

    def test_percentage_over_100_rejected(self, db_session):
        with pytest.raises(PromotionError):
            promotions_service.create_promotion({
                "name": "Too much", "code": "X", "promo_type": "percentage", "discount_value": 10001,
            })

    def test_blank_codes_mean_not_applied(self, db_session):
        promotion, card = pricing_service.resolve_discounts("   ", "")
        assert promotion is None
        assert card is None


class TestGiftCards:

    def test_issue_generates_code(self, db_session):
        card = gift_card_service.issue_gift_card(2500)
        assert card.id.startswith("GC-")
        assert len(card.id) == len("GC-XXXX-XXXX")
        assert card.current_balance_cents == 2500

    def test_non_positive_balance_rejected(self, db_session):
        with pytest.raises(GiftCardError):
            gift_card_service.issue_gift_card(0)

    def test_expired_card_is_invalid(self, db_session):
        gift_card_service.issue_gift_card(1000, expiry_date=date(2025, 1, 31), code="gc-old")

        assert gift_card_service.find_redeemable_gift_card("GC-OLD", now=datetime(2025, 1, 31, 20, 0))
        with pytest.raises(InvalidGiftCardError) as exc:
            gift_card_service.find_redeemable_gift_card("GC-OLD", now=datetime(2025, 2, 1, 8, 0))
        assert exc.value.message == "Invalid or empty gift card."

    def test_disabled_card_is_invalid(self, db_session):
        card = gift_card_service.issue_gift_card(1000)
        gift_card_service.set_gift_card_enabled(card.id, False)
        with pytest.raises(InvalidGiftCardError):
            gift_card_service.find_redeemable_gift_card(card.id)

    def test_redeem_to_zero_disables(self):
        card = _card(700)
        gift_card_service.redeem(card, 700)
        assert card.current_balance_cents == 0
        assert card.is_enabled is False

    def test_redeem_more_than_balance_rejected(self):
        card = _card(700)
        with pytest.raises(GiftCardError):
            gift_card_service.redeem(card, 701)
        assert card.current_balance_cents == 700

    def test_preview_uses_stored_promotion_and_card(self, make_product):
        product = make_product("Headphones", 2500, stock=3)
        promotions_service.create_promotion({
            "name": "Ten", "code": "TEN", "promo_type": "percentage", "discount_value": 1000,
        })
        card = gift_card_service.issue_gift_card(3000)

        breakdown = pricing_service.preview_total(
            [{"product_id": product.id, "quantity": 2}], promo_code="ten", gift_card_code=card.id.lower(),
        )
        assert breakdown.total_cents == 1500
        assert breakdown.gift_card_id == card.id
