# Overview: Gift-card store; issuance, lookup of redeemable cards and balance redemption.

from __future__ import annotations

import secrets
import string
from datetime import date, datetime

from ..extensions import db
from ..models import Customer, GiftCard
from poscore.time_utils import normalize_datetime
from .concurrency import lock_for_update, run_atomic
from .errors import GiftCardError, InvalidGiftCardError, NotFoundError


_CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def generate_code() -> str:
    """GC-XXXX-XXXX, retried until unused."""
    while True:
        body = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(8))
        code = f"GC-{body[:4]}-{body[4:]}"
        if db.session.get(GiftCard, code) is None:
            return code


def get_gift_card(code: str) -> GiftCard:
    card = db.session.get(GiftCard, normalize_code(code))
    if card is None:
        raise NotFoundError("Gift card not found", details={"code": code})
    return card


def is_redeemable(card: GiftCard, today: date) -> bool:
    if not card.is_enabled or card.current_balance_cents <= 0:
        return False
    return card.expiry_date is None or today <= card.expiry_date


def find_redeemable_gift_card(code: str | None, now: datetime | None = None) -> GiftCard:
    """Enabled, positive balance and not past its expiry date."""
    normalized = normalize_code(code)
    card = None
    if normalized:
        card = lock_for_update(db.session.query(GiftCard).filter_by(id=normalized)).first()
    if card is None or not is_redeemable(card, normalize_datetime(now).date()):
        raise InvalidGiftCardError("Invalid or empty gift card.", details={"code": code})
    return card


def build_gift_card(
    initial_balance_cents: int,
    *,
    customer_id: int | None = None,
    expiry_date: date | None = None,
    code: str | None = None,
) -> GiftCard:
    """Add a new card to the session without committing (used inside larger units of work)."""
    if isinstance(initial_balance_cents, bool) or not isinstance(initial_balance_cents, int):
        raise GiftCardError("Gift card balance must be an integer amount of cents")
    if initial_balance_cents <= 0:
        raise GiftCardError("Gift card balance must be positive")
    if customer_id is not None and db.session.get(Customer, customer_id) is None:
        raise GiftCardError("Customer not found", details={"customer_id": customer_id})

    if code:
        code = normalize_code(code)
        if db.session.get(GiftCard, code) is not None:
            raise GiftCardError("Gift card code already exists", details={"code": code})
    else:
        code = generate_code()

    card = GiftCard(
        id=code,
        initial_balance_cents=initial_balance_cents,
        current_balance_cents=initial_balance_cents,
        is_enabled=True,
        customer_id=customer_id,
        expiry_date=expiry_date,
    )
    db.session.add(card)
    return card


def issue_gift_card(
    initial_balance_cents: int,
    customer_id: int | None = None,
    expiry_date: date | None = None,
    code: str | None = None,
) -> GiftCard:
    return run_atomic(lambda: build_gift_card(
        initial_balance_cents,
        customer_id=customer_id,
        expiry_date=expiry_date,
        code=code,
    ))


def redeem(card: GiftCard, amount_cents: int) -> GiftCard:
    """
    Deduct `amount_cents` from the card. Does not commit.

    The balance never goes below zero and a card drained to zero is disabled.
    """
    if amount_cents <= 0:
        raise GiftCardError("Redemption amount must be positive")
    if amount_cents > card.current_balance_cents:
        raise GiftCardError(
            "Redemption exceeds gift card balance",
            details={"code": card.id, "balance_cents": card.current_balance_cents},
        )
    card.current_balance_cents -= amount_cents
    if card.current_balance_cents == 0:
        card.is_enabled = False
    return card


def set_gift_card_enabled(code: str, enabled: bool) -> GiftCard:
    def _op():
        card = get_gift_card(code)
        card.is_enabled = bool(enabled)
        return card

    return run_atomic(_op)


def list_gift_cards(customer_id: int | None = None) -> list[GiftCard]:
    q = db.session.query(GiftCard)
    if customer_id is not None:
        q = q.filter_by(customer_id=customer_id)
    return q.order_by(GiftCard.created_at.desc(), GiftCard.id.asc()).all()
