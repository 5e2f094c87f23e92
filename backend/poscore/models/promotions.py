from __future__ import annotations

from ..extensions import db
from poscore.time_utils import iso_date, to_utc_z, utcnow


class Promotion(db.Model):
    """
    Code-based cart promotion.

    promo_type:
    - percentage: discount_value in basis points (1000 = 10%)
    - fixed: discount_value in cents

    Codes are unique case-insensitively; code_normalized carries the
    upper-cased code so the database enforces it as well.
    """
    __tablename__ = "promotions"
    __table_args__ = (
        db.UniqueConstraint("code_normalized", name="uq_promotions_code_normalized"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=False)
    code_normalized = db.Column(db.String(64), nullable=False)

    promo_type = db.Column(db.String(16), nullable=False)  # percentage, fixed
    discount_value = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "promo_type": self.promo_type,
            "discount_value": self.discount_value,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class GiftCard(db.Model):
    """
    Prepaid balance redeemable against sales.

    INVARIANTS:
    - current_balance_cents never goes below zero
    - current_balance_cents only decreases after issuance
    - a card drained to zero is disabled
    """
    __tablename__ = "gift_cards"
    __table_args__ = (
        db.CheckConstraint("current_balance_cents >= 0", name="ck_gift_cards_balance_non_negative"),
    )

    id = db.Column(db.String(32), primary_key=True)  # card code

    initial_balance_cents = db.Column(db.Integer, nullable=False)
    current_balance_cents = db.Column(db.Integer, nullable=False)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    expiry_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("gift_cards", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "initial_balance_cents": self.initial_balance_cents,
            "current_balance_cents": self.current_balance_cents,
            "is_enabled": self.is_enabled,
            "customer_id": self.customer_id,
            "expiry_date": iso_date(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
        }
