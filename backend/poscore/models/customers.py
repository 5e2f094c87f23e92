from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer master data for credit sales and loyalty.

    CREDIT:
    - maximum_credit_limit_cents: per-customer limit; NULL falls back to the
      configured default limit.
    - credit_blocked: set when a monthly statement escalates to overdue,
      cleared once no overdue statement remains due. Blocks new credit sales.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    maximum_credit_limit_cents = db.Column(db.Integer, nullable=True)
    credit_blocked = db.Column(db.Boolean, nullable=False, default=False)

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    loyalty_tier_id = db.Column(db.Integer, db.ForeignKey("loyalty_tiers.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    loyalty_tier = db.relationship("LoyaltyTier")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "maximum_credit_limit_cents": self.maximum_credit_limit_cents,
            "credit_blocked": self.credit_blocked,
            "loyalty_points": self.loyalty_points,
            "loyalty_tier_id": self.loyalty_tier_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class LoyaltyTier(db.Model):
    """
    Loyalty tier; a customer belongs to the highest tier whose min_points
    does not exceed their points balance.

    point_multiplier_bps is in basis points: 10000 = x1, 12500 = x1.25.
    """
    __tablename__ = "loyalty_tiers"
    __table_args__ = (
        db.UniqueConstraint("min_points", name="uq_loyalty_tiers_min_points"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    min_points = db.Column(db.Integer, nullable=False, default=0)
    point_multiplier_bps = db.Column(db.Integer, nullable=False, default=10000)
    color = db.Column(db.String(16), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "min_points": self.min_points,
            "point_multiplier_bps": self.point_multiplier_bps,
            "color": self.color,
        }
