from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow


PAYMENT_STATUSES = ("paid", "unpaid", "review")
PAYMENT_METHODS = ("cash", "card", "transfer", "gift_card", "multiple")
ORDER_STATUSES = ("Pending", "Out for Delivery", "Delivered")


class Transaction(db.Model):
    """
    Committed sale.

    IMMUTABLE once created: lines, subtotal_cents, discount_cents and
    total_cents. Only payment fields, order_status and the returns list are
    layered on afterwards. Transactions are never deleted.

    The id is generated client-side (INV-...), so sales queued while offline
    keep their identity when they are flushed into this table.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_customer_status", "customer_id", "payment_status"),
        db.Index("ix_transactions_created", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    promotion_code = db.Column(db.String(64), nullable=True)
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")  # paid, unpaid, review
    payment_method = db.Column(db.String(16), nullable=True)  # cash, card, transfer, gift_card, multiple
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_reference = db.Column(db.String(255), nullable=True)
    order_status = db.Column(db.String(32), nullable=False, default="Delivered")

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    lines = db.relationship(
        "TransactionLine",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TransactionLine.id",
    )
    gift_card_payments = db.relationship(
        "GiftCardPayment",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="GiftCardPayment.id",
    )
    returns = db.relationship(
        "ReturnEvent",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ReturnEvent.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction id={self.id!r} customer_id={self.customer_id} total_cents={self.total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "promotion_code": self.promotion_code,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "payment_date": to_utc_z(self.payment_date) if self.payment_date else None,
            "payment_reference": self.payment_reference,
            "order_status": self.order_status,
            "gift_card_payments": [p.to_dict() for p in self.gift_card_payments],
            "returns": [r.to_dict() for r in self.returns],
        }


class TransactionLine(db.Model):
    """Immutable snapshot of a cart line at commit time."""
    __tablename__ = "transaction_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), db.ForeignKey("transactions.id"), nullable=False, index=True)

    # Product id at sale time; return requests reference lines by this id
    product_id = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.unit_price_cents * self.quantity,
        }


class GiftCardPayment(db.Model):
    """Amount of a gift card redeemed against a transaction."""
    __tablename__ = "gift_card_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), db.ForeignKey("transactions.id"), nullable=False, index=True)
    gift_card_id = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "gift_card_id": self.gift_card_id,
            "amount_cents": self.amount_cents,
        }


class ReturnEvent(db.Model):
    """
    One return processed against a transaction.

    INVARIANT: for any item, the sum of quantities across all of a
    transaction's return events never exceeds the purchased quantity.
    """
    __tablename__ = "return_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), db.ForeignKey("transactions.id"), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Store credit card issued for this return, if any
    gift_card_id = db.Column(db.String(32), nullable=True)

    items = db.relationship(
        "ReturnEventItem",
        backref="return_event",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ReturnEventItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "gift_card_id": self.gift_card_id,
            "items": [item.to_dict() for item in self.items],
        }


class ReturnEventItem(db.Model):
    __tablename__ = "return_event_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_event_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_event_id = db.Column(db.Integer, db.ForeignKey("return_events.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "quantity": self.quantity,
            "reason": self.reason,
        }
