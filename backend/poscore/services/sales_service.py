"""
Sale commit orchestration and the payment lifecycle of committed transactions.

commit_sale is the only way a Transaction comes into existence. Everything
(customer, cart, codes, stock, credit) is validated before the first write;
stock, gift card, loyalty and the transaction row (or its offline queue
entry) are then written and committed together.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from ..extensions import db
from ..models import Customer, GiftCardPayment, OfflineQueueEntry, Transaction, TransactionLine
from ..models.sales import ORDER_STATUSES
from ..settings import LedgerSettings
from poscore.time_utils import normalize_datetime
from .concurrency import lock_for_update, run_atomic
from .errors import NotFoundError, SaleError
from . import (
    credit_service,
    gift_card_service,
    inventory_service,
    loyalty_service,
    notification_service,
    pricing_service,
    sync_service,
)


# Methods a cashier can choose; gift_card and multiple are derived
TENDER_METHODS = ("cash", "card", "transfer")


def generate_transaction_id() -> str:
    return f"INV-{uuid.uuid4().hex[:12].upper()}"


def resolve_payment_method(gift_card_applied: bool, total_cents: int, supplied: str | None) -> str | None:
    if gift_card_applied:
        if total_cents == 0:
            return "gift_card"
        return "multiple" if supplied else "gift_card"
    return supplied


def _transaction_exists(transaction_id: str) -> bool:
    if db.session.get(Transaction, transaction_id) is not None:
        return True
    return db.session.query(OfflineQueueEntry.position).filter_by(transaction_id=transaction_id).first() is not None


def commit_sale(
    customer_id: int,
    items: list[dict],
    *,
    settings: LedgerSettings,
    promo_code: str | None = None,
    gift_card_code: str | None = None,
    payment_method: str | None = None,
    transaction_id: str | None = None,
    now: datetime | None = None,
) -> Transaction:
    """
    Commit a sale.

    Returns the Transaction. When the till is offline the returned object is
    transient and its payload sits in the offline queue until the next flush.
    """
    if payment_method is not None and payment_method not in TENDER_METHODS:
        raise SaleError("Invalid payment method", details={"payment_method": payment_method})

    def _op():
        occurred_at = normalize_datetime(now)

        customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
        if customer is None:
            raise SaleError("A customer must be selected", details={"customer_id": customer_id})

        tx_id = (transaction_id or "").strip() or generate_transaction_id()
        if _transaction_exists(tx_id):
            raise SaleError("Transaction id already exists", details={"transaction_id": tx_id})

        cart = pricing_service.build_cart(items)
        promotion, gift_card = pricing_service.resolve_discounts(promo_code, gift_card_code, occurred_at)
        breakdown = pricing_service.compute_totals(cart, promotion, gift_card)

        lookup = inventory_service.build_lookup(item.product_id for item in cart)
        inventory_service.plan_stock_deductions(
            [(lookup[item.product_id], item.quantity) for item in cart],
            lookup,
        )

        credit_service.check_credit(customer, breakdown.total_cents, settings)

        # Validation complete; writes start here
        for item in cart:
            product = lookup[item.product_id]
            notes = f"Sale of bundle '{product.name}'" if product.is_bundle else None
            for component_id, units in inventory_service.decompose(product, item.quantity, lookup).items():
                inventory_service.apply_delta(
                    component_id,
                    -units,
                    "sale",
                    notes=notes,
                    related_id=tx_id,
                    occurred_at=occurred_at,
                )

        gift_card_payments = []
        if gift_card is not None and breakdown.gift_card_deduction_cents > 0:
            gift_card_service.redeem(gift_card, breakdown.gift_card_deduction_cents)
            gift_card_payments.append(GiftCardPayment(
                gift_card_id=gift_card.id,
                amount_cents=breakdown.gift_card_deduction_cents,
            ))

        tx = Transaction(
            id=tx_id,
            customer_id=customer.id,
            subtotal_cents=breakdown.subtotal_cents,
            discount_cents=breakdown.promotion_discount_cents,
            promotion_code=breakdown.promotion_code,
            total_cents=breakdown.total_cents,
            created_at=occurred_at,
            payment_status="paid" if breakdown.total_cents == 0 else "unpaid",
            payment_method=resolve_payment_method(
                gift_card is not None, breakdown.total_cents, payment_method
            ),
            payment_date=occurred_at if breakdown.total_cents == 0 else None,
            order_status="Delivered",
        )
        tx.lines = [
            TransactionLine(
                product_id=item.product_id,
                name=item.name,
                unit_price_cents=item.unit_price_cents,
                quantity=item.quantity,
            )
            for item in cart
        ]
        tx.gift_card_payments = gift_card_payments

        loyalty_service.award_points(customer, breakdown.total_cents, settings)

        if sync_service.is_online():
            db.session.add(tx)
        else:
            sync_service.enqueue_transaction(tx)

        notification_service.notify("success", "Transaction Saved!")
        return tx

    return run_atomic(_op)


def get_transaction(transaction_id: str) -> Transaction:
    tx = db.session.get(Transaction, transaction_id)
    if tx is None:
        raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
    return tx


def list_transactions(customer_id: int | None = None, payment_status: str | None = None) -> list[Transaction]:
    q = db.session.query(Transaction)
    if customer_id is not None:
        q = q.filter(Transaction.customer_id == customer_id)
    if payment_status:
        q = q.filter(Transaction.payment_status == payment_status)
    return q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).all()


def mark_transaction_paid(
    transaction_id: str,
    payment_method: str,
    now: datetime | None = None,
    reference: str | None = None,
) -> Transaction:
    """Settle an unpaid (or under-review) transaction."""
    if payment_method not in TENDER_METHODS:
        raise SaleError("Invalid payment method", details={"payment_method": payment_method})

    def _op():
        tx = get_transaction(transaction_id)
        if tx.payment_status == "paid":
            raise SaleError("Transaction is already paid", details={"transaction_id": tx.id})
        tx.payment_status = "paid"
        tx.payment_method = "multiple" if tx.gift_card_payments else payment_method
        tx.payment_date = normalize_datetime(now)
        if reference:
            tx.payment_reference = reference
        return tx

    return run_atomic(_op)


def submit_payment_for_review(transaction_id: str, reference: str) -> Transaction:
    """Customer reports a transfer; the transaction waits for a cashier to confirm it."""
    reference = (reference or "").strip()
    if not reference:
        raise SaleError("A payment reference is required")

    def _op():
        tx = get_transaction(transaction_id)
        if tx.payment_status != "unpaid":
            raise SaleError(
                "Only unpaid transactions can be submitted for review",
                details={"transaction_id": tx.id, "payment_status": tx.payment_status},
            )
        tx.payment_status = "review"
        tx.payment_reference = reference
        return tx

    return run_atomic(_op)


def reject_payment_review(transaction_id: str) -> Transaction:
    def _op():
        tx = get_transaction(transaction_id)
        if tx.payment_status != "review":
            raise SaleError("Transaction is not under review", details={"transaction_id": tx.id})
        tx.payment_status = "unpaid"
        tx.payment_reference = None
        return tx

    return run_atomic(_op)


def update_order_status(transaction_id: str, status: str) -> Transaction:
    if status not in ORDER_STATUSES:
        raise SaleError("Invalid order status", details={"order_status": status})

    def _op():
        tx = get_transaction(transaction_id)
        tx.order_status = status
        return tx

    return run_atomic(_op)
