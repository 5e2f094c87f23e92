# Overview: Credit enforcement engine; credit block and credit limit checks for unpaid (credit) sales.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, MonthlyStatement, OfflineQueueEntry, Transaction
from ..settings import LedgerSettings
from .concurrency import run_atomic
from .errors import CreditBlockedError, CreditLimitExceededError, NotFoundError


@dataclass(frozen=True)
class CreditDecision:
    limit_cents: int
    outstanding_cents: int
    remaining_after_cents: int

    def to_dict(self) -> dict:
        return {
            "limit_cents": self.limit_cents,
            "outstanding_cents": self.outstanding_cents,
            "remaining_after_cents": self.remaining_after_cents,
        }


def credit_limit_cents(customer: Customer, settings: LedgerSettings) -> int:
    if customer.maximum_credit_limit_cents is not None:
        return customer.maximum_credit_limit_cents
    return settings.default_credit_limit_cents


def get_outstanding_balance(customer_id: int) -> int:
    """
    Sum of totals of the customer's unpaid transactions.

    Sales still waiting in the offline queue count too; otherwise a till
    that stays offline could extend unlimited credit.
    """
    stored = db.session.query(
        func.coalesce(func.sum(Transaction.total_cents), 0)
    ).filter(
        Transaction.customer_id == customer_id,
        Transaction.payment_status == "unpaid",
    ).scalar()

    queued = 0
    for entry in db.session.query(OfflineQueueEntry).all():
        payload = entry.payload or {}
        if payload.get("customer_id") == customer_id and payload.get("payment_status") == "unpaid":
            queued += int(payload.get("total_cents") or 0)

    return int(stored or 0) + queued


def check_credit(customer: Customer, total_cents: int, settings: LedgerSettings) -> CreditDecision:
    """
    Gate a sale that leaves `total_cents` unpaid.

    Order: credit block first, then limit. A zero total bypasses both.
    """
    limit = credit_limit_cents(customer, settings)
    if total_cents <= 0:
        outstanding = get_outstanding_balance(customer.id)
        return CreditDecision(limit, outstanding, limit - outstanding)

    if customer.credit_blocked:
        raise CreditBlockedError(
            "Credit Block: Account is Overdue on Payments.",
            details={"customer_id": customer.id},
        )

    outstanding = get_outstanding_balance(customer.id)
    if outstanding + total_cents > limit:
        remaining = limit - outstanding
        raise CreditLimitExceededError(
            f"Credit Limit Exceeded. Remaining Limit: {settings.format_money(remaining)}",
            remaining_cents=remaining,
            details={
                "customer_id": customer.id,
                "limit_cents": limit,
                "outstanding_cents": outstanding,
                "requested_cents": total_cents,
            },
        )

    return CreditDecision(limit, outstanding, limit - outstanding - total_cents)


def has_overdue_statement(customer_id: int, exclude_statement_id: str | None = None) -> bool:
    q = db.session.query(MonthlyStatement.id).filter(
        MonthlyStatement.customer_id == customer_id,
        MonthlyStatement.status == "due",
        MonthlyStatement.overdue_status == "7_days_overdue",
    )
    if exclude_statement_id is not None:
        q = q.filter(MonthlyStatement.id != exclude_statement_id)
    return q.first() is not None


def refresh_credit_block(customer: Customer) -> bool:
    """Clear the block once no overdue statement is still due. Does not commit."""
    if customer.credit_blocked and not has_overdue_statement(customer.id):
        customer.credit_blocked = False
    return customer.credit_blocked


def set_credit_block(customer_id: int, blocked: bool) -> Customer:
    """Manual override of the credit block flag."""
    def _op():
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})
        customer.credit_blocked = bool(blocked)
        return customer

    return run_atomic(_op)


def credit_summary(customer: Customer, settings: LedgerSettings) -> dict:
    limit = credit_limit_cents(customer, settings)
    outstanding = get_outstanding_balance(customer.id)
    return {
        "customer_id": customer.id,
        "limit_cents": limit,
        "outstanding_cents": outstanding,
        "available_cents": limit - outstanding,
        "credit_blocked": customer.credit_blocked,
    }
