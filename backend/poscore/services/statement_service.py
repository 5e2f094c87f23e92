"""
Monthly Statement Service

A statement groups a customer's unpaid transactions for one billing period.

LIFECYCLE:
1. generate: status 'due', overdue_status 'none'
2. escalate: still due on/after due_date + grace days -> '7_days_overdue',
   and the customer's credit is blocked
3. pay: status 'paid', member transactions paid, credit block lifted when
   no other overdue statement is still due

Three consecutive on-time payments raise the customer's credit limit by 10%,
up to the configured cap.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import select

from ..extensions import db
from ..models import Customer, MonthlyStatement, MonthlyStatementTransaction, Transaction
from ..settings import LedgerSettings
from poscore.time_utils import normalize_datetime
from .concurrency import run_atomic
from .errors import NotFoundError, StatementError
from . import credit_service, notification_service


OVERDUE_STATUS = "7_days_overdue"
ON_TIME_STREAK = 3


def statement_id_for(period_start: date, customer_id: int) -> str:
    return f"MS-{period_start:%Y-%m}-CUST{customer_id}"


def get_statement(statement_id: str) -> MonthlyStatement:
    statement = db.session.get(MonthlyStatement, statement_id)
    if statement is None:
        raise NotFoundError("Statement not found", details={"statement_id": statement_id})
    return statement


def list_statements(customer_id: int | None = None, status: str | None = None) -> list[MonthlyStatement]:
    q = db.session.query(MonthlyStatement)
    if customer_id is not None:
        q = q.filter(MonthlyStatement.customer_id == customer_id)
    if status:
        q = q.filter(MonthlyStatement.status == status)
    return q.order_by(MonthlyStatement.billing_period_end.desc(), MonthlyStatement.id.asc()).all()


def generate_monthly_statements(
    period_start: date,
    period_end: date,
    *,
    settings: LedgerSettings,
    now: datetime | None = None,
) -> list[MonthlyStatement]:
    """One statement per customer with unpaid transactions in the period. Existing ids are skipped."""
    if period_end < period_start:
        raise StatementError("Billing period end must not be before its start")

    generated_at = normalize_datetime(now)
    start_dt = datetime.combine(period_start, time.min)
    end_dt = datetime.combine(period_end + timedelta(days=1), time.min)

    def _op():
        already_billed = select(MonthlyStatementTransaction.transaction_id)
        unpaid = (
            db.session.query(Transaction)
            .filter(
                Transaction.payment_status == "unpaid",
                Transaction.created_at >= start_dt,
                Transaction.created_at < end_dt,
                ~Transaction.id.in_(already_billed),
            )
            .order_by(Transaction.created_at.asc(), Transaction.id.asc())
            .all()
        )

        by_customer: dict[int, list[Transaction]] = {}
        for tx in unpaid:
            by_customer.setdefault(tx.customer_id, []).append(tx)

        created = []
        for customer_id, transactions in sorted(by_customer.items()):
            statement_id = statement_id_for(period_start, customer_id)
            if db.session.get(MonthlyStatement, statement_id) is not None:
                continue
            statement = MonthlyStatement(
                id=statement_id,
                customer_id=customer_id,
                billing_period_start=period_start,
                billing_period_end=period_end,
                generated_at=generated_at,
                due_date=period_end + timedelta(days=settings.statement_due_days),
                total_due_cents=sum(tx.total_cents for tx in transactions),
                status="due",
                overdue_status="none",
            )
            statement.members = [MonthlyStatementTransaction(transaction_id=tx.id) for tx in transactions]
            db.session.add(statement)
            created.append(statement)

        if created:
            notification_service.notify("info", f"{len(created)} monthly statement(s) generated.")
        return created

    return run_atomic(_op)


def escalate_overdue_statements(*, settings: LedgerSettings, now: datetime | None = None) -> list[MonthlyStatement]:
    """Mark due statements past their grace period as overdue and block the customers' credit."""
    today = normalize_datetime(now).date()
    grace = timedelta(days=settings.overdue_grace_days)

    def _op():
        candidates = (
            db.session.query(MonthlyStatement)
            .filter(MonthlyStatement.status == "due", MonthlyStatement.overdue_status == "none")
            .order_by(MonthlyStatement.due_date.asc(), MonthlyStatement.id.asc())
            .all()
        )
        escalated = []
        for statement in candidates:
            if today < statement.due_date + grace:
                continue
            statement.overdue_status = OVERDUE_STATUS
            customer = statement.customer
            if customer is not None and not customer.credit_blocked:
                customer.credit_blocked = True
                notification_service.notify(
                    "error",
                    f"{customer.name}'s account is overdue. Credit has been blocked.",
                )
            escalated.append(statement)
        return escalated

    return run_atomic(_op)


def _maybe_raise_credit_limit(customer: Customer, settings: LedgerSettings) -> int | None:
    paid = (
        db.session.query(MonthlyStatement)
        .filter(MonthlyStatement.customer_id == customer.id, MonthlyStatement.status == "paid")
        .order_by(MonthlyStatement.billing_period_end.desc())
        .limit(ON_TIME_STREAK)
        .all()
    )
    if len(paid) < ON_TIME_STREAK:
        return None
    if not all(s.payment_date is not None and s.payment_date.date() <= s.due_date for s in paid):
        return None

    current = credit_service.credit_limit_cents(customer, settings)
    new_limit = min((current * 11 + 5) // 10, settings.credit_limit_increase_cap_cents)
    if new_limit <= current:
        return None
    customer.maximum_credit_limit_cents = new_limit
    notification_service.notify(
        "success",
        f"{customer.name}'s credit limit increased to {settings.format_money(new_limit)}.",
    )
    return new_limit


def mark_statement_paid(
    statement_id: str,
    payment_method: str,
    *,
    settings: LedgerSettings,
    now: datetime | None = None,
) -> MonthlyStatement:
    if payment_method not in ("cash", "card", "transfer"):
        raise StatementError("Invalid payment method", details={"payment_method": payment_method})
    paid_at = normalize_datetime(now)

    def _op():
        statement = get_statement(statement_id)
        if statement.status == "paid":
            raise StatementError("Statement is already paid", details={"statement_id": statement.id})

        statement.status = "paid"
        statement.payment_date = paid_at
        for member in statement.members:
            tx = member.transaction
            if tx is not None and tx.payment_status != "paid":
                tx.payment_status = "paid"
                tx.payment_method = "multiple" if tx.gift_card_payments else payment_method
                tx.payment_date = paid_at
        db.session.flush()

        customer = statement.customer
        if customer is not None:
            _maybe_raise_credit_limit(customer, settings)
            was_blocked = customer.credit_blocked
            if not credit_service.refresh_credit_block(customer) and was_blocked:
                notification_service.notify("info", f"{customer.name}'s credit block has been removed.")
        return statement

    return run_atomic(_op)


def receivables_aging(today: date | None = None) -> dict:
    """Outstanding statement balances bucketed by days past due."""
    today = today or normalize_datetime(None).date()
    buckets = {"current": 0, "1-30": 0, "31-60": 0, "61+": 0}
    rows = []

    for statement in db.session.query(MonthlyStatement).filter(MonthlyStatement.status == "due").all():
        days_overdue = (today - statement.due_date).days
        if days_overdue <= 0:
            bucket = "current"
        elif days_overdue <= 30:
            bucket = "1-30"
        elif days_overdue <= 60:
            bucket = "31-60"
        else:
            bucket = "61+"
        buckets[bucket] += statement.total_due_cents
        rows.append({
            "statement_id": statement.id,
            "customer_id": statement.customer_id,
            "customer_name": statement.customer.name if statement.customer else None,
            "total_due_cents": statement.total_due_cents,
            "due_date": statement.due_date.isoformat(),
            "days_overdue": days_overdue,
            "bucket": bucket,
        })

    rows.sort(key=lambda r: (-r["days_overdue"], r["statement_id"]))
    return {
        "as_of": today.isoformat(),
        "total_outstanding_cents": sum(buckets.values()),
        "buckets": buckets,
        "statements": rows,
    }
