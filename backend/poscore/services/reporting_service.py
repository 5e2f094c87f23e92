# Overview: Reconciliation reporting; end-of-day (Z) reports that partition transactions, and sales summaries.

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, DailyReport, DailyReportTransaction, Product, Transaction
from poscore.time_utils import date_key, normalize_datetime
from .concurrency import run_atomic
from .errors import NotFoundError, ReportError
from . import notification_service
from .return_service import returned_quantities, returned_value_cents


def unreported_transactions() -> list[Transaction]:
    """Canonical transactions not yet claimed by any daily report, oldest first."""
    reported = select(DailyReportTransaction.transaction_id)
    return (
        db.session.query(Transaction)
        .filter(~Transaction.id.in_(reported))
        .order_by(Transaction.created_at.asc(), Transaction.id.asc())
        .all()
    )


def _next_report_id(day_key: str) -> str:
    report_id = day_key
    suffix = 1
    while db.session.get(DailyReport, report_id) is not None:
        suffix += 1
        report_id = f"{day_key}-{suffix}"
    return report_id


def _wholesale_prices(transactions: list[Transaction]) -> dict[int, int]:
    ids = {line.product_id for tx in transactions for line in tx.lines}
    if not ids:
        return {}
    rows = db.session.query(Product.id, Product.wholesale_price_cents).filter(Product.id.in_(ids)).all()
    return {pid: cost for pid, cost in rows}


def summarize_transactions(transactions: list[Transaction]) -> dict:
    """
    Z-report aggregates for a candidate set (all amounts in cents).

    net_sales is the sum of stored totals. Profit subtracts the products'
    current wholesale prices on net (unreturned) quantities.
    """
    wholesale = _wholesale_prices(transactions)
    totals = {
        "total_sales_cents": 0,
        "total_discounts_cents": 0,
        "total_returns_value_cents": 0,
        "net_sales_cents": 0,
        "transactions_count": len(transactions),
    }
    breakdown = {"cash": 0, "card": 0, "transfer": 0, "gift_card": 0}
    wholesale_cost = 0

    for tx in transactions:
        returned_value = returned_value_cents(tx)
        totals["total_sales_cents"] += tx.total_cents
        totals["total_discounts_cents"] += tx.discount_cents
        totals["total_returns_value_cents"] += returned_value
        totals["net_sales_cents"] += tx.total_cents

        gift_card_paid = sum(p.amount_cents for p in tx.gift_card_payments)
        if tx.payment_method == "multiple":
            # Approximate split: card gets total minus the gift-card payments
            breakdown["gift_card"] += gift_card_paid
            breakdown["card"] += tx.total_cents - gift_card_paid
        elif tx.payment_method in breakdown:
            breakdown[tx.payment_method] += tx.total_cents

        returned = returned_quantities(tx)
        for line in tx.lines:
            net_quantity = line.quantity - returned.get(line.product_id, 0)
            if net_quantity > 0:
                wholesale_cost += wholesale.get(line.product_id, 0) * net_quantity

    totals["total_profit_cents"] = totals["net_sales_cents"] - wholesale_cost
    totals["payment_breakdown"] = breakdown
    return totals


def generate_z_report(now: datetime | None = None) -> DailyReport:
    """
    Close the day.

    Claims every unreported transaction for a new DailyReport. An empty
    candidate set yields an unsaved, all-zero report so repeated closes
    never persist empty reports.
    """
    generated_at = normalize_datetime(now)

    def _op():
        candidates = unreported_transactions()
        if not candidates:
            return DailyReport(
                id=date_key(generated_at),
                generated_at=generated_at,
                total_sales_cents=0,
                total_discounts_cents=0,
                total_returns_value_cents=0,
                net_sales_cents=0,
                total_profit_cents=0,
                transactions_count=0,
                cash_cents=0,
                card_cents=0,
                transfer_cents=0,
                gift_card_cents=0,
            )

        summary = summarize_transactions(candidates)
        breakdown = summary["payment_breakdown"]
        report = DailyReport(
            id=_next_report_id(date_key(generated_at)),
            generated_at=generated_at,
            total_sales_cents=summary["total_sales_cents"],
            total_discounts_cents=summary["total_discounts_cents"],
            total_returns_value_cents=summary["total_returns_value_cents"],
            net_sales_cents=summary["net_sales_cents"],
            total_profit_cents=summary["total_profit_cents"],
            transactions_count=summary["transactions_count"],
            cash_cents=breakdown["cash"],
            card_cents=breakdown["card"],
            transfer_cents=breakdown["transfer"],
            gift_card_cents=breakdown["gift_card"],
        )
        report.members = [DailyReportTransaction(transaction_id=tx.id) for tx in candidates]
        db.session.add(report)

        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ReportError("Transactions were already claimed by another report") from exc

        notification_service.notify(
            "success",
            f"Z-Report {report.id} generated for {report.transactions_count} transaction(s).",
        )
        return report

    return run_atomic(_op)


def list_daily_reports() -> list[DailyReport]:
    return db.session.query(DailyReport).order_by(DailyReport.generated_at.desc(), DailyReport.id.desc()).all()


def get_daily_report(report_id: str) -> DailyReport:
    report = db.session.get(DailyReport, report_id)
    if report is None:
        raise NotFoundError("Report not found", details={"report_id": report_id})
    return report


def sales_summary(start: date, end: date) -> dict:
    """Revenue, profit and breakdowns for transactions created between two dates (inclusive)."""
    if end < start:
        raise ReportError("end date must not be before start date")

    start_dt = datetime.combine(start, time.min)
    end_dt = datetime.combine(end + timedelta(days=1), time.min)

    transactions = (
        db.session.query(Transaction)
        .filter(Transaction.created_at >= start_dt, Transaction.created_at < end_dt)
        .order_by(Transaction.created_at.asc())
        .all()
    )
    product_ids = {line.product_id for tx in transactions for line in tx.lines}
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    } if product_ids else {}

    revenue = 0
    profit = 0
    items_sold = 0
    by_day: dict[str, dict] = {}
    by_category: dict[str, int] = {}
    customers: dict[int, dict] = {}

    for tx in transactions:
        revenue += tx.total_cents
        day = by_day.setdefault(date_key(tx.created_at), {"sales_cents": 0, "profit_cents": 0})
        day["sales_cents"] += tx.total_cents

        tx_profit = 0
        for line in tx.lines:
            items_sold += line.quantity
            product = products.get(line.product_id)
            if product is None:
                continue
            tx_profit += (line.unit_price_cents - product.wholesale_price_cents) * line.quantity
            by_category[product.category] = (
                by_category.get(product.category, 0) + line.unit_price_cents * line.quantity
            )
        profit += tx_profit
        day["profit_cents"] += tx_profit

        spend = customers.setdefault(tx.customer_id, {
            "customer_id": tx.customer_id,
            "name": tx.customer.name if tx.customer else None,
            "order_count": 0,
            "total_spent_cents": 0,
        })
        spend["order_count"] += 1
        spend["total_spent_cents"] += tx.total_cents

    new_customers = db.session.query(Customer).filter(
        Customer.created_at >= start_dt, Customer.created_at < end_dt
    ).count()

    top_customers = sorted(customers.values(), key=lambda c: (-c["total_spent_cents"], c["customer_id"]))[:5]

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "total_revenue_cents": revenue,
        "total_profit_cents": profit,
        "total_items_sold": items_sold,
        "transaction_count": len(transactions),
        "new_customers": new_customers,
        "sales_by_day": [{"date": k, **v} for k, v in sorted(by_day.items())],
        "sales_by_category": by_category,
        "top_customers": top_customers,
    }
