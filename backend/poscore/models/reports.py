from __future__ import annotations

from ..extensions import db
from poscore.time_utils import iso_date, to_utc_z, utcnow


class DailyReport(db.Model):
    """
    End-of-day (Z) report.

    PARTITION: membership rows in daily_report_transactions carry a UNIQUE
    transaction_id, so a transaction can be reported at most once, ever.
    The candidate set for a new report is every transaction not yet linked.
    """
    __tablename__ = "daily_reports"

    id = db.Column(db.String(32), primary_key=True)  # YYYY-MM-DD[-n]
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_discounts_cents = db.Column(db.Integer, nullable=False, default=0)
    total_returns_value_cents = db.Column(db.Integer, nullable=False, default=0)
    net_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_profit_cents = db.Column(db.Integer, nullable=False, default=0)
    transactions_count = db.Column(db.Integer, nullable=False, default=0)

    cash_cents = db.Column(db.Integer, nullable=False, default=0)
    card_cents = db.Column(db.Integer, nullable=False, default=0)
    transfer_cents = db.Column(db.Integer, nullable=False, default=0)
    gift_card_cents = db.Column(db.Integer, nullable=False, default=0)

    members = db.relationship(
        "DailyReportTransaction",
        backref="report",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def transaction_ids(self) -> list[str]:
        return [m.transaction_id for m in self.members]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "generated_at": to_utc_z(self.generated_at),
            "total_sales_cents": self.total_sales_cents,
            "total_discounts_cents": self.total_discounts_cents,
            "total_returns_value_cents": self.total_returns_value_cents,
            "net_sales_cents": self.net_sales_cents,
            "total_profit_cents": self.total_profit_cents,
            "transactions_count": self.transactions_count,
            "payment_breakdown": {
                "cash": self.cash_cents,
                "card": self.card_cents,
                "transfer": self.transfer_cents,
                "gift_card": self.gift_card_cents,
            },
            "transaction_ids": self.transaction_ids,
        }


class DailyReportTransaction(db.Model):
    __tablename__ = "daily_report_transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_daily_report_transactions_transaction"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    report_id = db.Column(db.String(32), db.ForeignKey("daily_reports.id"), nullable=False, index=True)
    transaction_id = db.Column(db.String(64), db.ForeignKey("transactions.id"), nullable=False)


class MonthlyStatement(db.Model):
    """
    Per-customer aggregate of unpaid transactions in a billing period.

    status: due -> paid (one-way)
    overdue_status: none -> 7_days_overdue, escalated by a time-based check
    while the statement is still due. Escalation blocks the customer's credit.
    """
    __tablename__ = "monthly_statements"
    __table_args__ = (
        db.Index("ix_monthly_statements_customer_status", "customer_id", "status"),
        db.Index("ix_monthly_statements_due_date", "due_date"),
    )

    id = db.Column(db.String(64), primary_key=True)  # MS-YYYY-MM-CUST{id}
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    billing_period_start = db.Column(db.Date, nullable=False)
    billing_period_end = db.Column(db.Date, nullable=False)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    due_date = db.Column(db.Date, nullable=False)

    total_due_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="due")  # due, paid
    overdue_status = db.Column(db.String(32), nullable=False, default="none")  # none, 7_days_overdue
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("statements", lazy=True))
    members = db.relationship(
        "MonthlyStatementTransaction",
        backref="statement",
        lazy=True,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def transaction_ids(self) -> list[str]:
        return [m.transaction_id for m in self.members]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "billing_period_start": iso_date(self.billing_period_start),
            "billing_period_end": iso_date(self.billing_period_end),
            "generated_at": to_utc_z(self.generated_at),
            "due_date": iso_date(self.due_date),
            "total_due_cents": self.total_due_cents,
            "status": self.status,
            "overdue_status": self.overdue_status,
            "payment_date": to_utc_z(self.payment_date) if self.payment_date else None,
            "transaction_ids": self.transaction_ids,
        }


class MonthlyStatementTransaction(db.Model):
    __tablename__ = "monthly_statement_transactions"
    __table_args__ = (
        db.UniqueConstraint("statement_id", "transaction_id", name="uq_statement_transactions"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    statement_id = db.Column(db.String(64), db.ForeignKey("monthly_statements.id"), nullable=False, index=True)
    transaction_id = db.Column(db.String(64), db.ForeignKey("transactions.id"), nullable=False, index=True)

    transaction = db.relationship("Transaction")
