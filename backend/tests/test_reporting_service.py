# Overview: Pytest coverage for end-of-day (Z) reports and sales summaries.

from datetime import date, datetime

import pytest

from poscore.extensions import db
from poscore.models import DailyReport, DailyReportTransaction
from poscore.services import (
    gift_card_service,
    promotions_service,
    reporting_service,
    return_service,
    sales_service,
)
from poscore.services.errors import NotFoundError, ReportError


CLOSE = datetime(2025, 6, 1, 22, 0)


def _sell(customer, product, settings, quantity=1, **kwargs):
    return sales_service.commit_sale(
        customer.id, [{"product_id": product.id, "quantity": quantity}], settings=settings, **kwargs
    )


class TestZReportPartition:
    """Every transaction lands in exactly one Z-report."""

    def test_report_claims_all_unreported(self, make_product, customer, settings):
        product = make_product("Soda", 300, stock=20)
        first = _sell(customer, product, settings, payment_method="cash")
        second = _sell(customer, product, settings, payment_method="cash")

        report = reporting_service.generate_z_report(now=CLOSE)

        assert report.id == "2025-06-01"
        assert report.transactions_count == 2
        assert sorted(report.transaction_ids) == sorted([first.id, second.id])
        assert reporting_service.unreported_transactions() == []

    def test_second_close_is_empty_and_not_persisted(self, make_product, customer, settings):
        product = make_product("Soda", 300, stock=20)
        _sell(customer, product, settings, payment_method="cash")
        reporting_service.generate_z_report(now=CLOSE)

        again = reporting_service.generate_z_report(now=CLOSE)

        assert again.transactions_count == 0
        assert again.total_sales_cents == 0
        assert again.transaction_ids == []
        assert db.session.query(DailyReport).count() == 1

    def test_later_sales_go_into_next_report(self, make_product, customer, settings):
        product = make_product("Soda", 300, stock=20)
        early = _sell(customer, product, settings, payment_method="cash")
        first = reporting_service.generate_z_report(now=CLOSE)
        late = _sell(customer, product, settings, payment_method="cash")

        second = reporting_service.generate_z_report(now=CLOSE)

        assert second.id == "2025-06-01-2"
        assert first.transaction_ids == [early.id]
        assert second.transaction_ids == [late.id]
        members = db.session.query(DailyReportTransaction.transaction_id).all()
        assert sorted(m.transaction_id for m in members) == sorted([early.id, late.id])

    def test_repeated_closes_never_double_count(self, make_product, customer, settings):
        product = make_product("Soda", 300, stock=50)
        sold = []
        for round_ in range(4):
            for _ in range(round_ + 1):
                sold.append(_sell(customer, product, settings, payment_method="cash").id)
            reporting_service.generate_z_report(now=CLOSE)
            reporting_service.generate_z_report(now=CLOSE)

        reported = [tid for report in reporting_service.list_daily_reports() for tid in report.transaction_ids]
        assert sorted(reported) == sorted(sold)
        assert len(set(reported)) == len(reported)


class TestZReportAggregates:

    def test_totals_returns_profit_and_breakdown(self, make_product, customer, settings):
        shirt = make_product("Shirt", 2000, wholesale_price_cents=1200, stock=10)
        shoes = make_product("Shoes", 5000, wholesale_price_cents=3000, stock=10)
        promotions_service.create_promotion({
            "name": "Ten off", "code": "TENOFF", "promo_type": "fixed", "discount_value": 1000,
        })
        card = gift_card_service.issue_gift_card(1500)

        cash_sale = _sell(customer, shirt, settings, quantity=3, payment_method="cash")
        return_service.process_return(cash_sale.id, [{"item_id": shirt.id, "quantity": 1}], settings=settings)
        _sell(customer, shoes, settings, promo_code="TENOFF", gift_card_code=card.id, payment_method="card")
        _sell(customer, shirt, settings, payment_method="transfer")

        report = reporting_service.generate_z_report(now=CLOSE)

        assert report.transactions_count == 3
        assert report.total_sales_cents == 6000 + 2500 + 2000
        assert report.total_discounts_cents == 1000
        assert report.total_returns_value_cents == 2000
        # stored totals are not reduced by returns
        assert report.net_sales_cents == 6000 + 2500 + 2000
        # wholesale cost: 2 shirts + 1 shoes + 1 shirt
        assert report.total_profit_cents == 10500 - (2 * 1200 + 3000 + 1200)
        assert report.to_dict()["payment_breakdown"] == {
            "cash": 6000,
            "card": 2500 - 1500,
            "transfer": 2000,
            "gift_card": 1500,
        }

    def test_fully_returned_sale_keeps_net_and_drops_cost(self, make_product, customer, settings):
        shirt = make_product("Shirt", 2000, wholesale_price_cents=1200, stock=10)
        tx = _sell(customer, shirt, settings, quantity=2, payment_method="cash")
        return_service.process_return(tx.id, [{"item_id": shirt.id, "quantity": 2}], settings=settings)

        report = reporting_service.generate_z_report(now=CLOSE)

        assert report.total_returns_value_cents == 4000
        assert report.net_sales_cents == 4000
        assert report.total_profit_cents == 4000

    def test_split_tender_card_share_is_total_minus_gift_card(self, make_product, customer, settings):
        shoes = make_product("Shoes", 5000, wholesale_price_cents=3000, stock=10)
        card = gift_card_service.issue_gift_card(1500)
        tx = _sell(customer, shoes, settings, gift_card_code=card.id, payment_method="card")
        assert tx.payment_method == "multiple"
        assert tx.total_cents == 3500

        breakdown = reporting_service.generate_z_report(now=CLOSE).to_dict()["payment_breakdown"]

        assert breakdown["gift_card"] == 1500
        assert breakdown["card"] == 2000

    def test_gift_card_method_counts_transaction_total(self, make_product, customer, settings):
        soap = make_product("Soap", 1000, stock=10)
        card = gift_card_service.issue_gift_card(5000)
        tx = _sell(customer, soap, settings, gift_card_code=card.id)
        assert tx.payment_method == "gift_card"
        assert tx.total_cents == 0

        breakdown = reporting_service.generate_z_report(now=CLOSE).to_dict()["payment_breakdown"]

        assert breakdown == {"cash": 0, "card": 0, "transfer": 0, "gift_card": 0}

    def test_reports_listed_and_fetched(self, make_product, customer, settings):
        product = make_product("Soda", 300, stock=20)
        _sell(customer, product, settings, payment_method="cash")
        report = reporting_service.generate_z_report(now=CLOSE)

        assert [r.id for r in reporting_service.list_daily_reports()] == [report.id]
        assert reporting_service.get_daily_report("2025-06-01").transactions_count == 1
        with pytest.raises(NotFoundError):
            reporting_service.get_daily_report("1999-01-01")


class TestSalesSummary:

    def test_summary_by_day_and_category(self, make_product, make_customer, settings):
        shirt = make_product("Shirt", 2000, wholesale_price_cents=1200, stock=10, category="Clothing")
        soda = make_product("Soda", 300, wholesale_price_cents=100, stock=10, category="Drinks")
        ali = make_customer("Ali")
        sara = make_customer("Sara")

        _sell(ali, shirt, settings, quantity=2, now=datetime(2025, 5, 3, 10, 0))
        _sell(sara, soda, settings, quantity=3, now=datetime(2025, 5, 4, 10, 0))
        _sell(sara, soda, settings, quantity=1, now=datetime(2025, 6, 4, 10, 0))

        summary = reporting_service.sales_summary(date(2025, 5, 1), date(2025, 5, 31))

        assert summary["transaction_count"] == 2
        assert summary["total_revenue_cents"] == 4000 + 900
        assert summary["total_profit_cents"] == 2 * 800 + 3 * 200
        assert summary["total_items_sold"] == 5
        assert summary["sales_by_category"] == {"Clothing": 4000, "Drinks": 900}
        assert [d["date"] for d in summary["sales_by_day"]] == ["2025-05-03", "2025-05-04"]
        assert summary["top_customers"][0]["name"] == "Ali"

    def test_inverted_range_rejected(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.sales_summary(date(2025, 5, 31), date(2025, 5, 1))
