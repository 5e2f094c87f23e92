# Overview: Pytest coverage for stock mutation, bundle-derived stock and the inventory event log.

from datetime import datetime, timedelta
import random

import pytest

from poscore.extensions import db
from poscore.models import BundleItem, InventoryEvent, Product
from poscore.services import inventory_service, sales_service
from poscore.services.errors import InsufficientStockError, InventoryError


def _product(pid, stock, is_bundle=False, components=()):
    product = Product(id=pid, name=f"P{pid}", price_cents=100, stock=stock, is_bundle=is_bundle)
    product.bundle_items = [BundleItem(component_id=cid, quantity=qty) for cid, qty in components]
    return product


class TestEffectiveStock:
    """Bundle stock is derived from components on every read."""

    def test_plain_product_uses_stock_column(self, db_session):
        product = _product(1, 7)
        assert inventory_service.effective_stock(product, {1: product}) == 7

    def test_bundle_is_min_floor_over_components(self, db_session):
        a = _product(1, 7)
        b = _product(2, 10)
        bundle = _product(3, 0, is_bundle=True, components=[(1, 3), (2, 2)])
        lookup = {1: a, 2: b, 3: bundle}
        # floor(7/3)=2, floor(10/2)=5
        assert inventory_service.effective_stock(bundle, lookup) == 2

    def test_bundle_with_missing_component_is_zero(self, db_session):
        a = _product(1, 50)
        bundle = _product(3, 0, is_bundle=True, components=[(1, 1), (99, 1)])
        assert inventory_service.effective_stock(bundle, {1: a, 3: bundle}) == 0

    def test_bundle_without_components_is_zero(self, db_session):
        bundle = _product(3, 0, is_bundle=True)
        assert inventory_service.effective_stock(bundle, {3: bundle}) == 0

    def test_bundle_stock_matches_min_floor_for_random_components(self, db_session):
        rng = random.Random(4321)
        for _ in range(200):
            components = [(pid, rng.randint(1, 6)) for pid in range(1, rng.randint(2, 5))]
            lookup = {pid: _product(pid, rng.randint(0, 60)) for pid, _ in components}
            bundle = _product(100, rng.randint(0, 60), is_bundle=True, components=components)
            lookup[100] = bundle

            expected = min(lookup[pid].stock // qty for pid, qty in components)

            assert inventory_service.effective_stock(bundle, lookup) == expected

    def test_bundle_stock_follows_component_changes(self, make_product, make_bundle):
        a = make_product("Shampoo", 500, stock=4)
        b = make_product("Conditioner", 600, stock=9)
        bundle = make_bundle("Hair Care Set", 1000, [(a, 2), (b, 3)])

        assert inventory_service.get_effective_stock(bundle.id) == 2

        inventory_service.adjust_stock(a.id, 2, "Recount")
        assert inventory_service.get_effective_stock(bundle.id) == 3


class TestApplyDelta:

    def test_delta_writes_matching_event(self, make_product):
        product = make_product("Rice 5kg", 9000, stock=10)

        event = inventory_service.adjust_stock(product.id, -3, "Damaged bags")

        db.session.refresh(product)
        assert product.stock == 7
        assert event.quantity_change == -3
        assert event.type == "adjustment"
        assert event.notes == "Damaged bags"

    def test_negative_result_raises_and_writes_nothing(self, make_product):
        product = make_product("Rice 5kg", 9000, stock=2)
        events_before = db.session.query(InventoryEvent).count()

        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.adjust_stock(product.id, -3, "Shrinkage")

        assert "Not enough stock for Rice 5kg." in str(exc.value)
        db.session.refresh(product)
        assert product.stock == 2
        assert db.session.query(InventoryEvent).count() == events_before

    def test_zero_delta_rejected(self, make_product):
        product = make_product("Sugar", 1500, stock=5)
        with pytest.raises(InventoryError):
            inventory_service.adjust_stock(product.id, 0, "Nothing")

    def test_reason_required(self, make_product):
        product = make_product("Sugar", 1500, stock=5)
        with pytest.raises(InventoryError):
            inventory_service.adjust_stock(product.id, 1, "   ")

    def test_bundle_stock_cannot_be_adjusted(self, make_product, make_bundle):
        a = make_product("Tea", 300, stock=5)
        bundle = make_bundle("Tea Pack", 800, [(a, 3)])
        with pytest.raises(InventoryError):
            inventory_service.adjust_stock(bundle.id, 1, "Recount")

    def test_unknown_product(self, db_session):
        with pytest.raises(InventoryError):
            inventory_service.adjust_stock(12345, 1, "Recount")


class TestPlanStockDeductions:

    def test_shared_component_cannot_be_oversold(self, make_product, make_bundle):
        water = make_product("Water 1L", 200, stock=5)
        small = make_bundle("Water x2", 350, [(water, 2)])
        large = make_bundle("Water x3", 500, [(water, 3)])
        lookup = inventory_service.build_lookup([small.id, large.id])

        # 1 + 1 needs 5 units of water, 2 + 1 needs 7
        inventory_service.plan_stock_deductions([(small, 1), (large, 1)], lookup)
        with pytest.raises(InsufficientStockError):
            inventory_service.plan_stock_deductions([(small, 2), (large, 1)], lookup)

    def test_requirements_are_aggregated_per_component(self, make_product, make_bundle):
        a = make_product("Soap", 100, stock=20)
        bundle = make_bundle("Soap x4", 350, [(a, 4)])
        lookup = inventory_service.build_lookup([a.id, bundle.id])

        plan = inventory_service.plan_stock_deductions([(bundle, 2), (a, 3)], lookup)
        assert plan == {a.id: 11}


class TestEventLog:

    def test_event_log_reconstructs_stock(self, make_product, customer, settings):
        product = make_product("Milk", 250, stock=12)
        inventory_service.adjust_stock(product.id, 5, "Delivery miscount")
        sales_service.commit_sale(
            customer.id, [{"product_id": product.id, "quantity": 4}],
            settings=settings, payment_method="cash",
        )
        inventory_service.adjust_stock(product.id, -1, "Spoiled")

        db.session.refresh(product)
        assert product.stock == 12
        assert inventory_service.reconstruct_stock(product.id) == product.stock

    def test_opening_stock_is_an_event(self, make_product):
        product = make_product("Flour", 900, stock=8)
        events = inventory_service.list_inventory_events(product.id)
        assert len(events) == 1
        assert events[0].quantity_change == 8
        assert events[0].notes == "Opening stock"

    def test_reconstruct_as_of(self, make_product):
        product = make_product("Oil", 4000, stock=0)
        t0 = datetime(2025, 3, 1, 9, 0)
        inventory_service.apply_delta(product.id, 10, "purchase", occurred_at=t0)
        inventory_service.apply_delta(product.id, -4, "sale", occurred_at=t0 + timedelta(days=2))
        db.session.commit()

        assert inventory_service.reconstruct_stock(product.id, as_of=t0 + timedelta(days=1)) == 10
        assert inventory_service.reconstruct_stock(product.id) == 6


class TestForecast:

    def test_low_stock_products_listed(self, make_product, customer, settings):
        fast = make_product("Bread", 100, stock=12)
        slow = make_product("Jam", 100, stock=50)
        make_product("Unsold", 100, stock=1)
        now = datetime(2025, 6, 30, 12, 0)

        sales_service.commit_sale(
            customer.id,
            [{"product_id": fast.id, "quantity": 10}, {"product_id": slow.id, "quantity": 1}],
            settings=settings, payment_method="cash", now=now - timedelta(days=3),
        )

        rows = inventory_service.inventory_forecast(settings, now=now)

        # Bread: 2 left, 10/30 per day -> 6 days; Jam: 49 / (1/30) days
        assert [row["name"] for row in rows] == ["Bread"]
        assert rows[0]["units_sold"] == 10
        assert rows[0]["days_remaining"] == pytest.approx(6.0)

    def test_bundle_sales_count_against_components(self, make_product, make_bundle, customer, settings):
        part = make_product("Battery", 100, stock=9)
        pack = make_bundle("Battery 4-pack", 350, [(part, 4)])
        now = datetime(2025, 6, 30, 12, 0)
        sales_service.commit_sale(
            customer.id, [{"product_id": pack.id, "quantity": 2}],
            settings=settings, payment_method="cash", now=now - timedelta(days=1),
        )

        rows = inventory_service.inventory_forecast(settings, now=now)
        assert [row["product_id"] for row in rows] == [part.id]
        assert rows[0]["units_sold"] == 8

    def test_snapshot_includes_effective_bundle_stock(self, make_product, make_bundle):
        a = make_product("Pen", 50, stock=9)
        bundle = make_bundle("Pen x3", 120, [(a, 3)])

        snapshot = {row["id"]: row for row in inventory_service.stock_snapshot()}
        assert snapshot[bundle.id]["effective_stock"] == 3
        assert snapshot[a.id]["effective_stock"] == 9
