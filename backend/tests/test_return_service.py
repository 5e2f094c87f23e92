# Overview: Pytest coverage for partial returns, stock restoration and store credit.

import random

import pytest

from poscore.extensions import db
from poscore.models import Customer, GiftCard, InventoryEvent, Product, Transaction
from poscore.services import inventory_service, return_service, sales_service
from poscore.services.errors import InvalidReturnQuantityError, ReturnError


@pytest.fixture
def sale(make_product, customer, settings):
    """Sale of 5 shirts and 2 caps."""
    shirt = make_product("Shirt", 2000, stock=10)
    cap = make_product("Cap", 800, stock=10)
    tx = sales_service.commit_sale(
        customer.id,
        [{"product_id": shirt.id, "quantity": 5}, {"product_id": cap.id, "quantity": 2}],
        settings=settings,
        payment_method="cash",
    )
    return tx, shirt, cap


def _stock(product):
    return db.session.get(Product, product.id).stock


class TestProcessReturn:

    def test_partial_returns_accumulate(self, sale, settings):
        tx, shirt, cap = sale

        return_service.process_return(tx.id, [{"item_id": shirt.id, "quantity": 2, "reason": "Too small"}], settings=settings)
        return_service.process_return(tx.id, [{"item_id": shirt.id, "quantity": 3}], settings=settings)

        db.session.expire_all()
        stored = db.session.get(Transaction, tx.id)
        assert return_service.returned_quantities(stored) == {shirt.id: 5}
        assert return_service.returnable_quantities(stored) == {shirt.id: 0, cap.id: 2}
        assert _stock(shirt) == 10

    def test_over_return_rejected_with_details(self, sale, settings):
        tx, shirt, _ = sale
        return_service.process_return(tx.id, [{"item_id": shirt.id, "quantity": 4}], settings=settings)

        with pytest.raises(InvalidReturnQuantityError) as exc:
            return_service.process_return(tx.id, [{"item_id": shirt.id, "quantity": 2}], settings=settings)

        assert exc.value.details["items"] == [{"item_id": shirt.id, "requested": 2, "max_returnable": 1}]
        db.session.expire_all()
        assert _stock(shirt) == 9

    def test_duplicate_entries_are_summed(self, sale, settings):
        tx, _, cap = sale
        with pytest.raises(InvalidReturnQuantityError):
            return_service.process_return(
                tx.id,
                [{"item_id": cap.id, "quantity": 2}, {"item_id": cap.id, "quantity": 1}],
                settings=settings,
            )

    def test_item_not_in_transaction_rejected(self, sale, make_product, settings):
        tx, _, _ = sale
        other = make_product("Socks", 300, stock=5)
        with pytest.raises(InvalidReturnQuantityError):
            return_service.process_return(tx.id, [{"item_id": other.id, "quantity": 1}], settings=settings)

    def test_failed_return_writes_nothing(self, sale, settings):
        tx, shirt, cap = sale
        events_before = db.session.query(InventoryEvent).count()

        with pytest.raises(InvalidReturnQuantityError):
            return_service.process_return(
                tx.id,
                [{"item_id": shirt.id, "quantity": 1}, {"item_id": cap.id, "quantity": 3}],
                settings=settings,
            )

        db.session.expire_all()
        assert _stock(shirt) == 5
        assert db.session.query(InventoryEvent).count() == events_before
        assert db.session.get(Transaction, tx.id).returns == []

    @pytest.mark.parametrize("quantity", [0, -2, 1.5])
    def test_non_positive_quantity_rejected(self, sale, settings, quantity):
        tx, shirt, _ = sale
        with pytest.raises(InvalidReturnQuantityError):
            return_service.process_return(tx.id, [{"item_id": shirt.id, "quantity": quantity}], settings=settings)

    def test_empty_request_rejected(self, sale, settings):
        tx, _, _ = sale
        with pytest.raises(InvalidReturnQuantityError) as exc:
            return_service.process_return(tx.id, [], settings=settings)
        assert exc.value.message == "No items selected for return."

    def test_unknown_transaction(self, db_session, settings):
        with pytest.raises(ReturnError):
            return_service.process_return("INV-NOPE", [{"item_id": 1, "quantity": 1}], settings=settings)

    def test_return_events_restore_stock(self, sale, customer, settings):
        tx, shirt, _ = sale
        return_service.process_return(tx.id, [{"item_id": shirt.id, "quantity": 2}], settings=settings)

        events = db.session.query(InventoryEvent).filter_by(type="return", related_id=tx.id).all()
        assert [(e.product_id, e.quantity_change) for e in events] == [(shirt.id, 2)]
        assert events[0].notes == f"Return from {customer.name}"
        assert inventory_service.reconstruct_stock(shirt.id) == _stock(shirt)

    def test_bundle_return_restores_components(self, make_product, make_bundle, customer, settings):
        bread = make_product("Bread", 150, stock=6)
        butter = make_product("Butter", 400, stock=6)
        bundle = make_bundle("Breakfast", 500, [(bread, 2), (butter, 1)])
        tx = sales_service.commit_sale(customer.id, [{"product_id": bundle.id, "quantity": 3}], settings=settings)

        return_service.process_return(tx.id, [{"item_id": bundle.id, "quantity": 2}], settings=settings)

        db.session.expire_all()
        assert _stock(bread) == 4
        assert _stock(butter) == 5

    def test_store_credit_issues_gift_card(self, sale, settings):
        tx, shirt, cap = sale
        event = return_service.process_return(
            tx.id,
            [{"item_id": shirt.id, "quantity": 1}, {"item_id": cap.id, "quantity": 1}],
            settings=settings,
            issue_store_credit=True,
        )

        card = db.session.get(GiftCard, event.gift_card_id)
        assert card is not None
        assert card.current_balance_cents == 2800
        assert card.customer_id == tx.customer_id

    def test_returns_never_exceed_purchased_quantity(self, sale, settings):
        tx, shirt, cap = sale
        purchased = {shirt.id: 5, cap.id: 2}
        rng = random.Random(42)

        for _ in range(40):
            request = [
                {"item_id": rng.choice([shirt.id, cap.id]), "quantity": rng.randint(1, 3)}
                for _ in range(rng.randint(1, 2))
            ]
            try:
                return_service.process_return(tx.id, request, settings=settings)
            except InvalidReturnQuantityError:
                pass

            db.session.expire_all()
            returned = return_service.returned_quantities(db.session.get(Transaction, tx.id))
            for item_id, qty in returned.items():
                assert qty <= purchased[item_id]

        db.session.expire_all()
        stored = db.session.get(Transaction, tx.id)
        returned = return_service.returned_quantities(stored)
        assert _stock(shirt) == 5 + returned.get(shirt.id, 0)
        assert _stock(cap) == 8 + returned.get(cap.id, 0)


class TestReturnsAndLoyalty:

    def test_return_takes_back_points(self, make_product, customer, loyalty_settings):
        product = make_product("Jacket", 10000, stock=3)
        tx = sales_service.commit_sale(
            customer.id, [{"product_id": product.id, "quantity": 2}], settings=loyalty_settings,
        )
        assert db.session.get(Customer, customer.id).loyalty_points == 200

        return_service.process_return(tx.id, [{"item_id": product.id, "quantity": 1}], settings=loyalty_settings)

        assert db.session.get(Customer, customer.id).loyalty_points == 100

    def test_points_never_go_negative(self, make_product, customer, loyalty_settings, settings):
        product = make_product("Jacket", 10000, stock=3)
        # Earned with loyalty off, so nothing to take back
        tx = sales_service.commit_sale(customer.id, [{"product_id": product.id, "quantity": 1}], settings=settings)

        return_service.process_return(tx.id, [{"item_id": product.id, "quantity": 1}], settings=loyalty_settings)

        assert db.session.get(Customer, customer.id).loyalty_points == 0
