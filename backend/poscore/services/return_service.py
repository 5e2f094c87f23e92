"""
Return Processing Service

Returns are recorded against the original Transaction as ReturnEvents. A
transaction can be returned in several partial steps; quantities returned
so far are always derived from its existing events, so an item can never be
returned more times than it was bought.

ON SUCCESS (single DB transaction):
- one ReturnEvent with every returned line
- stock restored through 'return' inventory events (bundles restore their
  components)
- optional store-credit gift card for the returned value
- loyalty points earned on the returned value taken back (when enabled)
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import ReturnEvent, ReturnEventItem, Transaction
from ..settings import LedgerSettings
from poscore.time_utils import normalize_datetime
from .concurrency import lock_for_update, run_atomic
from .errors import InvalidReturnQuantityError, ReturnError
from . import gift_card_service, inventory_service, loyalty_service, notification_service


def returned_quantities(tx: Transaction) -> dict[int, int]:
    """Cumulative returned quantity per item id across all of the transaction's return events."""
    totals: dict[int, int] = {}
    for event in tx.returns:
        for item in event.items:
            totals[item.item_id] = totals.get(item.item_id, 0) + item.quantity
    return totals


def returnable_quantities(tx: Transaction) -> dict[int, int]:
    already = returned_quantities(tx)
    result: dict[int, int] = {}
    for line in tx.lines:
        result[line.product_id] = result.get(line.product_id, 0) + line.quantity
    return {item_id: qty - already.get(item_id, 0) for item_id, qty in result.items()}


def returned_value_cents(tx: Transaction) -> int:
    """Original unit price x returned quantity, summed over all return events."""
    prices = {line.product_id: line.unit_price_cents for line in tx.lines}
    return sum(
        prices.get(item_id, 0) * qty
        for item_id, qty in returned_quantities(tx).items()
    )


def _merge_request(items: list[dict]) -> tuple[dict[int, int], dict[int, str | None]]:
    quantities: dict[int, int] = {}
    reasons: dict[int, str | None] = {}
    for entry in items:
        item_id = entry.get("item_id")
        quantity = entry.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidReturnQuantityError(
                "Return quantity must be a positive integer.",
                details={"item_id": item_id, "requested": quantity},
            )
        quantities[item_id] = quantities.get(item_id, 0) + quantity
        if not reasons.get(item_id):
            reasons[item_id] = entry.get("reason")
    return quantities, reasons


def process_return(
    transaction_id: str,
    items: list[dict],
    *,
    settings: LedgerSettings,
    issue_store_credit: bool = False,
    now: datetime | None = None,
) -> ReturnEvent:
    """
    Return items from a committed transaction.

    `items` is [{item_id, quantity, reason?}]; several entries for the same
    item are added together. Raises InvalidReturnQuantityError (and writes
    nothing) if any quantity exceeds what is still returnable.
    """
    def _op():
        tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if tx is None:
            raise ReturnError("Transaction not found", details={"transaction_id": transaction_id})

        if not items:
            raise InvalidReturnQuantityError("No items selected for return.")

        requested, reasons = _merge_request(items)
        returnable = returnable_quantities(tx)

        invalid = []
        for item_id, quantity in requested.items():
            max_returnable = returnable.get(item_id)
            if max_returnable is None or quantity > max_returnable:
                invalid.append({
                    "item_id": item_id,
                    "requested": quantity,
                    "max_returnable": max_returnable or 0,
                })
        if invalid:
            raise InvalidReturnQuantityError(
                "Return quantity exceeds the quantity still returnable.",
                details={"items": invalid},
            )

        # Validation complete; writes start here
        occurred_at = normalize_datetime(now)
        event = ReturnEvent(
            occurred_at=occurred_at,
            items=[
                ReturnEventItem(item_id=item_id, quantity=quantity, reason=reasons.get(item_id))
                for item_id, quantity in requested.items()
            ],
        )
        tx.returns.append(event)

        customer_name = tx.customer.name if tx.customer else f"customer {tx.customer_id}"
        lookup = inventory_service.build_lookup(requested)
        for item_id, quantity in requested.items():
            product = lookup.get(item_id)
            if product is None:
                continue
            for component_id, units in inventory_service.decompose(
                product, quantity, lookup, skip_missing=True
            ).items():
                inventory_service.apply_delta(
                    component_id,
                    units,
                    "return",
                    notes=f"Return from {customer_name}",
                    related_id=tx.id,
                    occurred_at=occurred_at,
                )

        prices = {line.product_id: line.unit_price_cents for line in tx.lines}
        value = sum(prices[item_id] * quantity for item_id, quantity in requested.items())

        if issue_store_credit and value > 0:
            card = gift_card_service.build_gift_card(value, customer_id=tx.customer_id)
            event.gift_card_id = card.id

        if tx.customer is not None:
            loyalty_service.deduct_points(tx.customer, value, settings)

        message = f"Return processed for {tx.id}."
        if event.gift_card_id:
            message += f" Store credit issued: {event.gift_card_id} ({settings.format_money(value)})."
        notification_service.notify("success", message)

        db.session.flush()
        return event

    return run_atomic(_op)
