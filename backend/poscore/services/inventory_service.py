# Overview: Stock reconciliation engine; stock mutation, bundle-derived stock and the inventory event log.

# backend/poscore/services/inventory_service.py

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Mapping

from sqlalchemy import func

from ..extensions import db
from ..models import BundleItem, InventoryEvent, Product
from ..models.inventory import INVENTORY_EVENT_TYPES
from ..settings import LedgerSettings
from poscore.time_utils import normalize_datetime
from .concurrency import lock_for_update, run_atomic
from .errors import InsufficientStockError, InventoryError
from . import notification_service
"""
Stock invariants (authoritative)

- Product.stock is the on-hand count of a plain product. It only changes in
  apply_delta, which appends exactly one InventoryEvent with the same delta.
- SUM(InventoryEvent.quantity_change) for a product equals Product.stock.
- Product.stock never goes below zero; a delta that would make it negative
  raises InsufficientStockError and writes nothing.
- Bundles hold no stock. Effective bundle stock is
  min(floor(component.stock / qty)) over its components and is recomputed on
  every read.
- Selling or returning a bundle moves stock on its components, never on the
  bundle row.
"""


Lookup = Mapping[int, Product]


def build_lookup(product_ids: Iterable[int] | None = None) -> dict[int, Product]:
    """
    Load products (and, for bundles, their components) into an id -> Product map.

    With product_ids=None the whole catalog is loaded.
    """
    query = db.session.query(Product)
    if product_ids is None:
        return {p.id: p for p in query.all()}

    ids = set(product_ids)
    if not ids:
        return {}
    products = {p.id: p for p in query.filter(Product.id.in_(ids)).all()}

    component_ids = {
        row.component_id
        for row in db.session.query(BundleItem.component_id).filter(BundleItem.bundle_id.in_(ids)).all()
    } - set(products)
    if component_ids:
        for p in db.session.query(Product).filter(Product.id.in_(component_ids)).all():
            products[p.id] = p
    return products


def effective_stock(product: Product, lookup: Lookup) -> int:
    """
    Sellable stock of a product.

    Plain product: its stock column. Bundle: the number of complete bundles
    the components can make; 0 when any component is missing from `lookup`
    or the bundle has no components.
    """
    if not product.is_bundle:
        return product.stock

    if not product.bundle_items:
        return 0

    possible = []
    for item in product.bundle_items:
        component = lookup.get(item.component_id)
        if component is None or item.quantity <= 0:
            return 0
        possible.append(component.stock // item.quantity)
    return max(0, min(possible))


def get_effective_stock(product_id: int) -> int:
    lookup = build_lookup([product_id])
    product = lookup.get(product_id)
    if product is None:
        raise InventoryError("Product not found", details={"product_id": product_id})
    return effective_stock(product, lookup)


def decompose(product: Product, quantity: int, lookup: Lookup, *, skip_missing: bool = False) -> dict[int, int]:
    """
    Component deltas for `quantity` units of `product`.

    Plain product -> {product.id: quantity}. Bundle -> {component_id:
    component_qty * quantity}. With skip_missing, components absent from
    `lookup` are left out (used when restoring stock for deleted items).
    """
    if not product.is_bundle:
        return {product.id: quantity}

    result: dict[int, int] = {}
    for item in product.bundle_items:
        if skip_missing and item.component_id not in lookup:
            continue
        result[item.component_id] = result.get(item.component_id, 0) + item.quantity * quantity
    return result


def check_availability(requirements: Mapping[int, int], lookup: Lookup) -> None:
    """Raise InsufficientStockError listing every product whose stock cannot cover its requirement."""
    short = []
    for product_id, required in requirements.items():
        product = lookup.get(product_id)
        available = product.stock if product is not None else 0
        if required > available:
            short.append({
                "product_id": product_id,
                "name": product.name if product is not None else None,
                "requested": required,
                "available": available,
            })

    if short:
        first = short[0]["name"] or f"product {short[0]['product_id']}"
        raise InsufficientStockError(f"Not enough stock for {first}.", details={"items": short})


def plan_stock_deductions(lines: Iterable[tuple[Product, int]], lookup: Lookup) -> dict[int, int]:
    """
    Validate a whole cart against current stock before any write.

    Checks each sold product's effective stock (bundles included) and then
    the aggregated requirement per component, so two bundles sharing a
    component cannot oversell it. Returns {product_id: units to deduct}.
    """
    per_product: dict[int, int] = {}
    products: dict[int, Product] = {}
    for product, quantity in lines:
        per_product[product.id] = per_product.get(product.id, 0) + quantity
        products[product.id] = product

    short = []
    for product_id, quantity in per_product.items():
        product = products[product_id]
        available = effective_stock(product, lookup)
        if quantity > available:
            short.append({
                "product_id": product_id,
                "name": product.name,
                "requested": quantity,
                "available": available,
            })
    if short:
        raise InsufficientStockError(f"Not enough stock for {short[0]['name']}.", details={"items": short})

    requirements: dict[int, int] = {}
    for product_id, quantity in per_product.items():
        for component_id, units in decompose(products[product_id], quantity, lookup).items():
            requirements[component_id] = requirements.get(component_id, 0) + units

    check_availability(requirements, lookup)
    return requirements


def apply_delta(
    product_id: int,
    delta: int,
    event_type: str,
    *,
    notes: str | None = None,
    related_id: str | None = None,
    occurred_at=None,
) -> InventoryEvent:
    """
    stock += delta and append the matching InventoryEvent.

    Does not commit; the caller owns the unit of work.
    """
    if event_type not in INVENTORY_EVENT_TYPES:
        raise InventoryError(f"Unknown inventory event type: {event_type}")
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InventoryError("Stock delta must be an integer")
    if delta == 0:
        raise InventoryError("Stock delta cannot be zero")

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise InventoryError("Product not found", details={"product_id": product_id})
    if product.is_bundle:
        raise InventoryError(
            "Bundle stock is derived from its components and cannot be changed directly",
            details={"product_id": product_id},
        )

    new_stock = product.stock + delta
    if new_stock < 0:
        raise InsufficientStockError(
            f"Not enough stock for {product.name}.",
            details={"items": [{
                "product_id": product.id,
                "name": product.name,
                "requested": -delta,
                "available": product.stock,
            }]},
        )

    product.stock = new_stock
    event = InventoryEvent(
        product=product,
        type=event_type,
        quantity_change=delta,
        occurred_at=normalize_datetime(occurred_at),
        related_id=related_id,
        notes=notes,
    )
    db.session.add(event)
    return event


def adjust_stock(product_id: int, delta: int, reason: str) -> InventoryEvent:
    """Manual stock correction (damage, count, ...). Commits."""
    reason = (reason or "").strip()
    if not reason:
        raise InventoryError("A reason is required for stock adjustments")

    def _op():
        event = apply_delta(product_id, delta, "adjustment", notes=reason)
        notification_service.notify(
            "info",
            f"Stock for {event.product.name} adjusted by {delta:+d}.",
        )
        return event

    return run_atomic(_op)


def reconstruct_stock(product_id: int, as_of: datetime | None = None) -> int:
    """Stock as implied by the event log alone (optionally as-of, inclusive)."""
    q = db.session.query(
        func.coalesce(func.sum(InventoryEvent.quantity_change), 0)
    ).filter(InventoryEvent.product_id == product_id)
    if as_of is not None:
        q = q.filter(InventoryEvent.occurred_at <= as_of)
    return int(q.scalar() or 0)


def list_inventory_events(product_id: int, limit: int = 200) -> list[InventoryEvent]:
    return (
        db.session.query(InventoryEvent)
        .filter(InventoryEvent.product_id == product_id)
        .order_by(InventoryEvent.occurred_at.desc(), InventoryEvent.id.desc())
        .limit(limit)
        .all()
    )


def inventory_forecast(settings: LedgerSettings, now: datetime | None = None) -> list[dict]:
    """
    Products expected to run out within the reorder threshold.

    Units sold come from 'sale' events inside the lookback window (bundle
    sales therefore count against their components). Products with no sales
    in the window are never listed.
    """
    lookback = settings.forecast_lookback_days
    if lookback <= 0:
        return []

    now = normalize_datetime(now)
    since = now - timedelta(days=lookback)

    sold_rows = (
        db.session.query(
            InventoryEvent.product_id,
            func.coalesce(func.sum(-InventoryEvent.quantity_change), 0),
        )
        .filter(
            InventoryEvent.type == "sale",
            InventoryEvent.occurred_at >= since,
            InventoryEvent.occurred_at <= now,
        )
        .group_by(InventoryEvent.product_id)
        .all()
    )
    sold_by_product = {product_id: int(units or 0) for product_id, units in sold_rows}

    forecast = []
    for product in db.session.query(Product).filter(Product.is_bundle.is_(False)).all():
        units_sold = sold_by_product.get(product.id, 0)
        if units_sold <= 0:
            continue
        average_daily = units_sold / lookback
        days_remaining = product.stock / average_daily
        if days_remaining <= settings.forecast_reorder_threshold_days:
            forecast.append({
                "product_id": product.id,
                "name": product.name,
                "stock": product.stock,
                "units_sold": units_sold,
                "average_daily_sales": round(average_daily, 4),
                "days_remaining": round(days_remaining, 2),
                "default_wholesaler_id": product.default_wholesaler_id,
            })

    forecast.sort(key=lambda row: (row["days_remaining"], row["product_id"]))
    return forecast


def stock_snapshot() -> list[dict]:
    """Every product with its effective stock, as shown on the inventory screen."""
    lookup = build_lookup()
    return [
        {**product.to_dict(), "effective_stock": effective_stock(product, lookup)}
        for product in sorted(lookup.values(), key=lambda p: p.id)
    ]

