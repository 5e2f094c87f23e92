# Overview: Service-layer operations for purchase orders; receiving goods moves stock through 'purchase' events.

from __future__ import annotations

import uuid
from datetime import datetime

from ..extensions import db
from ..models import Product, PurchaseOrder, PurchaseOrderLine, Wholesaler
from poscore.time_utils import normalize_datetime
from .concurrency import lock_for_update, run_atomic
from .errors import NotFoundError, PurchaseOrderError
from . import inventory_service, notification_service


def generate_purchase_order_id() -> str:
    return f"PO-{uuid.uuid4().hex[:10].upper()}"


def get_purchase_order(po_id: str) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError("Purchase order not found", details={"purchase_order_id": po_id})
    return po


def list_purchase_orders(status: str | None = None) -> list[PurchaseOrder]:
    q = db.session.query(PurchaseOrder)
    if status:
        q = q.filter(PurchaseOrder.status == status)
    return q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.asc()).all()


def create_purchase_order(wholesaler_id: int, items: list[dict]) -> PurchaseOrder:
    """
    Raise a pending order.

    items: [{product_id, quantity, purchase_price_cents?}]; the purchase
    price defaults to the product's wholesale price.
    """
    if not items:
        raise PurchaseOrderError("Please select a wholesaler and add at least one item.")

    def _op():
        wholesaler = db.session.get(Wholesaler, wholesaler_id)
        if wholesaler is None:
            raise PurchaseOrderError("Please select a wholesaler and add at least one item.",
                                     details={"wholesaler_id": wholesaler_id})

        lines = []
        for entry in items:
            product_id = entry.get("product_id")
            quantity = entry.get("quantity")
            product = db.session.get(Product, product_id) if isinstance(product_id, int) else None
            if product is None:
                raise PurchaseOrderError("Product not found", details={"product_id": product_id})
            if product.is_bundle:
                raise PurchaseOrderError("Bundles cannot be purchased; order their components",
                                         details={"product_id": product_id})
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise PurchaseOrderError("Quantity must be a positive integer", details={"product_id": product_id})
            price = entry.get("purchase_price_cents", product.wholesale_price_cents)
            if isinstance(price, bool) or not isinstance(price, int) or price < 0:
                raise PurchaseOrderError("Purchase price must be a non-negative integer",
                                         details={"product_id": product_id})
            lines.append(PurchaseOrderLine(
                product_id=product.id,
                name=product.name,
                quantity=quantity,
                purchase_price_cents=price,
            ))

        po = PurchaseOrder(
            id=generate_purchase_order_id(),
            wholesaler_id=wholesaler.id,
            status="pending",
            total_cents=sum(line.quantity * line.purchase_price_cents for line in lines),
        )
        po.lines = lines
        db.session.add(po)
        db.session.flush()
        return po

    return run_atomic(_op)


def process_purchase_order(po_id: str, now: datetime | None = None) -> PurchaseOrder:
    """Receive a pending order: stock in through 'purchase' events, then mark it processed."""
    def _op():
        po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
        if po is None:
            raise NotFoundError("Purchase order not found", details={"purchase_order_id": po_id})
        if po.status != "pending":
            raise PurchaseOrderError("Purchase order has already been processed", details={"purchase_order_id": po.id})

        received_at = normalize_datetime(now)
        wholesaler_name = po.wholesaler.name if po.wholesaler else "wholesaler"
        for line in po.lines:
            inventory_service.apply_delta(
                line.product_id,
                line.quantity,
                "purchase",
                notes=f"From {wholesaler_name}",
                related_id=po.id,
                occurred_at=received_at,
            )

        po.status = "processed"
        po.processed_at = received_at
        notification_service.notify("success", f"Purchase order {po.id} received.")
        return po

    return run_atomic(_op)
