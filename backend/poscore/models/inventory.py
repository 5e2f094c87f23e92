from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow


INVENTORY_EVENT_TYPES = ("sale", "return", "purchase", "adjustment")


class Product(db.Model):
    """
    Product master data, including bundle definitions.

    STOCK:
    - `stock` is the on-hand count for plain products and only changes through
      inventory_service.apply_delta, which writes an InventoryEvent alongside.
    - For bundles the column is ignored. Sellable bundle stock is derived from
      component stock on every read (see inventory_service.effective_stock).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False, default="General")

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)

    is_bundle = db.Column(db.Boolean, nullable=False, default=False)
    default_wholesaler_id = db.Column(db.Integer, db.ForeignKey("wholesalers.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    bundle_items = db.relationship(
        "BundleItem",
        foreign_keys="BundleItem.bundle_id",
        backref="bundle",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="BundleItem.id",
    )
    default_wholesaler = db.relationship("Wholesaler")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} bundle={self.is_bundle}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "stock": self.stock,
            "is_bundle": self.is_bundle,
            "bundle_items": [item.to_dict() for item in self.bundle_items] if self.is_bundle else [],
            "default_wholesaler_id": self.default_wholesaler_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class BundleItem(db.Model):
    """One component line of a bundle: `quantity` units of `component_id` per bundle sold."""
    __tablename__ = "bundle_items"
    __table_args__ = (
        db.UniqueConstraint("bundle_id", "component_id", name="uq_bundle_items_component"),
        db.CheckConstraint("quantity > 0", name="ck_bundle_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bundle_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    component_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    component = db.relationship("Product", foreign_keys=[component_id])

    def to_dict(self) -> dict:
        return {
            "component_id": self.component_id,
            "quantity": self.quantity,
        }


class Wholesaler(db.Model):
    """Supplier that purchase orders are raised against."""
    __tablename__ = "wholesalers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    contact_number = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Wholesaler id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "contact_number": self.contact_number,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryEvent(db.Model):
    """
    Append-only audit record of a stock change.

    IMMUTABLE: rows are never updated or deleted. For any product,
    SUM(quantity_change) equals its current stock, because product creation
    records the opening stock as an 'adjustment' event.
    """
    __tablename__ = "inventory_events"
    __table_args__ = (
        db.Index("ix_inventory_events_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_inventory_events_related", "related_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # sale, return, purchase, adjustment
    quantity_change = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # Transaction id, purchase order id, ...
    related_id = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product", backref=db.backref("inventory_events", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity_change": self.quantity_change,
            "occurred_at": to_utc_z(self.occurred_at),
            "related_id": self.related_id,
            "notes": self.notes,
        }


# =============================================================================
# PURCHASE ORDERS
# =============================================================================

class PurchaseOrder(db.Model):
    """
    Purchase order raised against a wholesaler.

    LIFECYCLE:
    1. pending: created, nothing received yet
    2. processed: goods received, stock incremented via 'purchase' events

    The transition is one-way; a processed order cannot be processed again.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_status", "status"),
    )

    id = db.Column(db.String(64), primary_key=True)
    wholesaler_id = db.Column(db.Integer, db.ForeignKey("wholesalers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    wholesaler = db.relationship("Wholesaler", backref=db.backref("purchase_orders", lazy=True))
    lines = db.relationship(
        "PurchaseOrderLine",
        backref="purchase_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "wholesaler_id": self.wholesaler_id,
            "wholesaler_name": self.wholesaler.name if self.wholesaler else None,
            "status": self.status,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
            "lines": [line.to_dict() for line in self.lines],
        }


class PurchaseOrderLine(db.Model):
    __tablename__ = "purchase_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.String(64), db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    purchase_price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "purchase_price_cents": self.purchase_price_cents,
            "line_total_cents": self.quantity * self.purchase_price_cents,
        }
