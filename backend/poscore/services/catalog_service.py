# Overview: Service-layer operations for catalog master data (products, bundles, wholesalers, customers).

from __future__ import annotations

from ..extensions import db
from ..models import BundleItem, Customer, Product, Wholesaler
from .concurrency import run_atomic
from .errors import CatalogError, NotFoundError
from . import inventory_service


PRODUCT_FIELDS = {"name", "category", "price_cents", "wholesale_price_cents", "default_wholesaler_id"}
CUSTOMER_FIELDS = {"name", "email", "phone", "maximum_credit_limit_cents"}


def _require_non_negative_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CatalogError(f"{field} must be an integer")
    if value < 0:
        raise CatalogError(f"{field} cannot be negative")
    return value


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def list_products(category: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def _build_bundle_items(bundle_items: list[dict]) -> list[BundleItem]:
    if not bundle_items:
        raise CatalogError("A bundle needs at least one component")

    merged: dict[int, int] = {}
    for entry in bundle_items:
        component_id = entry.get("component_id")
        quantity = entry.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise CatalogError("Bundle component quantity must be a positive integer",
                               details={"component_id": component_id})
        component = db.session.get(Product, component_id)
        if component is None:
            raise CatalogError("Bundle component not found", details={"component_id": component_id})
        if component.is_bundle:
            raise CatalogError("A bundle cannot contain another bundle", details={"component_id": component_id})
        merged[component_id] = merged.get(component_id, 0) + quantity

    return [BundleItem(component_id=cid, quantity=qty) for cid, qty in merged.items()]


def create_product(
    name: str,
    price_cents: int,
    *,
    wholesale_price_cents: int = 0,
    stock: int = 0,
    category: str = "General",
    is_bundle: bool = False,
    bundle_items: list[dict] | None = None,
    default_wholesaler_id: int | None = None,
) -> Product:
    """
    Create a product or bundle.

    Opening stock is recorded as an 'adjustment' inventory event so the
    event log alone reconstructs the stock column. Bundles carry no stock
    of their own.
    """
    name = (name or "").strip()
    if not name:
        raise CatalogError("Product name is required")
    _require_non_negative_int(price_cents, "price_cents")
    _require_non_negative_int(wholesale_price_cents, "wholesale_price_cents")
    _require_non_negative_int(stock, "stock")
    if is_bundle and stock:
        raise CatalogError("Bundle stock is derived from its components")
    if not is_bundle and bundle_items:
        raise CatalogError("Only bundles can have components")
    if default_wholesaler_id is not None and db.session.get(Wholesaler, default_wholesaler_id) is None:
        raise CatalogError("Wholesaler not found", details={"wholesaler_id": default_wholesaler_id})

    def _op():
        product = Product(
            name=name,
            category=(category or "General").strip() or "General",
            price_cents=price_cents,
            wholesale_price_cents=wholesale_price_cents,
            stock=0,
            is_bundle=is_bundle,
            default_wholesaler_id=default_wholesaler_id,
        )
        if is_bundle:
            product.bundle_items = _build_bundle_items(bundle_items or [])
        db.session.add(product)
        db.session.flush()

        if stock:
            inventory_service.apply_delta(product.id, stock, "adjustment", notes="Opening stock")
        return product

    return run_atomic(_op)


def update_product(product_id: int, data: dict) -> Product:
    """Update descriptive and pricing fields. Stock is never edited here."""
    if "stock" in data:
        raise CatalogError("Stock can only change through inventory adjustments")
    unknown = set(data) - PRODUCT_FIELDS
    if unknown:
        raise CatalogError("Unknown product fields", details={"fields": sorted(unknown)})

    def _op():
        product = get_product(product_id)
        if "name" in data:
            name = (data["name"] or "").strip()
            if not name:
                raise CatalogError("Product name is required")
            product.name = name
        if "category" in data:
            product.category = (data["category"] or "General").strip() or "General"
        for field in ("price_cents", "wholesale_price_cents"):
            if field in data:
                setattr(product, field, _require_non_negative_int(data[field], field))
        if "default_wholesaler_id" in data:
            wholesaler_id = data["default_wholesaler_id"]
            if wholesaler_id is not None and db.session.get(Wholesaler, wholesaler_id) is None:
                raise CatalogError("Wholesaler not found", details={"wholesaler_id": wholesaler_id})
            product.default_wholesaler_id = wholesaler_id
        return product

    return run_atomic(_op)


def create_wholesaler(
    name: str,
    contact_person: str | None = None,
    contact_number: str | None = None,
    email: str | None = None,
) -> Wholesaler:
    name = (name or "").strip()
    if not name:
        raise CatalogError("Wholesaler name is required")

    def _op():
        wholesaler = Wholesaler(
            name=name,
            contact_person=contact_person,
            contact_number=contact_number,
            email=email,
        )
        db.session.add(wholesaler)
        db.session.flush()
        return wholesaler

    return run_atomic(_op)


def list_wholesalers() -> list[Wholesaler]:
    return db.session.query(Wholesaler).order_by(Wholesaler.name.asc()).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def list_customers() -> list[Customer]:
    return db.session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(
    name: str,
    email: str | None = None,
    phone: str | None = None,
    maximum_credit_limit_cents: int | None = None,
) -> Customer:
    name = (name or "").strip()
    if not name:
        raise CatalogError("Customer name is required")
    if maximum_credit_limit_cents is not None:
        _require_non_negative_int(maximum_credit_limit_cents, "maximum_credit_limit_cents")

    def _op():
        customer = Customer(
            name=name,
            email=email,
            phone=phone,
            maximum_credit_limit_cents=maximum_credit_limit_cents,
        )
        db.session.add(customer)
        db.session.flush()
        return customer

    return run_atomic(_op)


def update_customer(customer_id: int, data: dict) -> Customer:
    """Update contact details or the credit limit (None restores the default)."""
    unknown = set(data) - CUSTOMER_FIELDS
    if unknown:
        raise CatalogError("Unknown customer fields", details={"fields": sorted(unknown)})

    def _op():
        customer = get_customer(customer_id)
        if "name" in data:
            name = (data["name"] or "").strip()
            if not name:
                raise CatalogError("Customer name is required")
            customer.name = name
        if "email" in data:
            customer.email = data["email"]
        if "phone" in data:
            customer.phone = data["phone"]
        if "maximum_credit_limit_cents" in data:
            limit = data["maximum_credit_limit_cents"]
            if limit is not None:
                _require_non_negative_int(limit, "maximum_credit_limit_cents")
            customer.maximum_credit_limit_cents = limit
        return customer

    return run_atomic(_op)
