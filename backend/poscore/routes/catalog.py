from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services import catalog_service, credit_service, inventory_service, loyalty_service
from ..services.errors import LedgerError
from . import current_settings, ledger_error_response, unexpected_error_response

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.route("/products", methods=["GET"])
def list_products():
    category = request.args.get("category")
    if category:
        products = catalog_service.list_products(category)
        lookup = inventory_service.build_lookup()
        return jsonify([
            {**p.to_dict(), "effective_stock": inventory_service.effective_stock(p, lookup)}
            for p in products
        ])
    return jsonify(inventory_service.stock_snapshot())


@catalog_bp.route("/products", methods=["POST"])
def create_product():
    """
    Request body:
    {
        "name": "Cola 330ml",
        "price_cents": 1500,
        "wholesale_price_cents": 900,   (optional)
        "stock": 24,                    (optional, plain products only)
        "category": "Drinks",           (optional)
        "is_bundle": false,             (optional)
        "bundle_items": [{"component_id": 1, "quantity": 6}]  (bundles only)
    }
    """
    data = request.get_json() or {}
    missing = [f for f in ("name", "price_cents") if f not in data]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        product = catalog_service.create_product(
            data["name"],
            data["price_cents"],
            wholesale_price_cents=data.get("wholesale_price_cents", 0),
            stock=data.get("stock", 0),
            category=data.get("category", "General"),
            is_bundle=bool(data.get("is_bundle", False)),
            bundle_items=data.get("bundle_items"),
            default_wholesaler_id=data.get("default_wholesaler_id"),
        )
        return jsonify(product.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("create product")


@catalog_bp.route("/products/<int:product_id>", methods=["PATCH"])
def update_product(product_id: int):
    try:
        product = catalog_service.update_product(product_id, request.get_json() or {})
        return jsonify(product.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("update product")


@catalog_bp.route("/customers", methods=["GET"])
def list_customers():
    return jsonify([c.to_dict() for c in catalog_service.list_customers()])


@catalog_bp.route("/customers", methods=["POST"])
def create_customer():
    data = request.get_json() or {}
    if "name" not in data:
        return jsonify({"error": "Missing required fields: name"}), 400
    try:
        customer = catalog_service.create_customer(
            data["name"],
            email=data.get("email"),
            phone=data.get("phone"),
            maximum_credit_limit_cents=data.get("maximum_credit_limit_cents"),
        )
        return jsonify(customer.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("create customer")


@catalog_bp.route("/customers/<int:customer_id>", methods=["PATCH"])
def update_customer(customer_id: int):
    try:
        customer = catalog_service.update_customer(customer_id, request.get_json() or {})
        return jsonify(customer.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("update customer")


@catalog_bp.route("/customers/<int:customer_id>/credit", methods=["GET"])
def customer_credit(customer_id: int):
    try:
        customer = catalog_service.get_customer(customer_id)
        return jsonify(credit_service.credit_summary(customer, current_settings()))
    except LedgerError as e:
        return ledger_error_response(e)


@catalog_bp.route("/customers/<int:customer_id>/credit-block", methods=["POST"])
def set_credit_block(customer_id: int):
    data = request.get_json() or {}
    if "blocked" not in data:
        return jsonify({"error": "Missing required fields: blocked"}), 400
    try:
        customer = credit_service.set_credit_block(customer_id, bool(data["blocked"]))
        return jsonify(customer.to_dict())
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("update credit block")


@catalog_bp.route("/wholesalers", methods=["GET"])
def list_wholesalers():
    return jsonify([w.to_dict() for w in catalog_service.list_wholesalers()])


@catalog_bp.route("/wholesalers", methods=["POST"])
def create_wholesaler():
    data = request.get_json() or {}
    try:
        wholesaler = catalog_service.create_wholesaler(
            data.get("name"),
            contact_person=data.get("contact_person"),
            contact_number=data.get("contact_number"),
            email=data.get("email"),
        )
        return jsonify(wholesaler.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("create wholesaler")


@catalog_bp.route("/loyalty-tiers", methods=["GET"])
def list_loyalty_tiers():
    return jsonify([t.to_dict() for t in loyalty_service.list_tiers()])


@catalog_bp.route("/loyalty-tiers", methods=["POST"])
def create_loyalty_tier():
    data = request.get_json() or {}
    try:
        tier = loyalty_service.create_tier(
            data.get("name"),
            data.get("min_points"),
            point_multiplier_bps=data.get("point_multiplier_bps", loyalty_service.BASE_MULTIPLIER_BPS),
            color=data.get("color"),
        )
        return jsonify(tier.to_dict()), 201
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        return unexpected_error_response("create loyalty tier")
