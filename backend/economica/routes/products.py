# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/economica/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
- Stock corrections require ADJUST_INVENTORY permission
"""
from flask import Blueprint, request, g, current_app
from ..services import products_service
from ..services import stock_service
from ..services.stock_service import StockError
from ..services.weight_service import get_weight_calculation, quantity_options
from ..models import Product
from ..validation import (
    FieldErrors,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_quantity,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description", "price_cents", "unit",
        "sell_by_weight", "stock_quantity", "max_quantity", "is_active", "store_id",
    },
    required_on_create={"sku", "name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    Query params:
    - q: str (optional) - name/sku substring or exact barcode
    - include_inactive: bool (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    q = request.args.get("q")
    include_inactive = request.args.get("include_inactive", "false").lower() in ("1", "true", "yes")
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)

    return products_service.list_products(
        q=q,
        include_inactive=include_inactive,
        page=page,
        per_page=per_page,
    )


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    payload = product.to_dict()
    payload["weight"] = get_weight_calculation(product).to_dict()
    return payload


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"errors": e.errors}, 400

    try:
        created = products_service.create_product(patch=patch, user_id=g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created.to_dict(), 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Stock is not patchable here; use POST /<id>/stock."""
    payload = request.get_json(silent=True) or {}
    if "stock_quantity" in payload:
        return {"errors": [{
            "field": "stock_quantity",
            "message": "Use POST /api/products/<id>/stock para ajustar el inventario",
        }]}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"errors": e.errors}, 400

    try:
        updated = products_service.update_product(product_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return updated.to_dict()


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_stock_route(product_id: int):
    """
    Manual stock correction.

    Request body: {"delta": -2.5, "note": "Merma"}
    """
    data = request.get_json(silent=True) or {}
    errors = FieldErrors()
    delta = parse_quantity(data.get("delta"), "delta", errors)
    if delta is not None and delta == 0:
        errors.add("delta", "delta no puede ser 0")

    try:
        errors.raise_if_any()
        movement = stock_service.adjust_stock(
            product_id,
            delta,
            user_id=g.current_user.id,
            note=data.get("note"),
        )
        return movement.to_dict(), 201
    except ValidationError as e:
        return {"errors": e.errors}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except StockError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to adjust stock for product %s", product_id)
        return {"error": "Error interno del servidor"}, 500


@products_bp.get("/<int:product_id>/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route(product_id: int):
    limit = min(request.args.get("limit", default=100, type=int), 500)
    movements = stock_service.list_movements(product_id, limit=limit)
    return {"movements": [m.to_dict() for m in movements]}


@products_bp.get("/<int:product_id>/quantity-options")
@require_auth
def quantity_options_route(product_id: int):
    """Preset quantities for the product's unit (selector UI)."""
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {
        "product_id": product.id,
        "weight": get_weight_calculation(product).to_dict(),
        "options": quantity_options(product),
    }
