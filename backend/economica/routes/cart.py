# Overview: Flask API routes for the shopping cart; parses input and returns JSON responses.

# backend/economica/routes/cart.py
"""
Cart API routes.

Every route works on the authenticated user's own cart; no extra
permission is needed beyond a valid token.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import cart_service
from ..services.cart_service import CartError
from ..validation import (
    FieldErrors,
    NotFoundError,
    ValidationError,
    parse_int,
    parse_money_cents,
    parse_quantity,
)
from ..decorators import require_auth


cart_bp = Blueprint("cart", __name__, url_prefix="/api/sales/cart")


def _cart_error(e: CartError):
    body = {"error": str(e)}
    body.update(e.details)
    return jsonify(body), 400


@cart_bp.post("/scan")
@require_auth
def scan_route():
    """
    Look up a product by barcode, sku or id.

    Request body: {"barcode": "750..."} | {"sku": "ARZ-1"} | {"product_id": 3}
    """
    data = request.get_json(silent=True) or {}
    barcode = data.get("barcode")
    sku = data.get("sku")
    product_id = data.get("product_id")

    if not barcode and not sku and product_id is None:
        return jsonify({"error": "Se requiere código de barras, SKU o ID del producto"}), 400

    try:
        product = cart_service.scan_product(barcode=barcode, sku=sku, product_id=product_id)
        return jsonify({"message": "Producto escaneado exitosamente", "product": product.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CartError as e:
        return _cart_error(e)
    except Exception:
        current_app.logger.exception("Failed to scan product")
        return jsonify({"error": "Error interno del servidor"}), 500


@cart_bp.post("/add-item")
@require_auth
def add_item_route():
    """
    Add a product to the cart.

    Request body:
    {
        "product_id": 3,
        "quantity": 1.5,       (optional, default 1)
        "unit_price": 39.90    (optional, defaults to the catalog price)
    }
    """
    data = request.get_json(silent=True) or {}
    errors = FieldErrors()
    product_id = parse_int(data.get("product_id"), "product_id", errors)
    quantity = parse_quantity(data.get("quantity", 1), "quantity", errors)
    unit_price_cents = parse_money_cents(data.get("unit_price"), "unit_price", errors)

    try:
        errors.raise_if_any()
        cart = cart_service.add_item(g.current_user.id, product_id, quantity, unit_price_cents)
        return jsonify({
            "message": "Item agregado al carrito exitosamente",
            "cart": cart_service.cart_payload(cart),
        }), 201
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CartError as e:
        return _cart_error(e)
    except Exception:
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Error interno del servidor"}), 500


@cart_bp.get("/current")
@require_auth
def current_cart_route():
    try:
        return jsonify({"cart": cart_service.get_cart(g.current_user.id)}), 200
    except Exception:
        current_app.logger.exception("Failed to load cart")
        return jsonify({"error": "Error interno del servidor"}), 500


@cart_bp.patch("/items/<int:product_id>")
@require_auth
def update_item_route(product_id: int):
    """Replace the quantity of a cart line. Request body: {"quantity": 2}"""
    data = request.get_json(silent=True) or {}
    errors = FieldErrors()
    quantity = parse_quantity(data.get("quantity"), "quantity", errors)
    if quantity is not None and quantity <= 0:
        errors.add("quantity", "Cantidad debe ser mayor a 0")

    try:
        errors.raise_if_any()
        cart = cart_service.update_item(g.current_user.id, product_id, quantity)
        return jsonify({
            "message": "Item actualizado exitosamente",
            "cart": cart_service.cart_payload(cart),
        }), 200
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CartError as e:
        return _cart_error(e)
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Error interno del servidor"}), 500


@cart_bp.delete("/items/<int:product_id>")
@require_auth
def remove_item_route(product_id: int):
    try:
        cart = cart_service.remove_item(g.current_user.id, product_id)
        return jsonify({
            "message": "Item eliminado del carrito",
            "cart_item_id": product_id,
            "cart": cart_service.cart_payload(cart),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Error interno del servidor"}), 500


@cart_bp.delete("/clear")
@require_auth
def clear_cart_route():
    try:
        cart_service.clear_cart(g.current_user.id)
        return jsonify({"message": "Carrito limpiado exitosamente"}), 200
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Error interno del servidor"}), 500
