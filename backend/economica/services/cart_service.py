# Overview: Service-layer operations for the per-user cart.

"""
Cart store.

One cart per user, created lazily and reused forever (checkout and clear
just empty it). Items live in a JSON list on the cart row:

    {"product_id": 7, "quantity": 1.5, "unit_price_cents": 3990, "subtotal_cents": 5985}

CONCURRENCY:
Every mutation reads the cart, builds a new items list and writes the whole
list back. Cart.version_id makes a concurrent write from another request
raise StaleDataError at flush; run_with_retry then replays the mutation on
fresh data instead of silently dropping one side's update.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Cart, Product
from ..validation import NotFoundError
from economica.time_utils import utcnow
from .concurrency import run_with_retry
from .stock_service import check_stock
from .weight_service import calculate_price_cents, normalize_quantity, validate_quantity


class CartError(Exception):
    """Business-rule failure on a cart mutation (bad quantity, no stock)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# LOOKUPS
# =============================================================================

def ensure_cart(user_id: int) -> Cart:
    """
    Fetch-or-create the user's cart.

    Two first requests for a brand-new user can both miss the SELECT; the
    loser of the INSERT hits uq_carts_user, rolls back and reads the winner's
    row.
    """
    cart = _find_cart(user_id)
    if cart:
        return cart

    cart = Cart(user_id=user_id, items=[], updated_at=utcnow())
    db.session.add(cart)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        cart = _find_cart(user_id)
        if cart is None:
            raise
    return cart


def _find_cart(user_id: int) -> Cart | None:
    return db.session.query(Cart).filter_by(user_id=user_id).first()


def _get_active_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, is_active=True).first()
    if not product:
        raise NotFoundError("Producto no encontrado")
    return product


def scan_product(*, barcode: str | None = None, sku: str | None = None, product_id: int | None = None) -> Product:
    """
    Resolve a scanned code to an active product (barcode, then sku, then id).

    Raises NotFoundError when nothing matches and CartError when the
    product exists but has no stock left.
    """
    query = db.session.query(Product).filter(Product.is_active.is_(True))
    if barcode:
        query = query.filter(Product.barcode == barcode.strip())
    elif sku:
        query = query.filter(Product.sku == sku.strip())
    elif product_id is not None:
        query = query.filter(Product.id == product_id)
    else:
        raise ValueError("barcode, sku or product_id required")

    product = query.first()
    if not product:
        raise NotFoundError("Producto no encontrado")

    if float(product.stock_quantity or 0) <= 0:
        raise CartError("Producto sin stock disponible", details={"product": product.to_dict()})

    return product


# =============================================================================
# SUMMARY
# =============================================================================

def summarize(items: list[dict], tax_rate_bps: int | None = None) -> dict:
    """Totals for a list of cart lines. Pure; recomputed on every read."""
    if tax_rate_bps is None:
        tax_rate_bps = current_app.config.get("CART_TAX_RATE_BPS", 0)

    subtotal = sum(int(it.get("subtotal_cents") or 0) for it in items or [])
    total_items = round(sum(float(it.get("quantity") or 0) for it in items or []), 3)
    tax = (subtotal * tax_rate_bps + 5000) // 10000 if tax_rate_bps else 0

    return {
        "total_items": total_items,
        "subtotal_cents": subtotal,
        "tax_cents": tax,
        "total_cents": subtotal + tax,
    }


def _enrich(items: list[dict]) -> list[dict]:
    ids = [it["product_id"] for it in items]
    if not ids:
        return []
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()
    }
    enriched = []
    for it in items:
        product = products.get(it["product_id"])
        enriched.append({
            **it,
            "product": {
                "id": product.id,
                "name": product.name,
                "sku": product.sku,
                "barcode": product.barcode,
                "unit": product.unit,
                "stock_quantity": product.stock_quantity,
            } if product else None,
        })
    return enriched


def cart_payload(cart: Cart) -> dict:
    items = _enrich(list(cart.items or []))
    return {"id": cart.id, "items": items, "summary": summarize(items)}


def get_cart(user_id: int) -> dict:
    return cart_payload(ensure_cart(user_id))


# =============================================================================
# MUTATIONS
# =============================================================================

def _validated_quantity(product: Product, quantity: float) -> float:
    result = validate_quantity(quantity, product)
    if not result.is_valid:
        raise CartError(
            result.message or "Cantidad inválida",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "adjusted_quantity": result.adjusted_quantity,
            },
        )
    return normalize_quantity(quantity, product)


def _require_stock(product: Product, requested: float, held: float) -> None:
    check = check_stock(product, requested, held)
    if not check.has_stock:
        raise CartError(
            check.message or "Stock insuficiente",
            details={
                "product_id": product.id,
                "reason": check.reason,
                "available_quantity": check.available_quantity,
                "available_stock": product.stock_quantity,
            },
        )


def _require_line_ceiling(product: Product, held: float, quantity: float) -> None:
    """The line total, not just the added amount, must respect max_quantity."""
    result = validate_quantity(round(held + quantity, 3), product)
    if result.is_valid:
        return
    if product.max_quantity is not None:
        room = max(0.0, round(float(product.max_quantity) - held, 3))
    else:
        room = result.adjusted_quantity
    raise CartError(
        result.message or "Cantidad inválida",
        details={
            "product_id": product.id,
            "requested_quantity": quantity,
            "line_quantity": held,
            "adjusted_quantity": room,
        },
    )


def _write_items(cart: Cart, items: list[dict]) -> Cart:
    cart.items = items
    cart.updated_at = utcnow()
    db.session.commit()
    return cart


def add_item(user_id: int, product_id: int, quantity: float, unit_price_cents: int | None = None) -> Cart:
    """
    Add quantity of a product to the cart (additive when the line exists).

    The stock check counts what the cart already holds for this product.
    """
    def _op():
        product = _get_active_product(product_id)
        qty = _validated_quantity(product, quantity)

        cart = ensure_cart(user_id)
        items = [dict(it) for it in (cart.items or [])]
        idx = next((i for i, it in enumerate(items) if it["product_id"] == product.id), None)
        held = float(items[idx]["quantity"]) if idx is not None else 0.0
        if idx is not None:
            _require_line_ceiling(product, held, qty)

        _require_stock(product, qty, held)

        price = product.price_cents if unit_price_cents is None else int(unit_price_cents)
        if idx is not None:
            new_qty = round(held + qty, 3)
            items[idx] = {
                **items[idx],
                "quantity": new_qty,
                "unit_price_cents": price,
                "subtotal_cents": calculate_price_cents(price, new_qty),
            }
        else:
            items.append({
                "product_id": product.id,
                "quantity": qty,
                "unit_price_cents": price,
                "subtotal_cents": calculate_price_cents(price, qty),
            })

        return _write_items(cart, items)

    return run_with_retry(_op)


def update_item(user_id: int, product_id: int, quantity: float) -> Cart:
    """Replace a line's quantity (not additive). Stock is checked against the new total."""
    def _op():
        cart = ensure_cart(user_id)
        items = [dict(it) for it in (cart.items or [])]
        idx = next((i for i, it in enumerate(items) if it["product_id"] == product_id), None)
        if idx is None:
            raise NotFoundError("Item del carrito no encontrado")

        product = _get_active_product(product_id)
        qty = _validated_quantity(product, quantity)
        _require_stock(product, qty, 0)

        price = int(items[idx].get("unit_price_cents") or product.price_cents)
        items[idx] = {
            **items[idx],
            "quantity": qty,
            "unit_price_cents": price,
            "subtotal_cents": calculate_price_cents(price, qty),
        }
        return _write_items(cart, items)

    return run_with_retry(_op)


def remove_item(user_id: int, product_id: int) -> Cart:
    def _op():
        cart = ensure_cart(user_id)
        items = [dict(it) for it in (cart.items or []) if it["product_id"] != product_id]
        return _write_items(cart, items)

    return run_with_retry(_op)


def clear_cart(user_id: int) -> Cart:
    def _op():
        cart = ensure_cart(user_id)
        return _write_items(cart, [])

    return run_with_retry(_op)
