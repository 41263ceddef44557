"""
Sales Service - checkout, payment confirmation and order lookups

Checkout turns the caller's cart (or an explicit item list) into an
immutable Order. Everything the cart remembered is re-validated against
live product rows: quantities, stock and prices can all have changed since
the item was added.

TRANSACTION:
Validation is read-only. The write phase (order, items, stock decrements,
cart clear, audit entry) happens in one session and one commit, so a failure
anywhere leaves no partial order and no partially decremented stock.
Product.version_id turns two checkouts racing for the same stock into a
StaleDataError, and run_with_retry replays the loser against fresh stock.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Cart, Order, OrderItem, Product
from ..validation import NotFoundError, ValidationError
from economica.time_utils import parse_iso_datetime, to_utc_z, utcnow
from .audit_service import log_action
from .concurrency import lock_for_update, run_with_retry
from .stock_service import check_stock, record_movement
from .weight_service import (
    calculate_price_cents,
    convert_weight,
    get_weight_calculation,
    normalize_quantity,
    validate_quantity,
)


PAYMENT_METHODS = {"cash", "card", "transfer"}

PAYMENT_METHOD_ALIASES = {
    "efectivo": "cash",
    "tarjeta": "card",
    "transferencia": "transfer",
}

ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_PENDING = "pending"


class SaleError(Exception):
    """Raised for checkout/payment business-rule failures."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class ValidatedLine:
    product: Product
    quantity: float
    unit_price_cents: int
    total_cents: int


def normalize_payment_method(method: str | None) -> str:
    """Map Spanish aliases to canonical codes; ValidationError when unknown."""
    value = (method or "").strip().lower()
    value = PAYMENT_METHOD_ALIASES.get(value, value)
    if value not in PAYMENT_METHODS:
        raise ValidationError("Método de pago inválido", field="payment_method")
    return value


def _new_order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


# =============================================================================
# CHECKOUT
# =============================================================================

def _resolve_source_items(user_id: int, items: list[dict] | None) -> list[dict]:
    """Explicit items win over the stored cart. Neither gives 'Carrito vacío'."""
    if items:
        return list(items)

    cart = db.session.query(Cart).filter_by(user_id=user_id).first()
    if not cart or not cart.items:
        raise SaleError("Carrito vacío")
    return [
        {"product_id": it["product_id"], "quantity": it["quantity"]}
        for it in cart.items
    ]


def _line_quantity(product: Product, item: dict) -> float:
    """
    Quantity a line asks for.

    Weight products may send weight_kg; it is converted to the product's
    own unit (grams for 'gramo').
    """
    calc = get_weight_calculation(product)
    if calc.is_weight_based and item.get("weight_kg") not in (None, "", 0):
        return convert_weight(float(item["weight_kg"]), "kg", calc.base_unit)
    return float(item.get("quantity") or 0)


def validate_lines(source_items: list[dict]) -> list[ValidatedLine]:
    """
    Re-read every product and re-check quantity rules and live stock.

    Read-only. Quantities for the same product on several lines are checked
    against stock together.
    """
    validated: list[ValidatedLine] = []
    held: dict[int, float] = {}

    for item in source_items:
        product_id = item.get("product_id")
        product = lock_for_update(
            db.session.query(Product).filter_by(id=product_id, is_active=True)
        ).first()
        if not product:
            raise NotFoundError(f"Producto {product_id} no encontrado")

        qty = _line_quantity(product, item)
        result = validate_quantity(qty, product)
        if not result.is_valid:
            raise SaleError(
                f"Cantidad inválida para {product.name}",
                details={
                    "product_id": product.id,
                    "requested_quantity": qty,
                    "adjusted_quantity": result.adjusted_quantity,
                    "message": result.message,
                },
            )
        qty = normalize_quantity(qty, product)

        already = held.get(product.id, 0.0)
        check = check_stock(product, qty, already)
        if not check.has_stock:
            raise SaleError(
                f"Stock insuficiente para {product.name}. Disponible: {product.stock_quantity or 0}",
                details={
                    "product_id": product.id,
                    "reason": check.reason,
                    "available_quantity": check.available_quantity,
                },
            )
        held[product.id] = round(already + qty, 3)

        unit_price = int(product.price_cents or 0)
        validated.append(ValidatedLine(
            product=product,
            quantity=qty,
            unit_price_cents=unit_price,
            total_cents=calculate_price_cents(unit_price, qty),
        ))

    return validated


def reconcile_total(
    subtotal_cents: int,
    discount_cents: int,
    tax_cents: int,
    expected_total_cents: int | None,
    tolerance_cents: int = 1,
) -> int:
    """total = subtotal - discount + tax, checked against the caller's total if given."""
    total = subtotal_cents - discount_cents + tax_cents
    if expected_total_cents is not None and abs(total - expected_total_cents) > tolerance_cents:
        raise SaleError(
            "El total calculado no coincide con el total enviado",
            details={"calculated_total_cents": total, "sent_total_cents": expected_total_cents},
        )
    return total


def checkout(
    *,
    user,
    payment_method: str,
    discount_cents: int = 0,
    tax_cents: int = 0,
    expected_total_cents: int | None = None,
    items: list[dict] | None = None,
    customer_id: str | None = None,
    defer_payment: bool = False,
) -> Order:
    """Convert the user's cart (or explicit items) into an order booked to the user's store."""
    method = normalize_payment_method(payment_method)
    if discount_cents < 0:
        raise ValidationError("Descuento inválido", field="discount_amount")
    if tax_cents < 0:
        raise ValidationError("Impuesto inválido", field="tax_amount")

    tolerance = current_app.config.get("CHECKOUT_TOTAL_TOLERANCE_CENTS", 1)

    def _op():
        source = _resolve_source_items(user.id, items)
        lines = validate_lines(source)

        subtotal = sum(line.total_cents for line in lines)
        if discount_cents > subtotal:
            raise SaleError(
                "El descuento no puede ser mayor al subtotal",
                details={"subtotal_cents": subtotal, "discount_cents": discount_cents},
            )
        total = reconcile_total(subtotal, discount_cents, tax_cents, expected_total_cents, tolerance)

        try:
            now = utcnow()
            order = Order(
                order_number=_new_order_number(),
                store_id=user.store_id,
                cashier_id=user.id,
                customer_id=customer_id,
                status=ORDER_STATUS_PENDING if defer_payment else ORDER_STATUS_COMPLETED,
                payment_method=method,
                subtotal_cents=subtotal,
                discount_cents=discount_cents,
                tax_cents=tax_cents,
                total_cents=total,
                created_at=now,
                updated_at=now,
            )
            db.session.add(order)
            db.session.flush()

            for line in lines:
                db.session.add(OrderItem(
                    order_id=order.id,
                    product_id=line.product.id,
                    product_name=line.product.name,
                    unit=line.product.unit,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    total_cents=line.total_cents,
                ))
                record_movement(
                    line.product,
                    movement_type="SALE",
                    delta=-line.quantity,
                    user_id=user.id,
                    order_id=order.id,
                    note=f"Venta {order.order_number}",
                )

            cart = db.session.query(Cart).filter_by(user_id=user.id).first()
            if cart is not None and cart.items:
                cart.items = []
                cart.updated_at = now

            log_action(
                user_id=user.id,
                action="order_completed",
                table_name="orders",
                record_id=order.id,
                details={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "total_cents": total,
                    "items_count": len(lines),
                    "payment_method": method,
                    "status": order.status,
                },
            )

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return order

    return run_with_retry(_op)


# =============================================================================
# PAYMENT CONFIRMATION
# =============================================================================

def process_payment(*, order_id: int, payment_method: str, amount_received_cents: int, user) -> tuple[Order, int]:
    """
    Confirm a pending order. Returns (order, change_cents).

    The gateway itself is not called here; this records the outcome.
    """
    method = normalize_payment_method(payment_method)

    def _op():
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFoundError("Venta no encontrada")
        if order.status != ORDER_STATUS_PENDING:
            raise SaleError("Esta venta ya fue procesada", details={"status": order.status})
        if amount_received_cents < order.total_cents:
            raise SaleError(
                "Monto recibido insuficiente",
                details={"total_cents": order.total_cents, "amount_received_cents": amount_received_cents},
            )

        change = amount_received_cents - order.total_cents
        order.payment_method = method
        order.amount_received_cents = amount_received_cents
        order.change_cents = change
        order.status = ORDER_STATUS_COMPLETED
        order.updated_at = utcnow()

        log_action(
            user_id=user.id,
            action="payment_processed",
            table_name="orders",
            record_id=order.id,
            details={
                "payment_method": method,
                "amount_received_cents": amount_received_cents,
                "change_cents": change,
            },
        )
        db.session.commit()
        return order, change

    return run_with_retry(_op)


# =============================================================================
# LOOKUPS
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Orden no encontrada")
    return order


def get_receipt(order_id: int) -> dict:
    order = get_order(order_id)
    return {
        "sale_id": order.id,
        "order_number": order.order_number,
        "date": to_utc_z(order.created_at),
        "items": [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "unit": item.unit,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "subtotal_cents": item.total_cents,
            }
            for item in order.items
        ],
        "subtotal_cents": order.subtotal_cents,
        "discount_cents": order.discount_cents,
        "tax_cents": order.tax_cents,
        "total_cents": order.total_cents,
        "payment_method": order.payment_method,
        "amount_received_cents": order.amount_received_cents,
        "change_cents": order.change_cents,
    }


def list_orders(
    *,
    page: int = 1,
    limit: int | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    cashier_id: int | None = None,
    store_id: int | None = None,
    status: str | None = None,
) -> dict:
    """Newest first, with pagination metadata."""
    default_limit = current_app.config.get("SALES_PAGE_SIZE", 50)
    max_limit = current_app.config.get("SALES_MAX_PAGE_SIZE", 200)
    limit = min(max(limit or default_limit, 1), max_limit)
    page = max(page or 1, 1)

    query = db.session.query(Order)
    if store_id is not None:
        query = query.filter(Order.store_id == store_id)
    if cashier_id is not None:
        query = query.filter(Order.cashier_id == cashier_id)
    if status:
        query = query.filter(Order.status == status)

    try:
        start = parse_iso_datetime(from_date)
        end = parse_iso_datetime(to_date, end_of_day=True)
    except ValueError:
        raise ValidationError("Fecha inválida", field="from_date" if from_date else "to_date")
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "sales": [o.to_dict() for o in orders],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit if total else 0,
        },
    }
