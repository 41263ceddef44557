"""
Refund Service

A refund references an existing order and lists the products being handed
back. Creating it restores stock for every line and writes an audit entry,
all in one transaction.

Several refunds may target the same order. Refunded quantities are not
capped against what was sold (see DESIGN.md); refunded_quantities() rebuilds
the running total per product from refund_items for callers that want to
show or enforce it.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderItem, Product, Refund, RefundItem
from ..validation import NotFoundError
from economica.time_utils import utcnow
from .audit_service import log_action
from .concurrency import run_with_retry
from .stock_service import record_movement
from .weight_service import calculate_price_cents, normalize_quantity, validate_quantity


REFUND_STATUS_COMPLETED = "completed"


class RefundError(Exception):
    """Raised for refund business-rule failures."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _original_prices(order: Order) -> dict[int, int]:
    return {item.product_id: item.unit_price_cents for item in order.items}


def process_refund(
    *,
    sale_id: int,
    items: list[dict],
    reason: str,
    user,
    refund_amount_cents: int | None = None,
) -> Refund:
    """
    Create a refund for `items` ({product_id, quantity, unit_price_cents?})
    of order `sale_id` and put the quantities back in stock.

    unit_price_cents defaults to the price the product sold at on the order.
    refund_amount_cents defaults to the sum of line subtotals.
    """
    if not items:
        raise RefundError("Items a devolver requeridos")
    if not reason or not reason.strip():
        raise RefundError("Razón de devolución requerida")

    def _op():
        order = db.session.get(Order, sale_id)
        if not order:
            raise NotFoundError("Venta no encontrada")

        sold_prices = _original_prices(order)
        lines = []
        for item in items:
            product_id = item.get("product_id")
            product = db.session.get(Product, product_id)
            if not product:
                raise NotFoundError(f"Producto {product_id} no encontrado")

            quantity = float(item.get("quantity") or 0)
            # Unit rules apply; the per-line sale ceiling does not.
            check = validate_quantity(quantity, product, max_quantity=float("inf"))
            if not check.is_valid:
                raise RefundError(
                    f"Cantidad inválida para {product.name}",
                    details={
                        "product_id": product_id,
                        "quantity": quantity,
                        "adjusted_quantity": check.adjusted_quantity,
                        "message": check.message,
                    },
                )
            quantity = normalize_quantity(quantity, product)

            unit_price = item.get("unit_price_cents")
            if unit_price is None:
                unit_price = sold_prices.get(product.id)
            if unit_price is None:
                raise RefundError(
                    f"Precio unitario requerido para {product.name}",
                    details={"product_id": product_id},
                )
            unit_price = int(unit_price)
            lines.append((product, quantity, unit_price, calculate_price_cents(unit_price, quantity)))

        amount = refund_amount_cents
        if amount is None:
            amount = sum(subtotal for _, _, _, subtotal in lines)

        try:
            refund = Refund(
                original_order_id=order.id,
                processed_by_user_id=user.id,
                reason=reason.strip(),
                refund_amount_cents=amount,
                status=REFUND_STATUS_COMPLETED,
                created_at=utcnow(),
            )
            db.session.add(refund)
            db.session.flush()

            for product, quantity, unit_price, subtotal in lines:
                db.session.add(RefundItem(
                    refund_id=refund.id,
                    product_id=product.id,
                    quantity=quantity,
                    unit_price_cents=unit_price,
                    subtotal_cents=subtotal,
                ))
                record_movement(
                    product,
                    movement_type="REFUND",
                    delta=quantity,
                    user_id=user.id,
                    order_id=order.id,
                    refund_id=refund.id,
                    note=f"Devolución de {order.order_number}",
                )

            log_action(
                user_id=user.id,
                action="refund_processed",
                table_name="refunds",
                record_id=refund.id,
                details={
                    "refund_id": refund.id,
                    "original_sale_id": order.id,
                    "refund_amount_cents": amount,
                    "items_count": len(lines),
                    "reason": refund.reason,
                },
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return refund

    return run_with_retry(_op)


def refunded_quantities(order_id: int) -> dict[int, float]:
    """Total refunded quantity per product across all refunds of an order."""
    rows = (
        db.session.query(RefundItem.product_id, func.sum(RefundItem.quantity))
        .join(Refund, Refund.id == RefundItem.refund_id)
        .filter(Refund.original_order_id == order_id)
        .group_by(RefundItem.product_id)
        .all()
    )
    return {product_id: round(float(qty or 0), 3) for product_id, qty in rows}


def refundable_quantities(order_id: int) -> dict[int, float]:
    """Sold minus refunded, per product (may go negative: refunds are not capped)."""
    sold: dict[int, float] = {}
    for item in db.session.query(OrderItem).filter_by(order_id=order_id).all():
        sold[item.product_id] = round(sold.get(item.product_id, 0.0) + float(item.quantity), 3)
    refunded = refunded_quantities(order_id)
    return {pid: round(qty - refunded.get(pid, 0.0), 3) for pid, qty in sold.items()}
