# Overview: Stock availability checks and manual stock adjustments.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Product, InventoryMovement
from ..validation import NotFoundError
from economica.time_utils import utcnow
from .audit_service import log_action
from .concurrency import run_with_retry
from .weight_service import format_quantity


REASON_OUT_OF_STOCK = "out_of_stock"
REASON_INSUFFICIENT = "insufficient_stock"


class StockError(Exception):
    """Raised when a stock change would break stock_quantity >= 0."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class StockCheck:
    has_stock: bool
    available_quantity: float
    reason: str | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "has_stock": self.has_stock,
            "available_quantity": self.available_quantity,
            "reason": self.reason,
            "message": self.message,
        }


def check_stock(product, requested: float, held: float = 0) -> StockCheck:
    """
    Can `requested` more units be sold on top of `held` (already in the cart)?

    Inactive or empty products always fail with REASON_OUT_OF_STOCK.
    Otherwise a shortfall reports how much more would still fit.
    """
    stock = float(product.stock_quantity or 0)

    if not product.is_active or stock <= 0:
        return StockCheck(
            has_stock=False,
            available_quantity=0.0,
            reason=REASON_OUT_OF_STOCK,
            message="Producto agotado",
        )

    # rounded so 0.1 + 0.2 does not overshoot a stock of 0.3
    if round(requested + held, 6) > stock:
        return StockCheck(
            has_stock=False,
            available_quantity=max(0.0, stock - held),
            reason=REASON_INSUFFICIENT,
            message=f"Stock insuficiente. Disponible: {format_quantity(stock, product.unit)}",
        )

    return StockCheck(has_stock=True, available_quantity=stock)


def record_movement(
    product: Product,
    *,
    movement_type: str,
    delta: float,
    user_id: int | None,
    order_id: int | None = None,
    refund_id: int | None = None,
    note: str | None = None,
) -> InventoryMovement:
    """
    Apply delta to product.stock_quantity (floored at zero) and log it.

    Flushes but never commits: the caller owns the transaction.
    """
    current = float(product.stock_quantity or 0)
    new_qty = round(max(0.0, current + delta), 3)
    product.stock_quantity = new_qty

    movement = InventoryMovement(
        product_id=product.id,
        type=movement_type,
        quantity_delta=round(new_qty - current, 3),
        stock_after=new_qty,
        order_id=order_id,
        refund_id=refund_id,
        user_id=user_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(product_id: int, delta: float, user_id: int, note: str | None = None) -> InventoryMovement:
    """Manual correction (count, shrink, receiving). Refuses to go below zero."""
    def _op():
        product = db.session.get(Product, product_id)
        if not product:
            raise NotFoundError("Producto no encontrado")

        current = float(product.stock_quantity or 0)
        if round(current + delta, 6) < 0:
            raise StockError(
                "El ajuste dejaría el stock en negativo",
                details={"stock_quantity": current, "delta": delta},
            )

        movement = record_movement(
            product,
            movement_type="ADJUST",
            delta=delta,
            user_id=user_id,
            note=note,
        )
        log_action(
            user_id=user_id,
            action="stock_adjusted",
            table_name="products",
            record_id=product.id,
            details={"delta": delta, "stock_after": movement.stock_after, "note": note},
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements(product_id: int, limit: int = 100) -> list[InventoryMovement]:
    return (
        db.session.query(InventoryMovement)
        .filter_by(product_id=product_id)
        .order_by(InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )
