# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/economica/routes/sales.py
"""
Sales API routes: checkout, payment confirmation, refunds, receipts and
the sales listing.

Money arrives in currency units (e.g. 25.50) and is converted to cents at
this boundary; responses carry cents.
"""

from flask import Blueprint, request, jsonify, g, current_app, render_template

from ..extensions import db
from ..services import cart_service
from ..services import sales_service
from ..services import refund_service
from ..services import reporting_service
from ..services.cart_service import CartError
from ..services.sales_service import SaleError
from ..services.refund_service import RefundError
from ..services.reporting_service import ReportError
from ..validation import (
    FieldErrors,
    NotFoundError,
    ValidationError,
    parse_int,
    parse_money_cents,
    parse_quantity,
)
from ..decorators import require_auth, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _internal_error(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Error interno del servidor"}), 500


def _parse_items(raw, errors: FieldErrors, *, with_price: bool = False) -> list[dict] | None:
    """Normalize a client item list; None when absent."""
    if raw is None:
        return None
    if not isinstance(raw, list):
        errors.add("items", "items debe ser una lista")
        return None

    items = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            errors.add(f"items[{idx}]", "Item inválido")
            continue
        item = {
            "product_id": parse_int(entry.get("product_id"), f"items[{idx}].product_id", errors),
            "quantity": parse_quantity(entry.get("quantity", 0), f"items[{idx}].quantity", errors),
        }
        if entry.get("weight_kg") is not None:
            item["weight_kg"] = parse_quantity(entry.get("weight_kg"), f"items[{idx}].weight_kg", errors)
        if with_price:
            item["unit_price_cents"] = parse_money_cents(
                entry.get("unit_price"), f"items[{idx}].unit_price", errors
            )
        items.append(item)
    return items


@sales_bp.post("/scan")
@require_auth
@require_permission("CREATE_ORDER")
def scan_route():
    """Cashier scan: resolve a barcode/sku to a sellable product."""
    data = request.get_json(silent=True) or {}
    barcode = data.get("barcode")
    sku = data.get("sku")

    if not barcode and not sku:
        return jsonify({"error": "Se requiere código de barras o SKU"}), 400

    try:
        product = cart_service.scan_product(barcode=barcode, sku=sku)
        return jsonify({"product": product.to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        return _internal_error("Failed to scan product")


@sales_bp.post("/checkout")
@require_auth
@require_permission("PROCESS_PAYMENT")
def checkout_route():
    """
    Turn the current cart (or an explicit item list) into an order.

    Request body:
    {
        "payment_method": "efectivo" | "tarjeta" | "transferencia" | "cash" | "card" | "transfer",
        "discount_amount": 0,       (optional)
        "tax_amount": 0,            (optional)
        "total": 51.00,             (optional, checked against the computed total)
        "items": [{"product_id": 1, "quantity": 2}],   (optional, overrides the cart)
        "client_id": "C-123",       (optional)
        "defer_payment": false      (optional, leaves the order pending)
    }

    The order is always booked to the cashier's own store.
    """
    data = request.get_json(silent=True) or {}
    errors = FieldErrors()
    discount_cents = parse_money_cents(data.get("discount_amount"), "discount_amount", errors)
    tax_cents = parse_money_cents(data.get("tax_amount"), "tax_amount", errors)
    expected_total = parse_money_cents(data.get("total"), "total", errors)
    items = _parse_items(data.get("items"), errors)
    customer_id = data.get("client_id") or data.get("customer_id")

    try:
        errors.raise_if_any()
        order = sales_service.checkout(
            user=g.current_user,
            payment_method=data.get("payment_method"),
            discount_cents=discount_cents or 0,
            tax_cents=tax_cents or 0,
            expected_total_cents=expected_total,
            items=items,
            customer_id=str(customer_id) if customer_id is not None else None,
            defer_payment=bool(data.get("defer_payment", False)),
        )
        current_app.logger.info(
            "Order %s completed by user %s: total=%s",
            order.order_number, g.current_user.id, order.total_cents,
        )
        return jsonify({
            "message": "Venta procesada exitosamente",
            "sale": order.to_dict(include_items=True),
        }), 201
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        return _internal_error("Failed to checkout")


@sales_bp.post("/payment")
@require_auth
@require_permission("PROCESS_PAYMENT")
def payment_route():
    """
    Confirm payment of a pending order.

    Request body: {"sale_id": 1, "payment_method": "efectivo", "amount_received": 60.00}
    """
    data = request.get_json(silent=True) or {}
    errors = FieldErrors()
    sale_id = parse_int(data.get("sale_id"), "sale_id", errors)
    amount_received = parse_money_cents(data.get("amount_received"), "amount_received", errors)
    if data.get("amount_received") is None:
        errors.add("amount_received", "amount_received requerido")

    try:
        errors.raise_if_any()
        order, change = sales_service.process_payment(
            order_id=sale_id,
            payment_method=data.get("payment_method"),
            amount_received_cents=amount_received,
            user=g.current_user,
        )
        return jsonify({
            "message": "Pago procesado exitosamente",
            "sale": order.to_dict(),
            "change_cents": change,
        }), 200
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        return _internal_error("Failed to process payment")


@sales_bp.post("/refund")
@require_auth
@require_permission("HANDLE_RETURN")
def refund_route():
    """
    Refund items of a sale and put them back in stock.

    Request body:
    {
        "sale_id": 1,
        "items": [{"product_id": 1, "quantity": 1, "unit_price": 25.50}],
        "reason": "Producto dañado",
        "refund_amount": 25.50      (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    errors = FieldErrors()
    sale_id = parse_int(data.get("sale_id"), "sale_id", errors)
    items = _parse_items(data.get("items"), errors, with_price=True)
    refund_amount = parse_money_cents(data.get("refund_amount"), "refund_amount", errors)

    try:
        errors.raise_if_any()
        refund = refund_service.process_refund(
            sale_id=sale_id,
            items=items or [],
            reason=data.get("reason") or "",
            user=g.current_user,
            refund_amount_cents=refund_amount,
        )
        current_app.logger.info(
            "Refund %s on sale %s by user %s: amount=%s",
            refund.id, sale_id, g.current_user.id, refund.refund_amount_cents,
        )
        return jsonify({
            "message": "Devolución procesada exitosamente",
            "refund": refund.to_dict(include_items=True),
        }), 201
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RefundError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        return _internal_error("Failed to process refund")


@sales_bp.get("/receipt/<int:sale_id>")
@sales_bp.get("/ticket/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def receipt_route(sale_id: int):
    """JSON receipt; ?format=html renders a printable page."""
    try:
        receipt = sales_service.get_receipt(sale_id)
        if request.args.get("format") == "html":
            return render_template("receipt.html", receipt=receipt)
        return jsonify({"receipt": receipt}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        return _internal_error("Failed to build receipt")


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        order = sales_service.get_order(sale_id)
        return jsonify({
            "sale": order.to_dict(include_items=True),
            "refunds": [r.to_dict(include_items=True) for r in order.refunds],
            "refunded_quantities": {
                str(pid): qty for pid, qty in refund_service.refunded_quantities(order.id).items()
            },
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        return _internal_error("Failed to load sale")


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Query params: page, limit, from_date, to_date, cashier_id, status

    Results are limited to the caller's store.
    """
    try:
        result = sales_service.list_orders(
            page=request.args.get("page", default=1, type=int),
            limit=request.args.get("limit", type=int),
            from_date=request.args.get("from_date"),
            to_date=request.args.get("to_date"),
            cashier_id=request.args.get("cashier_id", type=int),
            store_id=g.current_user.store_id,
            status=request.args.get("status"),
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except Exception:
        return _internal_error("Failed to list sales")


@sales_bp.get("/reports/summary")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def sales_summary_route():
    """Same report as /api/reports/sales, daily buckets by default."""
    try:
        report = reporting_service.sales_summary(
            from_date=request.args.get("from_date"),
            to_date=request.args.get("to_date"),
            cashier_id=request.args.get("cashier_id", type=int),
            store_id=g.current_user.store_id,
            range_name=request.args.get("range", "daily"),
        )
        return jsonify(report), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        return _internal_error("Failed to build sales summary")
