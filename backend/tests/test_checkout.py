"""
Checkout: cart to order in one transaction.

Verifies:
- Totals are computed from live prices and weights
- Stock is decremented and logged as SALE movements
- The cart is emptied and an audit entry written
- Any failure leaves stock, cart and orders untouched
"""

import pytest

from economica.models import AuditLog, InventoryMovement, Order, Product
from economica.services import cart_service, sales_service
from economica.services.sales_service import SaleError
from economica.validation import NotFoundError, ValidationError


# =============================================================================
# HAPPY PATH
# =============================================================================


class TestCheckoutFromCart:

    def test_two_pieces(self, cashier_user, rice, db_session):
        cart_service.add_item(cashier_user.id, rice.id, 2)

        order = sales_service.checkout(user=cashier_user, payment_method="efectivo")

        assert order.subtotal_cents == 5100
        assert order.total_cents == 5100
        assert order.status == "completed"
        assert order.payment_method == "cash"
        assert order.order_number.startswith("ORD-")
        assert len(order.items) == 1
        assert order.items[0].quantity == 2
        assert order.items[0].unit_price_cents == 2550

        assert db_session.get(Product, rice.id).stock_quantity == 48
        assert cart_service.get_cart(cashier_user.id)["items"] == []

    def test_sale_movement_and_audit(self, cashier_user, rice, db_session):
        cart_service.add_item(cashier_user.id, rice.id, 2)
        order = sales_service.checkout(user=cashier_user, payment_method="card")

        movement = db_session.query(InventoryMovement).filter_by(type="SALE").one()
        assert movement.quantity_delta == -2
        assert movement.stock_after == 48
        assert movement.order_id == order.id

        entry = db_session.query(AuditLog).filter_by(action="order_completed").one()
        assert entry.record_id == order.id
        assert entry.details["total_cents"] == 5100

    def test_weight_and_piece_lines(self, cashier_user, rice, apples):
        cart_service.add_item(cashier_user.id, rice.id, 1)
        cart_service.add_item(cashier_user.id, apples.id, 1.5)

        order = sales_service.checkout(user=cashier_user, payment_method="tarjeta")

        assert order.subtotal_cents == 2550 + 6885
        assert apples.stock_quantity == 8.5

    def test_discount_and_tax(self, cashier_user, rice):
        cart_service.add_item(cashier_user.id, rice.id, 2)
        order = sales_service.checkout(
            user=cashier_user,
            payment_method="cash",
            discount_cents=100,
            tax_cents=784,
            expected_total_cents=5784,
        )
        assert order.total_cents == 5100 - 100 + 784

    def test_uses_current_price(self, cashier_user, rice, db_session):
        cart_service.add_item(cashier_user.id, rice.id, 2)
        rice.price_cents = 3000
        db_session.commit()

        order = sales_service.checkout(user=cashier_user, payment_method="cash")
        assert order.subtotal_cents == 6000

    def test_deferred_payment_leaves_order_pending(self, cashier_user, rice):
        cart_service.add_item(cashier_user.id, rice.id, 1)
        order = sales_service.checkout(user=cashier_user, payment_method="cash", defer_payment=True)
        assert order.status == "pending"


class TestCheckoutExplicitItems:

    def test_items_override_cart(self, cashier_user, rice, apples):
        cart_service.add_item(cashier_user.id, apples.id, 1)
        order = sales_service.checkout(
            user=cashier_user,
            payment_method="cash",
            items=[{"product_id": rice.id, "quantity": 3}],
        )
        assert [item.product_id for item in order.items] == [rice.id]

    def test_weight_kg_converted_for_gram_products(self, cashier_user, cheese):
        order = sales_service.checkout(
            user=cashier_user,
            payment_method="cash",
            items=[{"product_id": cheese.id, "weight_kg": 0.5}],
        )
        assert order.items[0].quantity == 500
        assert order.subtotal_cents == 9000
        assert cheese.stock_quantity == 1500

    def test_repeated_product_lines_share_stock(self, cashier_user, rice):
        with pytest.raises(SaleError):
            sales_service.checkout(
                user=cashier_user,
                payment_method="cash",
                items=[
                    {"product_id": rice.id, "quantity": 30},
                    {"product_id": rice.id, "quantity": 30},
                ],
            )


# =============================================================================
# FAILURES
# =============================================================================


class TestCheckoutFailures:

    def test_empty_cart(self, cashier_user):
        with pytest.raises(SaleError) as exc:
            sales_service.checkout(user=cashier_user, payment_method="cash")
        assert str(exc.value) == "Carrito vacío"

    def test_unknown_payment_method(self, cashier_user, rice):
        cart_service.add_item(cashier_user.id, rice.id, 1)
        with pytest.raises(ValidationError):
            sales_service.checkout(user=cashier_user, payment_method="bitcoin")

    def test_total_mismatch(self, cashier_user, rice, db_session):
        cart_service.add_item(cashier_user.id, rice.id, 2)
        with pytest.raises(SaleError) as exc:
            sales_service.checkout(user=cashier_user, payment_method="cash", expected_total_cents=5000)
        assert exc.value.details["calculated_total_cents"] == 5100
        assert db_session.query(Order).count() == 0

    def test_total_within_tolerance(self, cashier_user, rice):
        cart_service.add_item(cashier_user.id, rice.id, 2)
        order = sales_service.checkout(user=cashier_user, payment_method="cash", expected_total_cents=5101)
        assert order.total_cents == 5100

    def test_discount_above_subtotal(self, cashier_user, rice):
        cart_service.add_item(cashier_user.id, rice.id, 1)
        with pytest.raises(SaleError):
            sales_service.checkout(user=cashier_user, payment_method="cash", discount_cents=3000)

    def test_stock_dropped_after_adding(self, cashier_user, rice, db_session):
        cart_service.add_item(cashier_user.id, rice.id, 10)
        rice.stock_quantity = 5
        db_session.commit()

        with pytest.raises(SaleError) as exc:
            sales_service.checkout(user=cashier_user, payment_method="cash")
        assert exc.value.details["available_quantity"] == 5

        # nothing written, cart intact
        assert db_session.query(Order).count() == 0
        assert db_session.get(Product, rice.id).stock_quantity == 5
        assert len(cart_service.get_cart(cashier_user.id)["items"]) == 1

    def test_deactivated_product(self, cashier_user, rice, db_session):
        cart_service.add_item(cashier_user.id, rice.id, 1)
        rice.is_active = False
        db_session.commit()

        with pytest.raises(NotFoundError):
            sales_service.checkout(user=cashier_user, payment_method="cash")


# =============================================================================
# PAYMENT CONFIRMATION
# =============================================================================


class TestProcessPayment:

    def _pending(self, user, product):
        cart_service.add_item(user.id, product.id, 2)
        return sales_service.checkout(user=user, payment_method="cash", defer_payment=True)

    def test_change_computed(self, cashier_user, rice):
        order = self._pending(cashier_user, rice)
        paid, change = sales_service.process_payment(
            order_id=order.id, payment_method="efectivo", amount_received_cents=6000, user=cashier_user,
        )
        assert change == 900
        assert paid.status == "completed"
        assert paid.change_cents == 900

    def test_insufficient_amount(self, cashier_user, rice):
        order = self._pending(cashier_user, rice)
        with pytest.raises(SaleError):
            sales_service.process_payment(
                order_id=order.id, payment_method="cash", amount_received_cents=5000, user=cashier_user,
            )

    def test_already_processed(self, cashier_user, rice):
        cart_service.add_item(cashier_user.id, rice.id, 1)
        order = sales_service.checkout(user=cashier_user, payment_method="cash")
        with pytest.raises(SaleError) as exc:
            sales_service.process_payment(
                order_id=order.id, payment_method="cash", amount_received_cents=10000, user=cashier_user,
            )
        assert str(exc.value) == "Esta venta ya fue procesada"

    def test_unknown_order(self, cashier_user):
        with pytest.raises(NotFoundError):
            sales_service.process_payment(
                order_id=9999, payment_method="cash", amount_received_cents=100, user=cashier_user,
            )


class TestListOrders:

    def test_newest_first_with_pagination(self, cashier_user, rice, app):
        for _ in range(3):
            cart_service.add_item(cashier_user.id, rice.id, 1)
            sales_service.checkout(user=cashier_user, payment_method="cash")

        result = sales_service.list_orders(page=1, limit=2)
        assert result["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        ids = [s["id"] for s in result["sales"]]
        assert ids == sorted(ids, reverse=True)

    def test_filter_by_cashier(self, cashier_user, admin_user, rice):
        cart_service.add_item(cashier_user.id, rice.id, 1)
        sales_service.checkout(user=cashier_user, payment_method="cash")
        cart_service.add_item(admin_user.id, rice.id, 1)
        sales_service.checkout(user=admin_user, payment_method="cash")

        result = sales_service.list_orders(cashier_id=admin_user.id)
        assert result["pagination"]["total"] == 1

    def test_bad_date(self):
        with pytest.raises(ValidationError):
            sales_service.list_orders(from_date="ayer")
