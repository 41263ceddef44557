"""
Cart store: add/update/remove, quantity rules and stock holds.
"""

import pytest

from economica.models import Cart
from economica.services import cart_service
from economica.services.cart_service import CartError
from economica.validation import NotFoundError


class TestEnsureCart:

    def test_creates_once(self, customer_user, db_session):
        first = cart_service.ensure_cart(customer_user.id)
        second = cart_service.ensure_cart(customer_user.id)
        assert first.id == second.id
        assert db_session.query(Cart).filter_by(user_id=customer_user.id).count() == 1

    def test_empty_cart_payload(self, customer_user):
        payload = cart_service.get_cart(customer_user.id)
        assert payload["items"] == []
        assert payload["summary"] == {
            "total_items": 0,
            "subtotal_cents": 0,
            "tax_cents": 0,
            "total_cents": 0,
        }


class TestScan:

    def test_by_barcode(self, rice):
        assert cart_service.scan_product(barcode="7501000000011").id == rice.id

    def test_by_sku(self, rice):
        assert cart_service.scan_product(sku="ARZ-1KG").id == rice.id

    def test_unknown_code(self, rice):
        with pytest.raises(NotFoundError):
            cart_service.scan_product(barcode="0000")

    def test_no_stock(self, sold_out):
        with pytest.raises(CartError) as exc:
            cart_service.scan_product(barcode=sold_out.barcode)
        assert str(exc.value) == "Producto sin stock disponible"


class TestAddItem:

    def test_adds_line_with_subtotal(self, customer_user, rice):
        cart = cart_service.add_item(customer_user.id, rice.id, 2)
        assert cart.items == [{
            "product_id": rice.id,
            "quantity": 2.0,
            "unit_price_cents": 2550,
            "subtotal_cents": 5100,
        }]

    def test_adding_again_is_additive(self, customer_user, rice):
        cart_service.add_item(customer_user.id, rice.id, 2)
        cart = cart_service.add_item(customer_user.id, rice.id, 3)
        assert len(cart.items) == 1
        assert cart.items[0]["quantity"] == 5
        assert cart.items[0]["subtotal_cents"] == 12750

    def test_weight_line(self, customer_user, apples):
        cart = cart_service.add_item(customer_user.id, apples.id, 1.5)
        assert cart.items[0]["quantity"] == 1.5
        assert cart.items[0]["subtotal_cents"] == 6885

    def test_misaligned_weight_rejected_with_suggestion(self, customer_user, apples):
        with pytest.raises(CartError) as exc:
            cart_service.add_item(customer_user.id, apples.id, 0.15)
        assert exc.value.details["adjusted_quantity"] == 0.1
        assert str(exc.value) == "Cantidad ajustada a: 100g"

    def test_fractional_piece_rejected(self, customer_user, rice):
        with pytest.raises(CartError):
            cart_service.add_item(customer_user.id, rice.id, 1.5)

    def test_line_total_respects_max_quantity(self, customer_user, apples):
        cart_service.add_item(customer_user.id, apples.id, 4)

        with pytest.raises(CartError) as exc:
            cart_service.add_item(customer_user.id, apples.id, 4)
        assert str(exc.value) == "Cantidad máxima: 5kg"
        assert exc.value.details["adjusted_quantity"] == 1.0
        assert exc.value.details["line_quantity"] == 4.0

        cart = cart_service.add_item(customer_user.id, apples.id, 1)
        assert cart.items[0]["quantity"] == 5.0

    def test_stock_counts_what_cart_holds(self, customer_user, rice):
        cart_service.add_item(customer_user.id, rice.id, 48)
        with pytest.raises(CartError) as exc:
            cart_service.add_item(customer_user.id, rice.id, 5)
        assert exc.value.details["available_quantity"] == 2
        assert exc.value.details["available_stock"] == 50

    def test_small_stock_partially_held(self, customer_user, rice, db_session):
        rice.stock_quantity = 3
        db_session.commit()
        cart_service.add_item(customer_user.id, rice.id, 2)

        with pytest.raises(CartError) as exc:
            cart_service.add_item(customer_user.id, rice.id, 2)
        assert exc.value.details["available_quantity"] == 1

    def test_summary_matches_line_subtotals(self, customer_user, rice, apples, cheese):
        cart_service.add_item(customer_user.id, rice.id, 3)
        cart_service.add_item(customer_user.id, apples.id, 1.2)
        cart_service.add_item(customer_user.id, cheese.id, 400)

        payload = cart_service.get_cart(customer_user.id)
        assert payload["summary"]["subtotal_cents"] == sum(it["subtotal_cents"] for it in payload["items"])

    def test_out_of_stock(self, customer_user, sold_out):
        with pytest.raises(CartError) as exc:
            cart_service.add_item(customer_user.id, sold_out.id, 1)
        assert exc.value.details["reason"] == "out_of_stock"

    def test_unknown_product(self, customer_user):
        with pytest.raises(NotFoundError):
            cart_service.add_item(customer_user.id, 9999, 1)

    def test_unit_price_override(self, customer_user, rice):
        cart = cart_service.add_item(customer_user.id, rice.id, 2, unit_price_cents=2000)
        assert cart.items[0]["subtotal_cents"] == 4000

    def test_summary(self, customer_user, rice, apples):
        cart_service.add_item(customer_user.id, rice.id, 2)
        cart_service.add_item(customer_user.id, apples.id, 0.5)
        summary = cart_service.get_cart(customer_user.id)["summary"]
        assert summary["total_items"] == 2.5
        assert summary["subtotal_cents"] == 5100 + 2295
        assert summary["total_cents"] == summary["subtotal_cents"]


class TestUpdateRemoveClear:

    def test_update_replaces_quantity(self, customer_user, rice):
        cart_service.add_item(customer_user.id, rice.id, 2)
        cart = cart_service.update_item(customer_user.id, rice.id, 5)
        assert cart.items[0]["quantity"] == 5
        assert cart.items[0]["subtotal_cents"] == 12750

    def test_update_checks_new_total_only(self, customer_user, rice):
        cart_service.add_item(customer_user.id, rice.id, 40)
        cart = cart_service.update_item(customer_user.id, rice.id, 50)
        assert cart.items[0]["quantity"] == 50

    def test_update_missing_line(self, customer_user, rice):
        with pytest.raises(NotFoundError):
            cart_service.update_item(customer_user.id, rice.id, 1)

    def test_update_over_stock(self, customer_user, rice):
        cart_service.add_item(customer_user.id, rice.id, 1)
        with pytest.raises(CartError):
            cart_service.update_item(customer_user.id, rice.id, 51)

    def test_remove(self, customer_user, rice, apples):
        cart_service.add_item(customer_user.id, rice.id, 1)
        cart_service.add_item(customer_user.id, apples.id, 1)
        cart = cart_service.remove_item(customer_user.id, rice.id)
        assert [it["product_id"] for it in cart.items] == [apples.id]

    def test_clear_keeps_cart_row(self, customer_user, rice):
        before = cart_service.add_item(customer_user.id, rice.id, 1)
        cart = cart_service.clear_cart(customer_user.id)
        assert cart.items == []
        assert cart.id == before.id
