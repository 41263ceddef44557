"""
Concurrency safeguards: cart creation races, optimistic locking on carts
and products, and the retry helper.

A competing request is simulated inside the test: the competing write is
committed, then the in-memory row is pointed back at the values it had
before, as if this request had read the row first.
"""

import pytest
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from economica.extensions import db
from economica.models import Cart, InventoryMovement, Order, Product
from economica.services import cart_service, sales_service
from economica.services.concurrency import run_with_retry
from economica.services.sales_service import SaleError
from economica.time_utils import utcnow
from conftest import reload


class TestRunWithRetry:

    def test_replays_after_stale_write(self, app):
        calls = []

        def op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("row changed")
            return "ok"

        assert run_with_retry(op, backoff_base=0) == "ok"
        assert len(calls) == 2

    def test_gives_up_after_attempts(self, app):
        calls = []

        def op():
            calls.append(1)
            raise StaleDataError("row changed")

        with pytest.raises(StaleDataError):
            run_with_retry(op, attempts=3, backoff_base=0)
        assert len(calls) == 3

    def test_business_errors_are_not_retried(self, app):
        calls = []

        def op():
            calls.append(1)
            raise SaleError("Carrito vacío")

        with pytest.raises(SaleError):
            run_with_retry(op, backoff_base=0)
        assert len(calls) == 1


class TestCartCreationRace:

    def test_loser_reads_winner_cart(self, customer_user, db_session, monkeypatch):
        winner = Cart(user_id=customer_user.id, items=[], updated_at=utcnow())
        db_session.add(winner)
        db_session.commit()
        winner_id = winner.id

        real_find = cart_service._find_cart
        lookups = []

        def find_missing_first(user_id):
            lookups.append(user_id)
            # the first lookup ran before the other request inserted its row
            if len(lookups) == 1:
                return None
            return real_find(user_id)

        monkeypatch.setattr(cart_service, "_find_cart", find_missing_first)

        cart = cart_service.ensure_cart(customer_user.id)

        assert cart.id == winner_id
        assert len(lookups) == 2
        assert db_session.query(Cart).filter_by(user_id=customer_user.id).count() == 1


class TestCartVersionConflict:

    def test_concurrent_line_is_kept(self, customer_user, rice, apples, monkeypatch):
        cart_service.add_item(customer_user.id, rice.id, 2)

        real_write = cart_service._write_items
        writes = []

        def write_after_competitor(cart, items):
            writes.append(items)
            if len(writes) == 1:
                stale_version = cart.version_id
                stale_items = list(cart.items)
                competitor_items = stale_items + [{
                    "product_id": apples.id,
                    "quantity": 1.0,
                    "unit_price_cents": 4590,
                    "subtotal_cents": 4590,
                }]
                carts = Cart.__table__
                db.session.execute(
                    carts.update()
                    .where(carts.c.id == cart.id)
                    .values(items=competitor_items, version_id=carts.c.version_id + 1)
                )
                db.session.commit()
                set_committed_value(cart, "version_id", stale_version)
                set_committed_value(cart, "items", stale_items)
                assert cart.user_id == customer_user.id
            return real_write(cart, items)

        monkeypatch.setattr(cart_service, "_write_items", write_after_competitor)

        cart = cart_service.add_item(customer_user.id, rice.id, 1)

        assert len(writes) == 2
        lines = {it["product_id"]: it["quantity"] for it in cart.items}
        assert lines == {rice.id: 3.0, apples.id: 1.0}
        assert reload(Cart, cart.id).version_id == 4


class TestCheckoutVersionConflict:

    def _race_on_first_validation(self, monkeypatch, competitor_stock):
        real_validate = sales_service.validate_lines
        rounds = []

        def validate_then_competitor_sells(source):
            lines = real_validate(source)
            rounds.append(len(lines))
            if len(rounds) == 1:
                product = lines[0].product
                stale_version = product.version_id
                stale_stock = product.stock_quantity
                products = Product.__table__
                db.session.execute(
                    products.update()
                    .where(products.c.id == product.id)
                    .values(stock_quantity=competitor_stock, version_id=products.c.version_id + 1)
                )
                db.session.commit()
                set_committed_value(product, "version_id", stale_version)
                set_committed_value(product, "stock_quantity", stale_stock)
                assert product.name
            return lines

        monkeypatch.setattr(sales_service, "validate_lines", validate_then_competitor_sells)
        return rounds

    def test_retry_decrements_fresh_stock(self, cashier_user, rice, db_session, monkeypatch):
        rounds = self._race_on_first_validation(monkeypatch, competitor_stock=48)

        order = sales_service.checkout(
            user=cashier_user,
            payment_method="cash",
            items=[{"product_id": rice.id, "quantity": 2}],
        )

        assert len(rounds) == 2
        assert order.total_cents == 5100
        assert reload(Product, rice.id).stock_quantity == 46
        movement = db_session.query(InventoryMovement).filter_by(type="SALE").one()
        assert movement.stock_after == 46

    def test_retry_revalidates_against_fresh_stock(self, cashier_user, rice, db_session, monkeypatch):
        self._race_on_first_validation(monkeypatch, competitor_stock=1)

        with pytest.raises(SaleError) as exc:
            sales_service.checkout(
                user=cashier_user,
                payment_method="cash",
                items=[{"product_id": rice.id, "quantity": 2}],
            )

        assert exc.value.details["available_quantity"] == 1
        assert reload(Product, rice.id).stock_quantity == 1
        assert db_session.query(Order).count() == 0
        assert db_session.query(InventoryMovement).count() == 0
