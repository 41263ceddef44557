"""
Stock checks, movements and manual adjustments.
"""

import pytest

from economica.models import AuditLog, InventoryMovement
from economica.services.stock_service import (
    REASON_INSUFFICIENT,
    REASON_OUT_OF_STOCK,
    StockError,
    adjust_stock,
    check_stock,
    list_movements,
)
from economica.validation import NotFoundError


class TestCheckStock:

    def test_enough_stock(self, rice):
        check = check_stock(rice, 2)
        assert check.has_stock is True
        assert check.available_quantity == 50

    def test_exact_stock_is_enough(self, rice):
        assert check_stock(rice, 50).has_stock is True

    def test_out_of_stock(self, sold_out):
        check = check_stock(sold_out, 1)
        assert check.has_stock is False
        assert check.reason == REASON_OUT_OF_STOCK
        assert check.available_quantity == 0.0
        assert check.message == "Producto agotado"

    def test_inactive_product_reads_as_out_of_stock(self, rice, db_session):
        rice.is_active = False
        db_session.commit()
        assert check_stock(rice, 1).reason == REASON_OUT_OF_STOCK

    def test_held_quantity_counts(self, rice):
        check = check_stock(rice, 5, held=48)
        assert check.has_stock is False
        assert check.reason == REASON_INSUFFICIENT
        assert check.available_quantity == 2

    def test_fractional_sum_does_not_overshoot(self, apples, db_session):
        apples.stock_quantity = 0.3
        db_session.commit()
        assert check_stock(apples, 0.2, held=0.1).has_stock is True


class TestAdjustStock:

    def test_positive_adjustment(self, rice, admin_user):
        movement = adjust_stock(rice.id, 10, user_id=admin_user.id, note="Recepción")
        assert movement.type == "ADJUST"
        assert movement.quantity_delta == 10
        assert movement.stock_after == 60
        assert rice.stock_quantity == 60

    def test_negative_adjustment(self, apples, admin_user):
        adjust_stock(apples.id, -2.5, user_id=admin_user.id, note="Merma")
        assert apples.stock_quantity == 7.5

    def test_cannot_go_negative(self, rice, admin_user):
        with pytest.raises(StockError):
            adjust_stock(rice.id, -51, user_id=admin_user.id)
        assert rice.stock_quantity == 50

    def test_unknown_product(self, admin_user):
        with pytest.raises(NotFoundError):
            adjust_stock(9999, 1, user_id=admin_user.id)

    def test_writes_audit_entry(self, rice, admin_user, db_session):
        adjust_stock(rice.id, 1, user_id=admin_user.id)
        entry = db_session.query(AuditLog).filter_by(action="stock_adjusted").one()
        assert entry.record_id == rice.id
        assert entry.user_id == admin_user.id

    def test_movements_newest_first(self, rice, admin_user):
        adjust_stock(rice.id, 1, user_id=admin_user.id, note="primero")
        adjust_stock(rice.id, 2, user_id=admin_user.id, note="segundo")
        movements = list_movements(rice.id)
        assert [m.note for m in movements] == ["segundo", "primero"]
        assert all(isinstance(m, InventoryMovement) for m in movements)
