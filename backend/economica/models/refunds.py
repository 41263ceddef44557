from __future__ import annotations

from ..extensions import db
from economica.time_utils import to_utc_z


class Refund(db.Model):
    """
    Refund against an existing order.

    Several refunds may point at the same order (partial refunds). What has
    already been refunded is reconstructed from refund_items.
    """
    __tablename__ = "refunds"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    original_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    refund_amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    original_order = db.relationship("Order", backref=db.backref("refunds", lazy=True))

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "original_order_id": self.original_order_id,
            "processed_by_user_id": self.processed_by_user_id,
            "reason": self.reason,
            "refund_amount_cents": self.refund_amount_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class RefundItem(db.Model):
    __tablename__ = "refund_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    refund_id = db.Column(db.Integer, db.ForeignKey("refunds.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 3, asdecimal=False), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    refund = db.relationship(
        "Refund",
        backref=db.backref("items", lazy=True, order_by="RefundItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "refund_id": self.refund_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
