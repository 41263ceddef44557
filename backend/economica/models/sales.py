from __future__ import annotations

from ..extensions import db
from economica.time_utils import to_utc_z


class Order(db.Model):
    """
    Sale/order document. Immutable once completed.

    Totals are stored in cents and satisfy
    total_cents == subtotal_cents - discount_cents + tax_cents.

    STATUS:
    - completed: paid at checkout
    - pending: checkout with deferred payment; confirmed via process_payment
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_store_created", "store_id", "created_at"),
        db.Index("ix_orders_cashier_created", "cashier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    customer_id = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    payment_method = db.Column(db.String(16), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    # Set when payment is confirmed (cash over-tender)
    amount_received_cents = db.Column(db.Integer, nullable=True)
    change_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    store = db.relationship("Store", backref=db.backref("orders", lazy=True))
    cashier = db.relationship("User", backref=db.backref("orders", lazy=True))

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "customer_id": self.customer_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "amount_received_cents": self.amount_received_cents,
            "change_cents": self.change_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Snapshot line of an order (name, unit and price as sold)."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Numeric(12, 3, asdecimal=False), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship(
        "Order",
        backref=db.backref("items", lazy=True, order_by="OrderItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit": self.unit,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_cents": self.total_cents,
        }
