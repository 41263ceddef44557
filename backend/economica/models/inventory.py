from __future__ import annotations

from ..extensions import db
from economica.time_utils import to_utc_z

# Quantities and stock can be fractional for products sold by weight
Quantity = db.Numeric(12, 3, asdecimal=False)


class Product(db.Model):
    """
    Product master data, including the live stock level.

    UNITS:
    - pieza (and any other unit): discrete, whole quantities only
    - kg / litro: sold in 0.1 steps
    - gramo: sold in 100 g steps

    stock_quantity is authoritative; every change to it is mirrored by an
    InventoryMovement row. version_id guards concurrent decrements.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    unit = db.Column(db.String(16), nullable=False, default="pieza")
    sell_by_weight = db.Column(db.Boolean, nullable=False, default=False)

    stock_quantity = db.Column(Quantity, nullable=False, default=0)

    # Optional ceiling for a single cart line (e.g. 10 kg)
    max_quantity = db.Column(Quantity, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "unit": self.unit,
            "sell_by_weight": self.sell_by_weight,
            "stock_quantity": self.stock_quantity,
            "max_quantity": self.max_quantity,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock movement.

    TYPES:
    - SALE: negative delta written by checkout
    - REFUND: positive delta written by refunds
    - ADJUST: manual correction (either sign)
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_invmov_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(Quantity, nullable=False)
    stock_after = db.Column(Quantity, nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    refund_id = db.Column(db.Integer, db.ForeignKey("refunds.id"), nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "order_id": self.order_id,
            "refund_id": self.refund_id,
            "user_id": self.user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
