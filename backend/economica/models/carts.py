from __future__ import annotations

from ..extensions import db
from economica.time_utils import to_utc_z


class Cart(db.Model):
    """
    Per-user shopping cart.

    items is a JSON list of
    {"product_id", "quantity", "unit_price_cents", "subtotal_cents"}.
    The list is always replaced wholesale (never mutated in place), and
    version_id turns a lost update into a StaleDataError.
    """
    __tablename__ = "carts"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_carts_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    items = db.Column(db.JSON, nullable=False, default=list)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("cart", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "items": list(self.items or []),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
