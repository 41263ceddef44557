# backend/economica/services/products_service.py
"""
Products Service

Catalog CRUD. Stock is set once at creation (logged as an ADJUST
movement) and afterwards only changes through checkout, refunds and
stock_service.adjust_stock.
"""
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError
from .audit_service import log_action
from .concurrency import run_with_retry
from .stock_service import record_movement

PRODUCT_MUTABLE_FIELDS = {
    "sku", "barcode", "name", "description", "price_cents", "unit",
    "sell_by_weight", "max_quantity", "is_active", "store_id",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(
    *,
    q: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Catalog listing, ordered by name.

    If page is None, returns all items.
    """
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like), Product.barcode == q.strip()))
    query = query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = query.all()
        return {"items": [p.to_dict() for p in products], "count": len(products)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)
    total = query.count()
    products = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page if total else 0,
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Producto no encontrado")
    return product


def create_product(patch: dict, user_id: int | None = None) -> Product:
    stock = float(patch.pop("stock_quantity", 0) or 0)

    product = Product(stock_quantity=0)
    apply_product_patch(product, patch)
    db.session.add(product)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU or barcode already exists")

    if stock > 0:
        record_movement(
            product,
            movement_type="ADJUST",
            delta=stock,
            user_id=user_id,
            note="Stock inicial",
        )

    log_action(
        user_id=user_id,
        action="product_created",
        table_name="products",
        record_id=product.id,
        details={"sku": product.sku, "stock_quantity": product.stock_quantity},
    )
    db.session.commit()
    return product


def update_product(product_id: int, patch: dict) -> Product:
    def _op():
        product = get_product(product_id)
        apply_product_patch(product, patch)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("SKU or barcode already exists")
        return product

    return run_with_retry(_op)
