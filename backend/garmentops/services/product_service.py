# backend/garmentops/services/product_service.py
"""
Product master data.

stock_qty is only ever set here at creation (opening stock); every later
change goes through stock_service so it leaves a ledger row.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..context import OperationContext
from ..extensions import db
from ..models import Product
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_product,
    validate_payload,
)
from .audit_service import ProductSnapshot, audit_or_warn

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "category",
        "model",
        "color",
        "size",
        "cost_price_cents",
        "sale_price_cents",
        "stock_qty",
        "min_stock",
        "is_active",
    },
    required_on_create={"sku", "name"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock_qty"},
)


def _get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def get_product(product_id: int) -> Product:
    return _get_product(product_id)


def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SKU already exists: {sku}")


def create_product(ctx: OperationContext, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _ensure_sku_free(patch["sku"])

    product = Product(**patch)
    db.session.add(product)
    db.session.flush()

    audit_or_warn(ctx, "create", product.id, new=ProductSnapshot.from_model(product))
    db.session.commit()
    return product


def update_product(ctx: OperationContext, product_id: int, payload: dict) -> Product:
    product = _get_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)
    if not patch:
        return product
    if "sku" in patch and patch["sku"] != product.sku:
        _ensure_sku_free(patch["sku"], exclude_id=product.id)

    before = ProductSnapshot.from_model(product)
    for k, v in patch.items():
        setattr(product, k, v)
    db.session.flush()

    audit_or_warn(ctx, "update", product.id, old=before, new=ProductSnapshot.from_model(product))
    db.session.commit()
    return product


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    include_inactive: bool = False,
) -> list[Product]:
    q = Product.query
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.sku.ilike(like), Product.name.ilike(like)))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()
