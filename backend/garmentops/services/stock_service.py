# Overview: Stock ledger; IN / OUT / ADJUST against products.stock_qty with history rows.

"""
Stock ledger rules:

- products.stock_qty is the authoritative on-hand count.
- IN adds, OUT withdraws (never below zero), ADJUST sets an absolute count.
- Every movement:
    1. reads the product row (SELECT ... FOR UPDATE where supported)
    2. computes the new quantity
    3. writes the product
    4. appends a StockTransaction row (best-effort, in a SAVEPOINT)
    5. writes an audit entry (best-effort, in a SAVEPOINT)
  then commits. A failed history or audit row is logged and the quantity
  change is kept.
- StockTransaction.quantity is the magnitude; quantity_before / quantity_after
  carry the direction.
- OUT and ADJUST may raise a low_stock notification when the new level is at
  or under min_stock (min_stock > 0 only).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..context import OperationContext
from ..extensions import db
from ..models import Order, Product, ProductionJob, StockTransaction
from ..validation import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    require_non_negative_int,
    require_positive_int,
)
from .audit_service import ProductStockSnapshot, audit_or_warn
from .concurrency import lock_for_update, run_with_retry
from .notification_service import notify_low_stock


TRANSACTION_TYPES = ("IN", "OUT", "ADJUST")

# Why stock left the shelf: regular use, factory defect, staff error, machine fault
REASON_CATEGORIES = ("normal", "factory", "human", "technical")


@dataclass
class StockMovementResult:
    product: Product
    quantity_before: int
    quantity_after: int
    transaction: Optional[StockTransaction] = None

    def to_dict(self) -> dict:
        return {
            "product": self.product.to_dict(),
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "transaction": self.transaction.to_dict() if self.transaction is not None else None,
        }


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _check_refs(*, ref_order_id: int | None = None, ref_job_id: int | None = None) -> None:
    if ref_order_id is not None and db.session.get(Order, ref_order_id) is None:
        raise NotFoundError("Referenced order not found")
    if ref_job_id is not None and db.session.get(ProductionJob, ref_job_id) is None:
        raise NotFoundError("Referenced production job not found")


def _build_transaction(**fields) -> StockTransaction:
    return StockTransaction(**fields)


def _write_history(**fields) -> StockTransaction | None:
    """Append the ledger row in a savepoint; failures are logged, not raised."""
    try:
        with db.session.begin_nested():
            tx = _build_transaction(**fields)
            db.session.add(tx)
    except SQLAlchemyError as exc:
        current_app.logger.warning(
            "Stock history write failed for product %s (%s): %s",
            fields.get("product_id"),
            fields.get("type"),
            exc,
        )
        return None
    return tx


def _apply_movement(
    ctx: OperationContext,
    product: Product,
    *,
    tx_type: str,
    new_qty: int,
    quantity: int,
    note: str | None = None,
    reason: str | None = None,
    reason_category: str | None = None,
    ref_order_id: int | None = None,
    ref_job_id: int | None = None,
) -> StockMovementResult:
    before = product.stock_qty
    product.stock_qty = new_qty
    db.session.flush()

    tx = _write_history(
        product_id=product.id,
        type=tx_type,
        quantity=quantity,
        quantity_before=before,
        quantity_after=new_qty,
        ref_order_id=ref_order_id,
        ref_job_id=ref_job_id,
        reason_category=reason_category,
        reason=reason,
        note=note,
        user_id=ctx.actor_user_id,
    )

    audit_or_warn(
        ctx,
        "update",
        product.id,
        old=ProductStockSnapshot(stock_qty=before),
        new=ProductStockSnapshot(
            stock_qty=new_qty,
            transaction_type=tx_type,
            quantity=quantity,
            note=note or reason,
        ),
    )

    if tx_type in ("OUT", "ADJUST"):
        notify_low_stock(product)

    return StockMovementResult(
        product=product,
        quantity_before=before,
        quantity_after=new_qty,
        transaction=tx,
    )


def stock_in(
    ctx: OperationContext,
    product_id: int,
    quantity: int,
    *,
    ref_order_id: int | None = None,
    note: str | None = None,
) -> StockMovementResult:
    """Receive stock: new = current + quantity."""
    require_positive_int(quantity, "quantity")

    def _op():
        _check_refs(ref_order_id=ref_order_id)
        product = _get_product(product_id, lock=True)
        result = _apply_movement(
            ctx,
            product,
            tx_type="IN",
            new_qty=product.stock_qty + quantity,
            quantity=quantity,
            note=note,
            ref_order_id=ref_order_id,
        )
        db.session.commit()
        return result

    return run_with_retry(_op)


def stock_out(
    ctx: OperationContext,
    product_id: int,
    quantity: int,
    *,
    ref_order_id: int | None = None,
    ref_job_id: int | None = None,
    reason: str | None = None,
    reason_category: str | None = None,
) -> StockMovementResult:
    """
    Withdraw stock. Raises InsufficientStockError (nothing written) when
    quantity exceeds the current stock.
    """
    require_positive_int(quantity, "quantity")
    if reason_category is not None and reason_category not in REASON_CATEGORIES:
        raise ValidationError(f"reason_category must be one of: {', '.join(REASON_CATEGORIES)}")

    def _op():
        _check_refs(ref_order_id=ref_order_id, ref_job_id=ref_job_id)
        product = _get_product(product_id, lock=True)
        current = product.stock_qty
        if quantity > current:
            raise InsufficientStockError(
                f"Insufficient stock for {product.sku}: requested {quantity}, on hand {current}",
                requested=quantity,
                available=current,
            )
        result = _apply_movement(
            ctx,
            product,
            tx_type="OUT",
            new_qty=current - quantity,
            quantity=quantity,
            reason=reason,
            reason_category=reason_category or "normal",
            ref_order_id=ref_order_id,
            ref_job_id=ref_job_id,
        )
        db.session.commit()
        return result

    return run_with_retry(_op)


def stock_adjust(
    ctx: OperationContext,
    product_id: int,
    new_quantity: int,
    *,
    reason: str | None = None,
) -> StockMovementResult:
    """Stock count correction: sets stock_qty to new_quantity."""
    require_non_negative_int(new_quantity, "new_quantity")

    def _op():
        product = _get_product(product_id, lock=True)
        current = product.stock_qty
        result = _apply_movement(
            ctx,
            product,
            tx_type="ADJUST",
            new_qty=new_quantity,
            quantity=abs(new_quantity - current),
            note=f"Adjusted from {current} to {new_quantity}",
            reason=reason,
        )
        db.session.commit()
        return result

    return run_with_retry(_op)


def list_transactions(
    *,
    product_id: int | None = None,
    type: str | None = None,
    limit: int = 100,
) -> list[StockTransaction]:
    limit = max(1, min(int(limit), 500))
    if type is not None and type not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(TRANSACTION_TYPES)}")

    q = StockTransaction.query
    if product_id is not None:
        q = q.filter(StockTransaction.product_id == product_id)
    if type is not None:
        q = q.filter(StockTransaction.type == type)
    return (
        q.order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .limit(limit)
        .all()
    )


def list_low_stock_products() -> list[Product]:
    """Active products with a threshold set and stock at or under it, emptiest first."""
    return (
        Product.query.filter(
            Product.is_active.is_(True),
            Product.min_stock > 0,
            Product.stock_qty <= Product.min_stock,
        )
        .order_by(Product.stock_qty.asc(), Product.sku.asc())
        .all()
    )
