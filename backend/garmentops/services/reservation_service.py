# Overview: Stock reservations against production jobs and availability queries.

"""
Reservation rules:
- available(product) = products.stock_qty - SUM(quantity of rows in 'reserved').
- Reserving never changes stock_qty; it only lowers availability.
- Completed and cancelled jobs cannot take new reservations.
- Row lifecycle: reserved -> used | released. Rows in used / released are final.
- Batch reservation is sequential and best-effort: each row commits on its
  own, the batch stops at the first failure, and earlier rows are kept.
  The result lists what was created and what failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func

from ..context import OperationContext
from ..extensions import db
from ..models import Product, ProductionJob, StockReservation
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    require_positive_int,
)
from .audit_service import ReservationSnapshot, audit_or_warn
from .concurrency import lock_for_update
from . import production_service


RESERVATION_STATUSES = ("reserved", "used", "released")


class ReservationStateError(ConflictError):
    """Release / use attempted on a reservation that is no longer 'reserved'."""


@dataclass
class BatchFailure:
    index: int
    product_id: int | None
    error: str

    def to_dict(self) -> dict:
        return {"index": self.index, "product_id": self.product_id, "error": self.error}


@dataclass
class BatchReservationResult:
    created: list[StockReservation] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)
    job_status: str | None = None

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "created": [r.to_dict() for r in self.created],
            "failed": [f.to_dict() for f in self.failed],
            "job_status": self.job_status,
        }


def get_reserved_quantity(product_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(StockReservation.quantity), 0))
        .filter(
            StockReservation.product_id == product_id,
            StockReservation.status == "reserved",
        )
        .scalar()
    )
    return int(total or 0)


def get_available_quantity(product_id: int) -> int:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product.stock_qty - get_reserved_quantity(product_id)


def get_availability_summary(*, include_inactive: bool = False) -> list[dict]:
    """Per product: stock_qty, reserved_qty, available_qty (one grouped query)."""
    reserved_sq = (
        db.session.query(
            StockReservation.product_id.label("product_id"),
            func.sum(StockReservation.quantity).label("reserved_qty"),
        )
        .filter(StockReservation.status == "reserved")
        .group_by(StockReservation.product_id)
        .subquery()
    )

    q = db.session.query(
        Product,
        func.coalesce(reserved_sq.c.reserved_qty, 0),
    ).outerjoin(reserved_sq, reserved_sq.c.product_id == Product.id)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))

    summary = []
    for product, reserved in q.order_by(Product.sku.asc()).all():
        reserved = int(reserved or 0)
        summary.append({
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "stock_qty": product.stock_qty,
            "reserved_qty": reserved,
            "available_qty": product.stock_qty - reserved,
        })
    return summary


def _get_open_job(job_id: int) -> ProductionJob:
    job = db.session.get(ProductionJob, job_id)
    if job is None:
        raise NotFoundError("Production job not found")
    if job.status in production_service.TERMINAL_STATUSES:
        raise production_service.InvalidTransitionError(
            f"Job is {job.status}; stock can no longer be reserved for it"
        )
    return job


def create_reservation(
    ctx: OperationContext,
    job_id: int,
    product_id: int,
    quantity: int,
) -> StockReservation:
    """
    Reserve quantity of a product for a job.

    Raises InsufficientStockError (no row written) when quantity exceeds
    what is currently available. Completed and cancelled jobs take no
    new reservations.
    """
    require_positive_int(quantity, "quantity")

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("Product not found")
    _get_open_job(job_id)

    available = product.stock_qty - get_reserved_quantity(product_id)
    if quantity > available:
        raise InsufficientStockError(
            f"Insufficient stock for {product.sku}: requested {quantity}, available {available}",
            requested=quantity,
            available=available,
        )

    reservation = StockReservation(
        job_id=job_id,
        product_id=product_id,
        quantity=quantity,
        status="reserved",
        reserved_by=ctx.actor_user_id,
    )
    db.session.add(reservation)
    db.session.flush()

    audit_or_warn(ctx, "create", reservation.id, new=ReservationSnapshot.from_model(reservation))

    db.session.commit()
    return reservation


def _get_open_reservation(reservation_id: int) -> StockReservation:
    reservation = lock_for_update(
        db.session.query(StockReservation).filter_by(id=reservation_id)
    ).first()
    if reservation is None:
        raise NotFoundError("Reservation not found")
    if reservation.status != "reserved":
        raise ReservationStateError(f"Reservation is already {reservation.status}")
    return reservation


def release_reservation(ctx: OperationContext, reservation_id: int) -> StockReservation:
    """Give reserved quantity back to availability."""
    reservation = _get_open_reservation(reservation_id)
    before = ReservationSnapshot.from_model(reservation)

    reservation.status = "released"
    reservation.released_at = utcnow()
    db.session.flush()

    audit_or_warn(ctx, "update", reservation.id, old=before, new=ReservationSnapshot.from_model(reservation))
    db.session.commit()
    return reservation


def mark_used(ctx: OperationContext, reservation_id: int) -> StockReservation:
    """
    Mark reserved stock as consumed by the job.

    Does not touch stock_qty; the physical withdrawal is a separate stock OUT.
    """
    reservation = _get_open_reservation(reservation_id)
    before = ReservationSnapshot.from_model(reservation)

    reservation.status = "used"
    reservation.used_at = utcnow()
    db.session.flush()

    audit_or_warn(ctx, "update", reservation.id, old=before, new=ReservationSnapshot.from_model(reservation))
    db.session.commit()
    return reservation


def reserve_for_job(ctx: OperationContext, job_id: int, items) -> BatchReservationResult:
    """
    Reserve several products for one job, in order.

    items: [{"product_id": int, "quantity": int}, ...]

    Stops at the first failing item. Rows created before the failure stay.
    When anything was reserved and the job is still pending, the job moves
    to 'reserved'.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    _get_open_job(job_id)

    result = BatchReservationResult()
    for index, item in enumerate(items):
        product_id = item.get("product_id") if isinstance(item, dict) else None
        try:
            if not isinstance(item, dict):
                raise ValidationError(f"items[{index}] must be an object")
            reservation = create_reservation(ctx, job_id, product_id, item.get("quantity"))
        except (ValidationError, NotFoundError, ConflictError) as exc:
            db.session.rollback()
            result.failed.append(BatchFailure(index=index, product_id=product_id, error=str(exc)))
            break
        result.created.append(reservation)

    job = db.session.get(ProductionJob, job_id)
    if result.created and job.status == "pending":
        production_service.update_job_status(
            ctx,
            job_id,
            "reserved",
            note=f"Reserved {len(result.created)} item(s)",
        )
    result.job_status = job.status
    return result


def list_reservations(
    *,
    job_id: int | None = None,
    product_id: int | None = None,
    status: str | None = None,
) -> list[StockReservation]:
    q = StockReservation.query
    if job_id is not None:
        q = q.filter(StockReservation.job_id == job_id)
    if product_id is not None:
        q = q.filter(StockReservation.product_id == product_id)
    if status is not None:
        if status not in RESERVATION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(RESERVATION_STATUSES)}")
        q = q.filter(StockReservation.status == status)
    return q.order_by(StockReservation.reserved_at.desc(), StockReservation.id.desc()).all()
