# Overview: Audit trail writer and reader; typed before/after snapshots per entity.

"""
Audit rules:
- One AuditLog row per successful mutation, written after the primary write.
- old / new snapshots are typed per entity; both sides of a diff must be the
  same snapshot class.
- The row is written inside a SAVEPOINT. A failing audit write is reported
  through AuditResult and never rolls back the primary mutation.
- Audit rows are append-only: nothing in the service layer updates or deletes them.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import ClassVar, Optional, Union

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from ..context import OperationContext
from ..extensions import db
from ..models import AuditLog
from ..time_utils import parse_iso_datetime, to_cursor_timestamp, to_iso_date
from ..validation import ValidationError


AUDIT_ACTIONS = ("create", "update", "delete")


@dataclass(frozen=True)
class ProductStockSnapshot:
    """Stock level of a product, plus the movement that produced it (new side only)."""
    entity_type: ClassVar[str] = "product"

    stock_qty: int
    transaction_type: Optional[str] = None
    quantity: Optional[int] = None
    note: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class ProductSnapshot:
    entity_type: ClassVar[str] = "product"

    sku: str
    name: str
    category: Optional[str]
    cost_price_cents: int
    sale_price_cents: int
    min_stock: int
    is_active: bool

    @classmethod
    def from_model(cls, product) -> "ProductSnapshot":
        return cls(
            sku=product.sku,
            name=product.name,
            category=product.category,
            cost_price_cents=product.cost_price_cents,
            sale_price_cents=product.sale_price_cents,
            min_stock=product.min_stock,
            is_active=product.is_active,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReservationSnapshot:
    entity_type: ClassVar[str] = "reservation"

    job_id: int
    product_id: int
    quantity: int
    status: str

    @classmethod
    def from_model(cls, reservation) -> "ReservationSnapshot":
        return cls(
            job_id=reservation.job_id,
            product_id=reservation.product_id,
            quantity=reservation.quantity,
            status=reservation.status,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class JobSnapshot:
    entity_type: ClassVar[str] = "production_job"

    job_number: str
    status: str
    progress: int
    priority: int
    ordered_qty: int
    produced_qty: int
    passed_qty: int
    failed_qty: int
    unit_price_cents: int
    total_price_cents: int
    assigned_to: Optional[int]
    description: Optional[str]
    due_date: Optional[str]
    qc_status: Optional[str]
    rework_count: int

    @classmethod
    def from_model(cls, job) -> "JobSnapshot":
        return cls(
            job_number=job.job_number,
            status=job.status,
            progress=job.progress,
            priority=job.priority,
            ordered_qty=job.ordered_qty,
            produced_qty=job.produced_qty or 0,
            passed_qty=job.passed_qty or 0,
            failed_qty=job.failed_qty or 0,
            unit_price_cents=job.unit_price_cents or 0,
            total_price_cents=job.total_price_cents or 0,
            assigned_to=job.assigned_to,
            description=job.description,
            due_date=to_iso_date(job.due_date),
            qc_status=job.qc_status,
            rework_count=job.rework_count or 0,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CustomerSnapshot:
    entity_type: ClassVar[str] = "customer"

    code: str
    name: str
    type: str
    email: Optional[str]
    phone: Optional[str]
    payment_terms: str
    tier: str
    status: str
    credit_limit_cents: int
    total_orders: int
    total_spent_cents: int

    @classmethod
    def from_model(cls, customer) -> "CustomerSnapshot":
        return cls(
            code=customer.code,
            name=customer.name,
            type=customer.type,
            email=customer.email,
            phone=customer.phone,
            payment_terms=customer.payment_terms,
            tier=customer.tier,
            status=customer.status,
            credit_limit_cents=customer.credit_limit_cents or 0,
            total_orders=customer.total_orders or 0,
            total_spent_cents=customer.total_spent_cents or 0,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class OrderSnapshot:
    entity_type: ClassVar[str] = "order"

    order_number: str
    customer_id: Optional[int]
    status: str
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    item_count: int

    @classmethod
    def from_model(cls, order) -> "OrderSnapshot":
        return cls(
            order_number=order.order_number,
            customer_id=order.customer_id,
            status=order.status,
            subtotal_cents=order.subtotal_cents or 0,
            discount_cents=order.discount_cents or 0,
            total_cents=order.total_cents or 0,
            item_count=len(order.items),
        )

    def to_dict(self) -> dict:
        return asdict(self)


Snapshot = Union[
    ProductStockSnapshot,
    ProductSnapshot,
    ReservationSnapshot,
    JobSnapshot,
    CustomerSnapshot,
    OrderSnapshot,
]


@dataclass
class AuditResult:
    ok: bool
    entry: Optional[AuditLog] = None
    error: Optional[str] = None


def _build_entry(
    ctx: OperationContext,
    action: str,
    entity_type: str,
    entity_id: int | None,
    old: Snapshot | None,
    new: Snapshot | None,
) -> AuditLog:
    return AuditLog(
        user_id=ctx.actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_data=json.dumps(old.to_dict(), sort_keys=True) if old is not None else None,
        new_data=json.dumps(new.to_dict(), sort_keys=True) if new is not None else None,
        ip_address=ctx.ip_address,
        user_agent=(ctx.user_agent or "")[:255] or None,
    )


def record_audit(
    ctx: OperationContext,
    action: str,
    entity_id: int | None,
    old: Snapshot | None = None,
    new: Snapshot | None = None,
) -> AuditResult:
    """
    Write one audit row in a savepoint.

    Programming errors (unknown action, missing or mismatched snapshots) raise
    ValidationError. Database failures are returned as AuditResult(ok=False);
    the caller's transaction is left intact.
    """
    if action not in AUDIT_ACTIONS:
        raise ValidationError(f"Invalid audit action '{action}'")
    if old is None and new is None:
        raise ValidationError("Audit entry needs an old or new snapshot")
    if old is not None and new is not None and type(old) is not type(new):
        raise ValidationError(
            f"Snapshot type mismatch: {type(old).__name__} vs {type(new).__name__}"
        )

    entity_type = (new or old).entity_type

    try:
        with db.session.begin_nested():
            entry = _build_entry(ctx, action, entity_type, entity_id, old, new)
            db.session.add(entry)
    except SQLAlchemyError as exc:
        return AuditResult(ok=False, error=str(exc))

    return AuditResult(ok=True, entry=entry)


def audit_or_warn(
    ctx: OperationContext,
    action: str,
    entity_id: int | None,
    old: Snapshot | None = None,
    new: Snapshot | None = None,
) -> AuditResult:
    """record_audit for service callers: a failed write is logged and the mutation continues."""
    result = record_audit(ctx, action, entity_id, old=old, new=new)
    if not result.ok:
        current_app.logger.warning(
            "Audit write failed for %s %s #%s: %s",
            action,
            (new or old).entity_type,
            entity_id,
            result.error,
        )
    return result


def diff_snapshots(old: Snapshot | None, new: Snapshot | None) -> dict:
    """
    Changed keys only: {field: {"old": ..., "new": ...}}.

    A missing side is treated as an empty snapshot.
    """
    if old is not None and new is not None and type(old) is not type(new):
        raise ValidationError("Cannot diff snapshots of different entity types")

    before = old.to_dict() if old is not None else {}
    after = new.to_dict() if new is not None else {}

    changes = {}
    for key in sorted(set(before) | set(after)):
        if before.get(key) != after.get(key):
            changes[key] = {"old": before.get(key), "new": after.get(key)}
    return changes


def parse_cursor(raw: str | None) -> tuple[datetime, int] | None:
    """Cursor format: <ISO-8601>|<id> (as produced by list_audit_logs)."""
    if not raw:
        return None
    try:
        ts_raw, id_raw = raw.split("|", 1)
        ts = parse_iso_datetime(ts_raw)
        row_id = int(id_raw)
    except ValueError:
        raise ValidationError("cursor must be in format <ISO-8601>|<id>")
    if ts is None:
        raise ValidationError("cursor must be in format <ISO-8601>|<id>")
    return ts, row_id


def list_audit_logs(
    *,
    action: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    user_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = 100,
    cursor: str | None = None,
) -> tuple[list[AuditLog], str | None]:
    """
    Newest-first audit rows with keyset pagination.

    Returns (rows, next_cursor). next_cursor is None when the page is not full.
    """
    limit = max(1, min(int(limit), 500))

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == entity_id)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    if date_from is not None:
        q = q.filter(AuditLog.created_at >= date_from)
    if date_to is not None:
        q = q.filter(AuditLog.created_at <= date_to)

    parsed = parse_cursor(cursor)
    if parsed is not None:
        cursor_dt, cursor_id = parsed
        q = q.filter(
            or_(
                AuditLog.created_at < cursor_dt,
                and_(AuditLog.created_at == cursor_dt, AuditLog.id < cursor_id),
            )
        )

    rows = (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )

    next_cursor = None
    if len(rows) == limit:
        last = rows[-1]
        next_cursor = f"{to_cursor_timestamp(last.created_at)}|{last.id}"

    return rows, next_cursor
