# Overview: Order intake; totals, order status workflow, and jobs spawned from orders.

"""
Order rules:
- line_total = quantity * unit_price; subtotal = sum(line_total);
  total = max(0, subtotal - discount). Money is in satang.
- Status workflow:
      draft -> confirmed | cancelled
      confirmed -> in_production | cancelled
      in_production -> completed | cancelled
  completed and cancelled are terminal.
- Completing an order adds it to the customer's totals and re-derives tier.
"""

from __future__ import annotations

from flask import current_app

from ..context import OperationContext
from ..extensions import db
from ..models import Customer, Order, OrderItem, Product, ProductionJob
from ..time_utils import parse_iso_date
from ..validation import (
    MAX_PRICE_CENTS,
    NotFoundError,
    ValidationError,
    require_non_negative_int,
    require_positive_int,
)
from .audit_service import OrderSnapshot, audit_or_warn
from .customer_service import record_completed_order
from .document_service import next_document_number
from .notification_service import notify_new_order
from . import production_service


ORDER_STATUSES = ("draft", "confirmed", "in_production", "completed", "cancelled")

ORDER_TRANSITIONS = {
    "draft": ("confirmed", "cancelled"),
    "confirmed": ("in_production", "cancelled"),
    "in_production": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}


class OrderStatusError(ValueError):
    """Order status move not allowed by ORDER_TRANSITIONS."""


def _get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order(order_id: int) -> Order:
    return _get_order(order_id)


def _normalize_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{idx}] must be an object")

        product_id = item.get("product_id")
        product = None
        if product_id is not None:
            product = db.session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f"items[{idx}]: product not found")

        description = str(item.get("description") or (product.name if product else "")).strip()
        if not description:
            raise ValidationError(f"items[{idx}].description is required")

        quantity = require_positive_int(item.get("quantity"), f"items[{idx}].quantity")
        unit_price = item.get("unit_price_cents")
        if unit_price is None and product is not None:
            unit_price = product.sale_price_cents
        unit_price = require_non_negative_int(unit_price, f"items[{idx}].unit_price_cents", maximum=MAX_PRICE_CENTS)

        cleaned.append({
            "product_id": product_id,
            "description": description[:255],
            "work_type_code": str(item.get("work_type_code") or "dtg")[:32],
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "line_total_cents": quantity * unit_price,
        })
    return cleaned


def create_order(
    ctx: OperationContext,
    *,
    items,
    customer_id: int | None = None,
    customer_name: str | None = None,
    discount_cents: int = 0,
    due_date=None,
    notes: str | None = None,
) -> Order:
    customer = None
    if customer_id is not None:
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")
        if customer.status == "blocked":
            raise ValidationError("Customer is blocked")

    name = (customer_name or (customer.name if customer else "") or "").strip()
    if not name:
        raise ValidationError("customer_name is required")

    discount_cents = require_non_negative_int(discount_cents or 0, "discount_cents", maximum=MAX_PRICE_CENTS)

    if isinstance(due_date, str):
        try:
            due_date = parse_iso_date(due_date)
        except ValueError:
            raise ValidationError("due_date must be an ISO-8601 date")

    lines = _normalize_items(items)
    subtotal = sum(line["line_total_cents"] for line in lines)

    order = Order(
        order_number=next_document_number(
            document_type="order",
            prefix=current_app.config.get("ORDER_NUMBER_PREFIX", "ORD"),
        ),
        customer_id=customer.id if customer else None,
        customer_name=name[:255],
        status="draft",
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        total_cents=max(0, subtotal - discount_cents),
        due_date=due_date,
        notes=notes,
        created_by=ctx.actor_user_id,
    )
    db.session.add(order)
    db.session.flush()

    for line in lines:
        order.items.append(OrderItem(**line))
    db.session.flush()

    audit_or_warn(ctx, "create", order.id, new=OrderSnapshot.from_model(order))
    notify_new_order(order)

    db.session.commit()
    return order


def update_order_status(ctx: OperationContext, order_id: int, new_status: str) -> Order:
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status '{new_status}'. Must be one of: {', '.join(ORDER_STATUSES)}")

    order = _get_order(order_id)
    if new_status not in ORDER_TRANSITIONS[order.status]:
        raise OrderStatusError(f"Cannot move order from '{order.status}' to '{new_status}'")

    before = OrderSnapshot.from_model(order)
    order.status = new_status
    db.session.flush()

    if new_status == "completed" and order.customer is not None:
        record_completed_order(ctx, order.customer, order.total_cents)

    audit_or_warn(ctx, "update", order.id, old=before, new=OrderSnapshot.from_model(order))
    db.session.commit()
    return order


def create_job_from_order(ctx: OperationContext, order_id: int) -> list[ProductionJob]:
    """
    One pending production job per order item, then the order moves to
    in_production. A draft order is confirmed first.

    Items that already have a job are skipped, so calling this again only
    fills in lines added since; the return value holds the new jobs only.
    """
    order = _get_order(order_id)
    if order.status not in ("draft", "confirmed", "in_production"):
        raise OrderStatusError(f"Cannot create jobs for a {order.status} order")

    if order.status == "draft":
        update_order_status(ctx, order.id, "confirmed")

    covered = {
        item_id
        for (item_id,) in db.session.query(ProductionJob.order_item_id).filter(
            ProductionJob.order_id == order.id,
            ProductionJob.order_item_id.isnot(None),
            ProductionJob.is_rework.is_(False),
        )
    }

    jobs = []
    for item in order.items:
        if item.id in covered:
            continue
        payload = {
            "order_id": order.id,
            "order_item_id": item.id,
            "customer_id": order.customer_id,
            "customer_name": order.customer_name,
            "work_type_code": item.work_type_code,
            "description": item.description,
            "ordered_qty": item.quantity,
            "unit_price_cents": item.unit_price_cents,
        }
        if order.due_date is not None:
            payload["due_date"] = order.due_date.isoformat()
        jobs.append(production_service.create_job(ctx, payload))

    if order.status == "confirmed":
        update_order_status(ctx, order.id, "in_production")

    return jobs


def list_orders(
    *,
    status: str | None = None,
    customer_id: int | None = None,
    limit: int = 200,
) -> list[Order]:
    limit = max(1, min(int(limit), 500))
    q = Order.query
    if status is not None:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
        q = q.filter(Order.status == status)
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
