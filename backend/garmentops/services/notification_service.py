# Overview: In-app notification inbox (low stock, job complete, new order).

from __future__ import annotations

import json

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Notification, User
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError


NOTIFICATION_TYPES = ("low_stock", "job_complete", "new_order")

# Roles that receive stock and order alerts
STAFF_ALERT_ROLES = ("admin", "manager")


def _add_notification(*, user_id: int, type: str, title: str, message: str, data: dict | None) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type '{type}'")
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=json.dumps(data or {}, sort_keys=True),
    )
    db.session.add(notification)
    return notification


def notify_users(
    user_ids,
    *,
    type: str,
    title: str,
    message: str,
    data: dict | None = None,
) -> list[Notification]:
    """
    Best-effort fan-out: rows are added in a savepoint; a database failure is
    logged and an empty list returned. Does not commit.
    """
    user_ids = [uid for uid in dict.fromkeys(user_ids) if uid is not None]
    if not user_ids:
        return []

    try:
        with db.session.begin_nested():
            created = [
                _add_notification(user_id=uid, type=type, title=title, message=message, data=data)
                for uid in user_ids
            ]
    except SQLAlchemyError as exc:
        current_app.logger.warning("Failed to create %s notifications: %s", type, exc)
        return []

    return created


def _alert_recipient_ids() -> list[int]:
    rows = (
        db.session.query(User.id)
        .filter(User.is_active.is_(True), User.role.in_(STAFF_ALERT_ROLES))
        .order_by(User.id.asc())
        .all()
    )
    return [r.id for r in rows]


def notify_low_stock(product) -> list[Notification]:
    if not current_app.config.get("LOW_STOCK_ALERTS_ENABLED", True):
        return []
    if not product.is_low_stock:
        return []

    return notify_users(
        _alert_recipient_ids(),
        type="low_stock",
        title="Low stock",
        message=f"{product.sku} {product.name}: {product.stock_qty} left (minimum {product.min_stock})",
        data={
            "product_id": product.id,
            "sku": product.sku,
            "stock_qty": product.stock_qty,
            "min_stock": product.min_stock,
        },
    )


def notify_job_complete(job) -> list[Notification]:
    if job.created_by is None:
        return []
    return notify_users(
        [job.created_by],
        type="job_complete",
        title="Production job completed",
        message=f"{job.job_number} is completed ({job.produced_qty}/{job.ordered_qty} produced)",
        data={"job_id": job.id, "job_number": job.job_number},
    )


def notify_new_order(order) -> list[Notification]:
    return notify_users(
        _alert_recipient_ids(),
        type="new_order",
        title="New order",
        message=f"{order.order_number} from {order.customer_name}",
        data={"order_id": order.id, "order_number": order.order_number, "total_cents": order.total_cents},
    )


def list_notifications(user_id: int, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    limit = max(1, min(int(limit), 200))
    q = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_read(user_id: int, notification_id: int) -> Notification:
    notification = db.session.get(Notification, notification_id)
    # Other users' notifications are reported as missing
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.session.commit()
    return notification
