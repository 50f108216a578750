# backend/garmentops/routes/orders.py
"""
Order intake routes.

- GET  /api/orders?status=&customer_id=
- POST /api/orders {customer_id?, customer_name?, items: [...], discount_cents?, due_date?, notes?}
- GET  /api/orders/<id>
- POST /api/orders/<id>/status {status}
- POST /api/orders/<id>/jobs   one production job per order item
"""
from flask import Blueprint, request, g

from ..decorators import require_actor
from ..services import order_service
from . import error_response, get_json_payload, ok, unexpected_error


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_actor
def list_orders_route():
    try:
        orders = order_service.list_orders(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            limit=request.args.get("limit", default=200, type=int),
        )
    except ValueError as e:
        return error_response(e)
    return ok({"items": [o.to_dict(include_items=False) for o in orders], "count": len(orders)})


@orders_bp.post("")
@require_actor
def create_order_route():
    payload = get_json_payload()
    try:
        order = order_service.create_order(
            g.operation_context,
            items=payload.get("items"),
            customer_id=payload.get("customer_id"),
            customer_name=payload.get("customer_name"),
            discount_cents=payload.get("discount_cents", 0),
            due_date=payload.get("due_date"),
            notes=payload.get("notes"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to create order")
    return ok({"order": order.to_dict()}, 201)


@orders_bp.get("/<int:order_id>")
@require_actor
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except ValueError as e:
        return error_response(e)
    return ok({"order": order.to_dict()})


@orders_bp.post("/<int:order_id>/status")
@require_actor
def update_order_status_route(order_id: int):
    payload = get_json_payload()
    try:
        order = order_service.update_order_status(g.operation_context, order_id, payload.get("status"))
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to update order status")
    return ok({"order": order.to_dict()})


@orders_bp.post("/<int:order_id>/jobs")
@require_actor
def create_jobs_route(order_id: int):
    try:
        jobs = order_service.create_job_from_order(g.operation_context, order_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to create jobs from order")
    return ok({"jobs": [j.to_dict() for j in jobs], "count": len(jobs)}, 201)
