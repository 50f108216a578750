# backend/garmentops/routes/reservations.py
"""
Stock reservation routes.

- GET  /api/reservations?job_id=&product_id=&status=
- POST /api/reservations {job_id, product_id, quantity}
- POST /api/reservations/batch {job_id, items: [{product_id, quantity}]}
- POST /api/reservations/<id>/release
- POST /api/reservations/<id>/use
- GET  /api/reservations/availability[?product_id=]

Batch responses are 201 when every item was reserved and 207 when the batch
stopped part way; created rows are kept either way.
"""
from flask import Blueprint, request, g, jsonify

from ..decorators import require_actor
from ..services import reservation_service
from ..validation import ValidationError
from . import error_response, get_json_payload, ok, unexpected_error


reservations_bp = Blueprint("reservations", __name__, url_prefix="/api/reservations")


@reservations_bp.get("")
@require_actor
def list_reservations_route():
    try:
        rows = reservation_service.list_reservations(
            job_id=request.args.get("job_id", type=int),
            product_id=request.args.get("product_id", type=int),
            status=request.args.get("status"),
        )
    except ValueError as e:
        return error_response(e)
    return ok({"items": [r.to_dict() for r in rows], "count": len(rows)})


@reservations_bp.post("")
@require_actor
def create_reservation_route():
    payload = get_json_payload()
    try:
        missing = [k for k in ("job_id", "product_id", "quantity") if payload.get(k) is None]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        reservation = reservation_service.create_reservation(
            g.operation_context,
            payload["job_id"],
            payload["product_id"],
            payload["quantity"],
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to create reservation")
    return ok({"reservation": reservation.to_dict()}, 201)


@reservations_bp.post("/batch")
@require_actor
def reserve_batch_route():
    payload = get_json_payload()
    try:
        if payload.get("job_id") is None:
            raise ValidationError("Missing required fields: job_id")
        result = reservation_service.reserve_for_job(
            g.operation_context,
            payload["job_id"],
            payload.get("items"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Batch reservation failed")

    body = result.to_dict()
    if result.ok:
        return ok(body, 201)

    body["success"] = False
    body["error"] = result.failed[0].error
    return jsonify(body), 207


@reservations_bp.post("/<int:reservation_id>/release")
@require_actor
def release_reservation_route(reservation_id: int):
    try:
        reservation = reservation_service.release_reservation(g.operation_context, reservation_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to release reservation")
    return ok({"reservation": reservation.to_dict()})


@reservations_bp.post("/<int:reservation_id>/use")
@require_actor
def use_reservation_route(reservation_id: int):
    try:
        reservation = reservation_service.mark_used(g.operation_context, reservation_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to mark reservation used")
    return ok({"reservation": reservation.to_dict()})


@reservations_bp.get("/availability")
@require_actor
def availability_route():
    product_id = request.args.get("product_id", type=int)
    try:
        if product_id is not None:
            available = reservation_service.get_available_quantity(product_id)
            return ok({
                "product_id": product_id,
                "reserved_qty": reservation_service.get_reserved_quantity(product_id),
                "available_qty": available,
            })
        items = reservation_service.get_availability_summary()
    except ValueError as e:
        return error_response(e)
    return ok({"items": items, "count": len(items)})
