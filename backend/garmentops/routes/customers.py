# backend/garmentops/routes/customers.py
"""CRM routes: customers and their interaction history."""
from flask import Blueprint, request, g

from ..decorators import require_actor
from ..services import customer_service
from . import error_response, get_json_payload, ok, unexpected_error


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_actor
def list_customers_route():
    try:
        customers = customer_service.list_customers(
            search=request.args.get("search"),
            status=request.args.get("status"),
            tier=request.args.get("tier"),
        )
    except ValueError as e:
        return error_response(e)
    return ok({"items": [c.to_dict() for c in customers], "count": len(customers)})


@customers_bp.post("")
@require_actor
def create_customer_route():
    try:
        customer = customer_service.create_customer(g.operation_context, get_json_payload())
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to create customer")
    return ok({"customer": customer.to_dict()}, 201)


@customers_bp.get("/<int:customer_id>")
@require_actor
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        interactions = customer_service.list_interactions(customer_id)
    except ValueError as e:
        return error_response(e)
    return ok({
        "customer": customer.to_dict(),
        "interactions": [i.to_dict() for i in interactions],
    })


@customers_bp.patch("/<int:customer_id>")
@require_actor
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(g.operation_context, customer_id, get_json_payload())
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to update customer")
    return ok({"customer": customer.to_dict()})


@customers_bp.post("/<int:customer_id>/interactions")
@require_actor
def add_interaction_route(customer_id: int):
    payload = get_json_payload()
    try:
        interaction = customer_service.add_interaction(
            g.operation_context,
            customer_id,
            type=payload.get("type"),
            subject=payload.get("subject"),
            content=payload.get("content"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to add interaction")
    return ok({"interaction": interaction.to_dict()}, 201)
