# backend/garmentops/routes/products.py
"""
Product master data routes.

Stock levels are read here but only changed through /api/stock.
"""
from flask import Blueprint, request, g

from ..decorators import require_actor
from ..services import product_service
from . import error_response, get_json_payload, ok, unexpected_error


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_actor
def list_products_route():
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    products = product_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
        include_inactive=include_inactive,
    )
    return ok({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.post("")
@require_actor
def create_product_route():
    try:
        product = product_service.create_product(g.operation_context, get_json_payload())
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to create product")
    return ok({"product": product.to_dict()}, 201)


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    try:
        product = product_service.get_product(product_id)
    except ValueError as e:
        return error_response(e)
    return ok({"product": product.to_dict()})


@products_bp.patch("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    try:
        product = product_service.update_product(g.operation_context, product_id, get_json_payload())
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to update product")
    return ok({"product": product.to_dict()})
