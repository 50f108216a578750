# backend/garmentops/routes/stock.py
"""
Stock ledger routes.

POST /api/stock/in      {product_id, quantity, ref_order_id?, note?}
POST /api/stock/out     {product_id, quantity, ref_order_id?, ref_job_id?, reason?, reason_category?}
POST /api/stock/adjust  {product_id, new_quantity, reason?}
GET  /api/stock/transactions?product_id=&type=&limit=
GET  /api/stock/low

Actor, IP and user agent come from the request (g.operation_context), never
from the body.
"""
from flask import Blueprint, request, g

from ..decorators import require_actor
from ..services import stock_service
from ..validation import ValidationError
from . import error_response, get_json_payload, ok, unexpected_error


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _require(payload: dict, *keys):
    missing = [k for k in keys if payload.get(k) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


@stock_bp.post("/in")
@require_actor
def stock_in_route():
    payload = get_json_payload()
    try:
        _require(payload, "product_id", "quantity")
        result = stock_service.stock_in(
            g.operation_context,
            payload["product_id"],
            payload["quantity"],
            ref_order_id=payload.get("ref_order_id"),
            note=payload.get("note"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Stock in failed")
    return ok(result.to_dict(), 201)


@stock_bp.post("/out")
@require_actor
def stock_out_route():
    payload = get_json_payload()
    try:
        _require(payload, "product_id", "quantity")
        result = stock_service.stock_out(
            g.operation_context,
            payload["product_id"],
            payload["quantity"],
            ref_order_id=payload.get("ref_order_id"),
            ref_job_id=payload.get("ref_job_id"),
            reason=payload.get("reason"),
            reason_category=payload.get("reason_category"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Stock out failed")
    return ok(result.to_dict(), 201)


@stock_bp.post("/adjust")
@require_actor
def stock_adjust_route():
    payload = get_json_payload()
    try:
        _require(payload, "product_id", "new_quantity")
        result = stock_service.stock_adjust(
            g.operation_context,
            payload["product_id"],
            payload["new_quantity"],
            reason=payload.get("reason"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Stock adjust failed")
    return ok(result.to_dict(), 201)


@stock_bp.get("/transactions")
@require_actor
def list_transactions_route():
    try:
        rows = stock_service.list_transactions(
            product_id=request.args.get("product_id", type=int),
            type=request.args.get("type"),
            limit=request.args.get("limit", default=100, type=int),
        )
    except ValueError as e:
        return error_response(e)
    return ok({"items": [r.to_dict() for r in rows], "count": len(rows)})


@stock_bp.get("/low")
@require_actor
def low_stock_route():
    products = stock_service.list_low_stock_products()
    return ok({"items": [p.to_dict() for p in products], "count": len(products)})
