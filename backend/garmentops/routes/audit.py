# backend/garmentops/routes/audit.py
"""
Audit log browsing.

Time semantics:
- date_from / date_to accept ISO-8601 with Z/offsets and are inclusive.
- Results are newest first; pass next_cursor back as ?cursor= for the next page.
"""
from flask import Blueprint, request

from ..decorators import require_actor
from ..services import audit_service
from ..time_utils import parse_iso_datetime
from . import error_response, fail, ok


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_actor
def list_audit_logs_route():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))

    try:
        date_from = parse_iso_datetime(request.args.get("date_from"))
        date_to = parse_iso_datetime(request.args.get("date_to"))
    except ValueError:
        return fail("date_from and date_to must be ISO-8601 datetimes", 400)

    try:
        rows, next_cursor = audit_service.list_audit_logs(
            action=request.args.get("action"),
            entity_type=request.args.get("entity_type"),
            entity_id=request.args.get("entity_id", type=int),
            user_id=request.args.get("user_id", type=int),
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            cursor=request.args.get("cursor"),
        )
    except ValueError as e:
        return error_response(e)

    return ok({
        "items": [r.to_dict() for r in rows],
        "next_cursor": next_cursor,
        "limit": limit,
    })
