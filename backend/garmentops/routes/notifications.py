# backend/garmentops/routes/notifications.py
"""In-app notification inbox for the acting user."""
from flask import Blueprint, request, g

from ..decorators import require_actor
from ..services import notification_service
from . import error_response, ok, unexpected_error


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_actor
def list_notifications_route():
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    rows = notification_service.list_notifications(
        g.actor.id,
        unread_only=unread_only,
        limit=request.args.get("limit", default=50, type=int),
    )
    return ok({"items": [n.to_dict() for n in rows], "count": len(rows)})


@notifications_bp.post("/<int:notification_id>/read")
@require_actor
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(g.actor.id, notification_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to mark notification read")
    return ok({"notification": notification.to_dict()})
