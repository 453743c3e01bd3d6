# Overview: Flask API routes for the caller's notification feed.

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..services import notification_service
from .common import current_state

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    notifications = notification_service.list_for_user(g.principal.id, limit=request.args.get("limit", type=int))
    return {
        "items": [n.to_dict() for n in notifications],
        "unread": sum(1 for n in notifications if not n.read),
    }


@notifications_bp.post("/<notification_id>/read")
@require_auth
def mark_read_route(notification_id):
    notification = notification_service.mark_read(
        notification_id, user_id=g.principal.id, state=current_state()
    )
    return notification.to_dict()


@notifications_bp.post("/read-all")
@require_auth
def mark_all_read_route():
    count = notification_service.mark_all_read(g.principal.id, state=current_state())
    return {"updated": count}
