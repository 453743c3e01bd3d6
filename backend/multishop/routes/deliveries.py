# Overview: Flask API routes for deliveries; shop staff create, riders move them forward.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_RIDER
from ..models.deliveries import DELIVERY_STATUS_PENDING
from ..services import delivery_service
from ..services.access_service import ensure_shop_access
from ..errors import IdentityMismatch
from .common import current_state, json_body, scoped_shop_id

deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


@deliveries_bp.post("")
@require_auth
@require_role(ROLE_MANAGER, ROLE_EMPLOYEE)
def create_delivery_route():
    data = json_body()
    shop_id = data.get("shop_id") or g.principal.shop_id
    outcome = delivery_service.create_delivery(shop_id, data, actor=g.principal, state=current_state())
    return outcome.to_dict(), 201


@deliveries_bp.get("")
@require_auth
def list_deliveries_route():
    """Riders see their own runs plus unassigned pending ones; staff see their shop's."""
    principal = g.principal
    status = request.args.get("status")
    if principal.role == ROLE_RIDER:
        deliveries = delivery_service.list_deliveries(rider_id=principal.id, status=status)
        if status in (None, DELIVERY_STATUS_PENDING):
            deliveries += [
                d for d in delivery_service.list_deliveries(status=DELIVERY_STATUS_PENDING)
                if d.rider_id is None
            ]
    else:
        shop_id = scoped_shop_id(request.args.get("shop_id"))
        deliveries = delivery_service.list_deliveries(shop_id=shop_id, status=status)
    return {"items": [d.to_dict() for d in deliveries]}


@deliveries_bp.get("/<delivery_id>")
@require_auth
def get_delivery_route(delivery_id):
    delivery = delivery_service.get_delivery(delivery_id)
    principal = g.principal
    if principal.role == ROLE_RIDER:
        if delivery.rider_id not in (None, principal.id):
            raise IdentityMismatch("Delivery is assigned to another rider", {"delivery_id": delivery_id})
    else:
        ensure_shop_access(principal, delivery.shop_id)
    return delivery.to_dict()


@deliveries_bp.post("/<delivery_id>/status")
@require_auth
def update_delivery_status_route(delivery_id):
    data = json_body()
    outcome = delivery_service.update_delivery_status(
        delivery_id, data.get("status"), actor=g.principal, state=current_state()
    )
    return outcome.to_dict()
