# Overview: Flask API routes for shops; admins write, everyone reads within scope.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_RIDER
from ..services import shop_service
from ..services.access_service import ensure_shop_access
from .common import current_state, json_body

shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")


@shops_bp.get("")
@require_auth
def list_shops_route():
    """Admins and riders see every shop; staff see their own."""
    principal = g.principal
    if principal.role in (ROLE_ADMIN, ROLE_RIDER):
        shops = shop_service.list_shops(status=request.args.get("status"))
    elif principal.shop_id:
        shops = [shop_service.get_shop(principal.shop_id)]
    else:
        shops = []
    return {"items": [s.to_dict() for s in shops]}


@shops_bp.get("/<shop_id>")
@require_auth
def get_shop_route(shop_id):
    if g.principal.role != ROLE_RIDER:
        ensure_shop_access(g.principal, shop_id)
    return shop_service.get_shop(shop_id).to_dict()


@shops_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_shop_route():
    shop = shop_service.create_shop(json_body(), actor=g.principal, state=current_state())
    return shop.to_dict(), 201


@shops_bp.patch("/<shop_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_shop_route(shop_id):
    shop = shop_service.update_shop(shop_id, json_body(), actor=g.principal, state=current_state())
    return shop.to_dict()


@shops_bp.post("/<shop_id>/status")
@require_auth
@require_role(ROLE_ADMIN)
def set_shop_status_route(shop_id):
    data = json_body()
    shop = shop_service.set_shop_status(shop_id, data.get("status"), actor=g.principal, state=current_state())
    return shop.to_dict()


@shops_bp.delete("/<shop_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_shop_route(shop_id):
    shop_service.delete_shop(shop_id, actor=g.principal, state=current_state())
    return {"status": "deleted", "id": shop_id}
