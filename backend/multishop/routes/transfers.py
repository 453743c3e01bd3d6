# Overview: Flask API routes for inter-shop transfers.

"""
Transfer routes

- POST /api/transfers: request (source shop manager or admin)
- POST /api/transfers/<id>/approve|reject: destination shop manager or admin
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_MANAGER
from ..services import transfer_service
from ..services.access_service import can_access_shop
from ..errors import IdentityMismatch
from .common import current_state, json_body, scoped_shop_id

transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.post("")
@require_auth
@require_role(ROLE_MANAGER)
def request_transfer_route():
    data = json_body()
    outcome = transfer_service.request_transfer(
        data.get("from_shop_id") or g.principal.shop_id,
        data.get("to_shop_id"),
        data.get("product_id"),
        data.get("quantity"),
        notes=data.get("notes"),
        actor=g.principal,
        state=current_state(),
    )
    return outcome.to_dict(), 201


@transfers_bp.get("")
@require_auth
@require_role(ROLE_MANAGER)
def list_transfers_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    transfers = transfer_service.list_transfers(shop_id=shop_id, status=request.args.get("status"))
    return {"items": [t.to_dict() for t in transfers]}


@transfers_bp.get("/<transfer_id>")
@require_auth
@require_role(ROLE_MANAGER)
def get_transfer_route(transfer_id):
    transfer = transfer_service.get_transfer(transfer_id)
    if not (can_access_shop(g.principal, transfer.from_shop_id) or can_access_shop(g.principal, transfer.to_shop_id)):
        raise IdentityMismatch("Principal is not party to this transfer", {"transfer_id": transfer_id})
    return transfer.to_dict()


@transfers_bp.post("/<transfer_id>/approve")
@require_auth
@require_role(ROLE_MANAGER)
def approve_transfer_route(transfer_id):
    outcome = transfer_service.approve_transfer(transfer_id, actor=g.principal, state=current_state())
    return outcome.to_dict()


@transfers_bp.post("/<transfer_id>/reject")
@require_auth
@require_role(ROLE_MANAGER)
def reject_transfer_route(transfer_id):
    data = json_body()
    outcome = transfer_service.reject_transfer(
        transfer_id, actor=g.principal, reason=data.get("reason"), state=current_state()
    )
    return outcome.to_dict()
