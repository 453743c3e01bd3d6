# Overview: Flask API routes for inventory operations; stock reads, opening records and restocks.

"""
Inventory routes

- Reads are pinned to the caller's shop unless the caller is an admin
- Opening a record: managers (own shop) and admins
- Restock: managers and employees (own shop) and admins
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_EMPLOYEE, ROLE_MANAGER
from ..services import inventory_service
from ..services.access_service import ensure_shop_access
from .common import current_state, json_body, scoped_shop_id

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _row(record) -> dict:
    row = record.to_dict()
    row["stock_status"] = inventory_service.stock_status(record)
    return row


@inventory_bp.get("")
@require_auth
@require_role(ROLE_MANAGER, ROLE_EMPLOYEE)
def list_inventory_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    records = inventory_service.list_inventory(shop_id)
    return {"items": [_row(r) for r in records]}


@inventory_bp.get("/low-stock")
@require_auth
@require_role(ROLE_MANAGER, ROLE_EMPLOYEE)
def low_stock_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    return {"items": [_row(r) for r in inventory_service.low_stock_records(shop_id)]}


@inventory_bp.get("/<inventory_id>")
@require_auth
@require_role(ROLE_MANAGER, ROLE_EMPLOYEE)
def get_inventory_route(inventory_id):
    record = inventory_service.get_record(inventory_id)
    ensure_shop_access(g.principal, record.shop_id)
    return _row(record)


@inventory_bp.post("")
@require_auth
@require_role(ROLE_MANAGER)
def create_inventory_route():
    data = json_body()
    shop_id = data.get("shop_id")
    ensure_shop_access(g.principal, shop_id)
    record = inventory_service.create_record(
        shop_id,
        data.get("product_id"),
        current_stock=data.get("current_stock", 0),
        low_stock_threshold=data.get("low_stock_threshold", 0),
        notes=data.get("notes"),
        actor_id=g.principal.id,
        state=current_state(),
    )
    return _row(record), 201


@inventory_bp.post("/<inventory_id>/restock")
@require_auth
@require_role(ROLE_MANAGER, ROLE_EMPLOYEE)
def restock_route(inventory_id):
    data = json_body()
    record = inventory_service.get_record(inventory_id)
    ensure_shop_access(g.principal, record.shop_id)
    record = inventory_service.restock(
        inventory_id,
        data.get("quantity"),
        low_stock_threshold=data.get("low_stock_threshold"),
        notes=data.get("notes"),
        actor_id=g.principal.id,
        state=current_state(),
    )
    return _row(record)
