# Overview: Flask API routes for staff management.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_MANAGER
from ..services import employee_service
from .common import current_state, json_body, scoped_shop_id

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
@require_role(ROLE_MANAGER)
def list_employees_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    users = employee_service.list_employees(shop_id=shop_id, role=request.args.get("role"))
    return {"items": [u.to_dict() for u in users]}


@employees_bp.post("")
@require_auth
@require_role(ROLE_MANAGER)
def add_employee_route():
    user = employee_service.add_employee(json_body(), actor=g.principal, state=current_state())
    return user.to_dict(), 201


@employees_bp.patch("/<user_id>")
@require_auth
@require_role(ROLE_MANAGER)
def update_employee_route(user_id):
    user = employee_service.update_employee(user_id, json_body(), actor=g.principal, state=current_state())
    return user.to_dict()


@employees_bp.delete("/<user_id>")
@require_auth
@require_role(ROLE_MANAGER)
def delete_employee_route(user_id):
    revoked = employee_service.delete_employee(user_id, actor=g.principal, state=current_state())
    return {"status": "deleted", "id": user_id, "sessions_revoked": revoked}
