# Overview: Flask API routes for shop expenses.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_MANAGER
from ..services import expense_service
from .common import current_state, json_body, scoped_shop_id

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.post("")
@require_auth
@require_role(ROLE_MANAGER)
def add_expense_route():
    data = json_body()
    shop_id = data.get("shop_id") or g.principal.shop_id
    expense = expense_service.add_expense(shop_id, data, actor=g.principal, state=current_state())
    return expense.to_dict(), 201


@expenses_bp.get("")
@require_auth
@require_role(ROLE_MANAGER)
def list_expenses_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    expenses = expense_service.list_expenses(
        shop_id, start=request.args.get("start"), end=request.args.get("end")
    )
    return {"items": [e.to_dict() for e in expenses]}
