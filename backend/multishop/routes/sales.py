# Overview: Flask API routes for sales; record a sale and read sales history.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_EMPLOYEE, ROLE_MANAGER
from ..services import sales_service
from ..services.access_service import ensure_shop_access
from .common import current_state, json_body, scoped_shop_id

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_role(ROLE_MANAGER, ROLE_EMPLOYEE)
def record_sale_route():
    """
    Record a sale.

    Body: {shop_id, items: [{inventory_id, quantity}], payment_method,
    customer_name?, customer_phone?, discount_percent?, notes?}

    Answers 201 with the sale and the side-effect results (low-stock
    notifications). A decrement failure answers 409 after compensation.
    """
    data = json_body()
    outcome = sales_service.record_sale(
        data.get("shop_id"),
        data.get("items"),
        customer_name=data.get("customer_name"),
        customer_phone=data.get("customer_phone"),
        payment_method=data.get("payment_method"),
        discount_percent=data.get("discount_percent", 0),
        notes=data.get("notes"),
        actor=g.principal,
        state=current_state(),
    )
    return outcome.to_dict(), 201


@sales_bp.get("")
@require_auth
@require_role(ROLE_MANAGER)
def list_sales_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    sales = sales_service.list_sales(
        shop_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
        limit=request.args.get("limit", type=int),
    )
    return {"items": [s.to_dict() for s in sales]}


@sales_bp.get("/<sale_id>")
@require_auth
@require_role(ROLE_MANAGER, ROLE_EMPLOYEE)
def get_sale_route(sale_id):
    sale = sales_service.get_sale(sale_id)
    ensure_shop_access(g.principal, sale.shop_id)
    return sale.to_dict()
