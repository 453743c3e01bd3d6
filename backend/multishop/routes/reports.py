# Overview: Flask API routes for reporting; folds over the caller's application-state snapshot.

"""
Reporting routes

All figures are computed from the caller's mirrored state, so they reflect
the role-scoped view loaded at the last refresh. Pass refresh=1 to reload
before computing.

Query params: shop_id (admins only), start, end (ISO dates or datetimes,
inclusive).
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_MANAGER
from ..services import reporting_service
from ..services.app_state import get_registry
from .common import scoped_shop_id

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _snapshot() -> dict:
    registry = get_registry()
    state = registry.ensure(g.principal)
    if request.args.get("refresh") in ("1", "true", "yes"):
        state.refresh(g.principal)
    return state.snapshot()


def _range():
    return request.args.get("start"), request.args.get("end")


@reports_bp.get("/summary")
@require_auth
@require_role(ROLE_MANAGER)
def summary_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    start, end = _range()
    return reporting_service.dashboard_summary(_snapshot(), shop_id, start, end)


@reports_bp.get("/profit")
@require_auth
@require_role(ROLE_MANAGER)
def profit_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    start, end = _range()
    snapshot = _snapshot()
    return {
        "shop_id": shop_id,
        "start": start,
        "end": end,
        "sales_total": str(reporting_service.sales_total(snapshot, shop_id, start, end)),
        "expense_total": str(reporting_service.expense_total(snapshot, shop_id, start, end)),
        "profit": str(reporting_service.profit(snapshot, shop_id, start, end)),
    }


@reports_bp.get("/inventory")
@require_auth
@require_role(ROLE_MANAGER)
def inventory_report_route():
    shop_id = scoped_shop_id(request.args.get("shop_id"))
    return {"items": reporting_service.inventory_report(_snapshot(), shop_id)}
