# Overview: Flask API routes for the product catalog.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import product_service
from .common import current_state, json_body

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    products = product_service.list_products(category=request.args.get("category"))
    return {"items": [p.to_dict() for p in products]}


@products_bp.get("/<product_id>")
@require_auth
def get_product_route(product_id):
    return product_service.get_product(product_id).to_dict()


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    product = product_service.create_product(json_body(), actor=g.principal, state=current_state())
    return product.to_dict(), 201


@products_bp.patch("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id):
    product = product_service.update_product(product_id, json_body(), actor=g.principal, state=current_state())
    return product.to_dict()


@products_bp.delete("/<product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id):
    product_service.delete_product(product_id, actor=g.principal, state=current_state())
    return {"status": "deleted", "id": product_id}
