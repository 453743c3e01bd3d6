# Overview: Small helpers shared by the API blueprints.

from flask import g, request

from ..errors import IdentityMismatch, ValidationFailure
from ..services.app_state import state_for


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailure("Request body must be a JSON object")
    return data


def current_state():
    """The caller's open application state, or None when none is open."""
    return state_for(getattr(g, "principal", None))


def scoped_shop_id(requested: str | None) -> str | None:
    """
    Resolve the shop a read is scoped to.

    Admins may ask for any shop or none (all shops). Everyone else is
    pinned to their own shop.
    """
    principal = g.principal
    if principal.is_admin:
        return requested or None
    if not principal.shop_id:
        raise IdentityMismatch("Principal is not bound to a shop")
    if requested and requested != principal.shop_id:
        raise IdentityMismatch("Principal is not bound to this shop", {"shop_id": requested})
    return principal.shop_id
