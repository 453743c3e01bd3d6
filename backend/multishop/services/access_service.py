# Overview: Role and shop-scope checks shared by services and route decorators.

from __future__ import annotations

from ..errors import IdentityMismatch
from ..models.auth import ROLE_ADMIN


def ensure_role(principal, *roles: str) -> None:
    """Admins pass every role check."""
    if principal is None:
        raise IdentityMismatch("Authentication required")
    if principal.role == ROLE_ADMIN or principal.role in roles:
        return
    raise IdentityMismatch(
        "Role not permitted for this operation",
        {"role": principal.role, "required": list(roles)},
    )


def ensure_shop_access(principal, shop_id: str | None) -> None:
    """Non-admin principals may only act on the shop they are bound to."""
    if principal is None:
        raise IdentityMismatch("Authentication required")
    if principal.role == ROLE_ADMIN:
        return
    if not shop_id or principal.shop_id != shop_id:
        raise IdentityMismatch(
            "Principal is not bound to this shop",
            {"shop_id": shop_id, "principal_shop_id": principal.shop_id},
        )


def can_access_shop(principal, shop_id: str | None) -> bool:
    try:
        ensure_shop_access(principal, shop_id)
    except IdentityMismatch:
        return False
    return True
