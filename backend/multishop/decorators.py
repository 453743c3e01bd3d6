# Overview: Request decorators for API routes; bearer-token authentication and role gates.

from functools import wraps
from flask import request, g

from .services import identity_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token.

    Sets:
    - g.principal: the authenticated Principal
    - g.token: the raw bearer token (needed for logout)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return {"error": "Authentication required"}, 401

        principal = identity_service.get_current_principal(token)
        if principal is None:
            return {"error": "Invalid or expired token"}, 401

        g.principal = principal
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require one of the given roles. Admins always pass.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            principal = getattr(g, "principal", None)
            if principal is None:
                return {"error": "Authentication required"}, 401
            if not principal.is_admin and principal.role not in roles:
                return {
                    "error": "Permission denied",
                    "kind": "identity_mismatch",
                    "required_roles": list(roles),
                }, 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator
