# Overview: Flask API routes for auth operations; sign-in, sign-out and secret reset.

"""
Authentication API routes

- Self-registration is disabled; staff accounts are created by admins
  (POST /api/employees) or the CLI (flask users create-admin)
- Reset challenges answer 202 whether or not the email is known
- PATCH /me edits the caller's own profile; role and shop are not writable
"""

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..services import employee_service, identity_service
from .common import current_state, json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    return {
        "error": "Self-registration is disabled. Contact an administrator to create an account."
    }, 403


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The token must be sent as "Authorization: Bearer <token>".
    """
    data = json_body()
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return {"error": "email and password required"}, 400

    principal, token = identity_service.authenticate(
        email,
        password,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return {"principal": principal.to_dict(), "token": token}


@auth_bp.post("/logout")
@require_auth
def logout_route():
    identity_service.end_session(g.token)
    return {"status": "signed_out"}


@auth_bp.get("/me")
@require_auth
def me_route():
    return {"principal": g.principal.to_dict()}


@auth_bp.patch("/me")
@require_auth
def update_me_route():
    """Edit the caller's own name, phone or position."""
    user = employee_service.update_own_profile(g.principal, json_body(), state=current_state())
    return {"principal": g.principal.to_dict(), "profile": user.to_dict()}


@auth_bp.post("/reset-challenge")
def reset_challenge_route():
    data = json_body()
    identity_service.send_secret_reset_challenge(data.get("email"))
    return {"status": "sent"}, 202


@auth_bp.post("/reset")
def reset_route():
    data = json_body()
    identity_service.reset_secret(data.get("token"), data.get("password"))
    return {"status": "reset"}
