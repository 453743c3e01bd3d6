# Overview: Flask API routes exposing the caller's application-state snapshot.

from flask import Blueprint, g

from ..decorators import require_auth
from ..services.app_state import get_registry

state_bp = Blueprint("state", __name__, url_prefix="/api/state")


@state_bp.get("")
@require_auth
def get_state_route():
    state = get_registry().ensure(g.principal)
    return state.snapshot()


@state_bp.post("/refresh")
@require_auth
def refresh_state_route():
    registry = get_registry()
    state = registry.ensure(g.principal)
    state.refresh(g.principal)
    outcome = registry.persist(g.principal, state)
    snapshot = state.snapshot()
    return {"last_sync": snapshot["last_sync"], "cache": outcome.to_dict()}
