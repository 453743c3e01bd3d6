from __future__ import annotations

from flask import current_app

from ..errors import ValidationFailure
from ..models.auth import ROLE_ADMIN
from ..models.catalog import SHOP_STATUS_ACTIVE, SHOP_STATUSES
from ..validation import coerce_str, one_of
from . import record_store
from .access_service import ensure_role

_EDITABLE = ("name", "location", "phone", "email", "opening_hours", "manager_id")


def _clean(data: dict, *, creating: bool) -> dict:
    fields = {}
    if creating or "name" in data:
        fields["name"] = coerce_str(data.get("name"), "name", max_length=120, required=True)
    for name in ("location", "phone", "email", "opening_hours"):
        if name in data:
            fields[name] = coerce_str(data.get(name), name)
    if "manager_id" in data:
        manager_id = data.get("manager_id") or None
        if manager_id is not None:
            record_store.get("users", manager_id)
        fields["manager_id"] = manager_id
    if creating or "status" in data:
        fields["status"] = one_of(data.get("status") or SHOP_STATUS_ACTIVE, "status", SHOP_STATUSES)
    return fields


def create_shop(data: dict, *, actor, state=None):
    ensure_role(actor, ROLE_ADMIN)
    shop = record_store.create("shops", created_by=actor.id, **_clean(data, creating=True))
    current_app.logger.info("Shop %s created by %s", shop.id, actor.id)
    if state is not None:
        state.upsert("shops", shop.to_dict())
    return shop


def update_shop(shop_id: str, data: dict, *, actor, state=None):
    ensure_role(actor, ROLE_ADMIN)
    fields = _clean({k: v for k, v in data.items() if k in _EDITABLE + ("status",)}, creating=False)
    shop = record_store.update("shops", shop_id, updated_by=actor.id, **fields)
    if state is not None:
        state.upsert("shops", shop.to_dict())
    return shop


def set_shop_status(shop_id: str, status: str, *, actor, state=None):
    return update_shop(shop_id, {"status": status}, actor=actor, state=state)


def delete_shop(shop_id: str, *, actor, state=None) -> None:
    """Only shops with no stock rows and no bound staff can be deleted."""
    ensure_role(actor, ROLE_ADMIN)
    record_store.get("shops", shop_id)
    if record_store.query("inventory", where={"shop_id": shop_id}, limit=1):
        raise ValidationFailure("Shop still has inventory records", {"shop_id": shop_id})
    if record_store.query("users", where={"shop_id": shop_id}, limit=1):
        raise ValidationFailure("Shop still has staff assigned", {"shop_id": shop_id})
    record_store.delete("shops", shop_id)
    current_app.logger.info("Shop %s deleted by %s", shop_id, actor.id)
    if state is not None:
        state.remove("shops", shop_id)


def get_shop(shop_id: str):
    return record_store.get("shops", shop_id)


def list_shops(status: str | None = None) -> list:
    where = {"status": status} if status else None
    return record_store.query("shops", where=where, order_by="name")
