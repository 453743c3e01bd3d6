# Overview: Service-layer operations for staff; identity account plus user record per employee.

"""
Employees

An employee is an identity account and a user record sharing one id.

- add_employee(): creates the account, then the user record. If the user
  record cannot be written the fresh account is deactivated again.
- delete_employee(): removes the user record, deactivates the account and
  revokes its sessions.
- Admins manage everyone; managers manage employees of their own shop.
- Any change to a manager's role or shop, and deleting them, keeps the
  shop's manager_id in step.
- update_own_profile(): any principal may edit their own name, phone and
  position.
"""

from __future__ import annotations

from flask import current_app

from ..errors import IdentityMismatch, MultishopError, ValidationFailure
from ..models.auth import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER, ROLES, SHOP_BOUND_ROLES
from ..money import to_cents
from ..validation import coerce_date, coerce_str, one_of
from . import identity_service, record_store
from .access_service import ensure_role, ensure_shop_access

_PROFILE_FIELDS = ("name", "position", "phone", "salary", "joining_date")
_SELF_SERVICE_FIELDS = ("name", "position", "phone")


def _profile(data: dict) -> dict:
    fields = {}
    if "name" in data:
        fields["name"] = coerce_str(data.get("name"), "name")
    if "position" in data:
        fields["position"] = coerce_str(data.get("position"), "position", max_length=120)
    if "phone" in data:
        fields["phone"] = coerce_str(data.get("phone"), "phone", max_length=32)
    if "salary" in data:
        salary = data.get("salary")
        fields["salary_cents"] = None if salary in (None, "") else to_cents(salary, field="salary")
        if fields["salary_cents"] is not None and fields["salary_cents"] < 0:
            raise ValidationFailure("salary must be zero or more", field="salary")
    if "joining_date" in data:
        fields["joining_date"] = coerce_date(data.get("joining_date"), "joining_date")
    return fields


def _ensure_can_manage(actor, role: str, shop_id: str | None) -> None:
    ensure_role(actor, ROLE_MANAGER)
    if actor.role == ROLE_ADMIN:
        return
    if role != ROLE_EMPLOYEE:
        raise IdentityMismatch("Managers may only manage employees", {"role": role})
    ensure_shop_access(actor, shop_id)


def _resolve_shop(role: str, shop_id) -> str | None:
    if role in SHOP_BOUND_ROLES:
        if not shop_id:
            raise ValidationFailure(f"shop_id is required for {role}", field="shop_id")
        record_store.get("shops", shop_id)
        return shop_id
    return None


def _release_shop(shop_id: str | None, user_id: str, actor_id: str) -> None:
    if not shop_id:
        return
    shop = record_store.find("shops", shop_id)
    if shop is not None and shop.manager_id == user_id:
        record_store.update("shops", shop_id, manager_id=None, updated_by=actor_id)


def _sync_shop_manager(user, old_role: str, old_shop_id: str | None, actor_id: str) -> None:
    """Keep shops.manager_id pointing at the shop's current manager."""
    if old_role == ROLE_MANAGER and (user.role != ROLE_MANAGER or user.shop_id != old_shop_id):
        _release_shop(old_shop_id, user.id, actor_id)
    if user.role == ROLE_MANAGER and (old_role != ROLE_MANAGER or user.shop_id != old_shop_id):
        record_store.update("shops", user.shop_id, manager_id=user.id, updated_by=actor_id)


def add_employee(data: dict, *, actor, state=None):
    role = one_of(data.get("role"), "role", ROLES)
    shop_id = _resolve_shop(role, data.get("shop_id"))
    _ensure_can_manage(actor, role, shop_id)

    account_id = identity_service.create_account(data.get("email"), data.get("password"))
    try:
        user = record_store.create(
            "users",
            id=account_id,
            email=identity_service.normalize_email(data.get("email")),
            role=role,
            shop_id=shop_id,
            created_by=actor.id,
            **_profile(data),
        )
    except MultishopError:
        identity_service.deactivate_account(account_id)
        raise

    if role == ROLE_MANAGER:
        record_store.update("shops", shop_id, manager_id=user.id, updated_by=actor.id)
    current_app.logger.info("Added %s %s to shop %s", role, user.id, shop_id)
    if state is not None:
        state.upsert("employees", user.to_dict())
    return user


def update_employee(user_id: str, data: dict, *, actor, state=None):
    user = record_store.get("users", user_id)
    _ensure_can_manage(actor, user.role, user.shop_id)
    old_role, old_shop_id = user.role, user.shop_id

    fields = _profile({k: v for k, v in data.items() if k in _PROFILE_FIELDS})
    if actor.role == ROLE_ADMIN and ("role" in data or "shop_id" in data):
        role = one_of(data.get("role", user.role), "role", ROLES)
        fields["role"] = role
        fields["shop_id"] = _resolve_shop(role, data.get("shop_id", user.shop_id))

    user = record_store.update("users", user_id, updated_by=actor.id, **fields)
    _sync_shop_manager(user, old_role, old_shop_id, actor.id)
    if state is not None:
        state.upsert("employees", user.to_dict())
    return user


def update_own_profile(principal, data: dict, *, state=None):
    """Self-service edit of name, phone and position; role and shop stay put."""
    fields = _profile({k: v for k, v in data.items() if k in _SELF_SERVICE_FIELDS})
    if not fields:
        raise ValidationFailure(
            f"Nothing to update; editable fields are {', '.join(_SELF_SERVICE_FIELDS)}",
            field="profile",
        )
    user = record_store.update("users", principal.id, updated_by=principal.id, **fields)
    current_app.logger.info("User %s updated own profile: %s", principal.id, sorted(fields))
    if state is not None:
        state.upsert("employees", user.to_dict())
    return user


def delete_employee(user_id: str, *, actor, state=None) -> int:
    """Returns the number of sessions revoked."""
    user = record_store.get("users", user_id)
    _ensure_can_manage(actor, user.role, user.shop_id)
    if user.id == actor.id:
        raise ValidationFailure("You cannot delete your own account", field="user_id")

    shop_id = user.shop_id
    record_store.delete("users", user_id)
    _release_shop(shop_id, user_id, actor.id)

    revoked = identity_service.deactivate_account(user_id)
    current_app.logger.info("Deleted user %s; revoked %s sessions", user_id, revoked)
    if state is not None:
        state.remove("employees", user_id)
    return revoked


def get_employee(user_id: str):
    return record_store.get("users", user_id)


def list_employees(shop_id: str | None = None, role: str | None = None) -> list:
    where = {}
    if shop_id:
        where["shop_id"] = shop_id
    if role:
        where["role"] = role
    return record_store.query("users", where=where or None, order_by="created_at")
