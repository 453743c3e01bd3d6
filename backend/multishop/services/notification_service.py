# Overview: Notification fan-out; resolve recipients for an event and write one notification each.

"""
Notification Fan-out

RECIPIENTS:
- target_role given: every user with that role
- otherwise: the managers of scope_shop_id
- neither: nobody (logged no-op)

Each per-recipient write is attempted independently. A failed write is
logged and recorded in the returned PartialOutcome; notify() never raises
for delivery failures.

LOCAL ECHO: when the acting principal is one of the recipients and its
application state is passed in, a copy with a temporary id is prepended to
the state's feed right away. The next refresh replaces the feed wholesale
with store-assigned ids.
"""

from __future__ import annotations

from flask import current_app

from ..errors import IdentityMismatch
from ..ids import temporary_id
from ..models.auth import ROLE_MANAGER
from ..models.notifications import NOTIFICATION_TYPES
from ..time_utils import to_utc_z, utcnow
from ..validation import coerce_str, one_of
from . import record_store
from .outcome import PartialOutcome


def resolve_recipients(scope_shop_id: str | None, target_role: str | None = None) -> list:
    if target_role:
        return record_store.query("users", where={"role": target_role}, order_by="created_at")
    if scope_shop_id:
        return record_store.query(
            "users",
            where={"role": ROLE_MANAGER, "shop_id": scope_shop_id},
            order_by="created_at",
        )
    return []


def notify(
    scope_shop_id: str | None,
    type: str,
    message: str,
    data: dict | None = None,
    target_role: str | None = None,
    *,
    actor_id: str | None = None,
    state=None,
) -> PartialOutcome:
    outcome = PartialOutcome()
    type = one_of(type, "type", NOTIFICATION_TYPES)
    message = coerce_str(message, "message", max_length=512, required=True)
    payload = dict(data or {})

    try:
        recipients = resolve_recipients(scope_shop_id, target_role)
    except Exception as exc:
        current_app.logger.warning("Could not resolve recipients for %s notification: %s", type, exc)
        outcome.record_failure("resolve_recipients", exc, shop_id=scope_shop_id, target_role=target_role)
        return outcome

    if not recipients:
        current_app.logger.info(
            "No recipients for %s notification (shop=%s, role=%s)", type, scope_shop_id, target_role
        )
        return outcome

    for user in recipients:
        try:
            notification = record_store.create(
                "notifications",
                user_id=user.id,
                type=type,
                message=message,
                data=payload,
                read=False,
            )
        except Exception as exc:
            current_app.logger.warning("Notification write to %s failed: %s", user.id, exc)
            outcome.record_failure("notify", exc, user_id=user.id, type=type)
            continue
        outcome.record_success("notify", user_id=user.id, type=type, notification_id=notification.id)

    recipient_ids = {user.id for user in recipients}
    if state is not None and actor_id is not None and actor_id in recipient_ids:
        state.add_notification({
            "id": temporary_id(),
            "user_id": actor_id,
            "type": type,
            "message": message,
            "data": dict(payload),
            "read": False,
            "created_at": to_utc_z(utcnow()),
        })

    return outcome


def list_for_user(user_id: str, limit: int | None = None) -> list:
    """Newest first, bounded by NOTIFICATION_FEED_LIMIT."""
    if limit is None:
        limit = current_app.config.get("NOTIFICATION_FEED_LIMIT", 50)
    return record_store.query(
        "notifications",
        where={"user_id": user_id},
        order_by="created_at",
        descending=True,
        limit=limit,
    )


def mark_read(notification_id: str, *, user_id: str, state=None):
    notification = record_store.get("notifications", notification_id)
    if notification.user_id != user_id:
        raise IdentityMismatch("Notification belongs to another user", {"notification_id": notification_id})
    if not notification.read:
        notification = record_store.update("notifications", notification_id, read=True)
    if state is not None:
        state.mark_notification_read(notification_id)
    return notification


def mark_all_read(user_id: str, *, state=None) -> int:
    unread = record_store.query("notifications", where={"user_id": user_id, "read": False})
    for notification in unread:
        record_store.update("notifications", notification.id, read=True)
        if state is not None:
            state.mark_notification_read(notification.id)
    return len(unread)
