# Overview: Per-principal application state; a role-scoped mirror of store collections.

"""
Application State

One AppState per signed-in principal. It mirrors the store collections the
principal's role may see and is the only place that mirror lives.

ACCESS:
- Reads go through snapshot(), which returns a deep copy
- Writes go through the command methods (replace, add, upsert, remove,
  add_notification, mark_notification_read, select_shop, clear)

REFRESH SCOPE (everyone also gets their own notifications, newest first):
- admin: every collection
- manager: own shop (selected), all products, and the shop's inventory,
  sales, expenses, deliveries and employees
- employee: own shop, all products, the shop's inventory and deliveries
- rider: all shops, deliveries assigned to them plus unassigned pending ones

The StateRegistry creates states at login (warm-starting from the blob
cache before refreshing) and drops them at logout.
"""

from __future__ import annotations

import copy
import json
import threading

from flask import current_app

from ..errors import MultishopError
from ..extensions import STATE_REGISTRY_KEY
from ..models.auth import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_RIDER
from ..models.deliveries import DELIVERY_STATUS_PENDING
from ..time_utils import to_utc_z, utcnow
from . import notification_service, record_store
from .blob_cache import BlobCache, state_key, user_key
from .outcome import PartialOutcome

MIRROR_COLLECTIONS = (
    "shops",
    "products",
    "inventory",
    "sales",
    "expenses",
    "deliveries",
    "employees",
    "notifications",
)

BLOB_VERSION = 1


def _as_dicts(records) -> list[dict]:
    return [r.to_dict() for r in records]


class AppState:
    def __init__(self, principal_id: str, *, feed_limit: int = 50):
        self.principal_id = principal_id
        self.feed_limit = feed_limit
        self._lock = threading.RLock()
        self._collections: dict[str, list[dict]] = {name: [] for name in MIRROR_COLLECTIONS}
        self._selected_shop: dict | None = None
        self._last_sync: str | None = None
        self._error: str | None = None

    @staticmethod
    def _check(collection: str) -> None:
        if collection not in MIRROR_COLLECTIONS:
            raise ValueError(f"Unknown mirror collection: {collection}")

    def snapshot(self) -> dict:
        with self._lock:
            data = {name: copy.deepcopy(items) for name, items in self._collections.items()}
            data["selected_shop"] = copy.deepcopy(self._selected_shop)
            data["last_sync"] = self._last_sync
            data["error"] = self._error
            return data

    # Commands

    def replace(self, collection: str, records: list[dict]) -> None:
        self._check(collection)
        with self._lock:
            self._collections[collection] = [dict(r) for r in records]

    def add(self, collection: str, record: dict) -> None:
        """Append, or replace in place when the id is already mirrored."""
        self.upsert(collection, record)

    def upsert(self, collection: str, record: dict) -> None:
        self._check(collection)
        with self._lock:
            items = self._collections[collection]
            for index, existing in enumerate(items):
                if existing.get("id") == record.get("id"):
                    items[index] = dict(record)
                    return
            items.append(dict(record))

    def remove(self, collection: str, record_id: str) -> None:
        self._check(collection)
        with self._lock:
            self._collections[collection] = [
                r for r in self._collections[collection] if r.get("id") != record_id
            ]

    def add_notification(self, notification: dict) -> None:
        with self._lock:
            feed = [dict(notification)] + self._collections["notifications"]
            self._collections["notifications"] = feed[: self.feed_limit]

    def mark_notification_read(self, notification_id: str) -> None:
        with self._lock:
            for item in self._collections["notifications"]:
                if item.get("id") == notification_id:
                    item["read"] = True

    def select_shop(self, shop: dict | None) -> None:
        with self._lock:
            self._selected_shop = dict(shop) if shop else None

    def set_error(self, message: str | None) -> None:
        with self._lock:
            self._error = message

    def clear(self) -> None:
        with self._lock:
            self._collections = {name: [] for name in MIRROR_COLLECTIONS}
            self._selected_shop = None
            self._last_sync = None
            self._error = None

    # Loading

    def refresh(self, principal) -> None:
        """
        Reload every mirrored collection for the principal's role.

        Collections are swapped in together after all reads succeed. A store
        failure leaves the previous mirror in place, records the error and
        propagates.
        """
        try:
            loaded, selected = _load_scoped(principal, self.feed_limit)
        except MultishopError as exc:
            current_app.logger.error("State refresh for %s failed: %s", principal.id, exc.message)
            self.set_error(exc.message)
            raise

        with self._lock:
            for name in MIRROR_COLLECTIONS:
                self._collections[name] = loaded.get(name, [])
            self._selected_shop = selected
            self._last_sync = to_utc_z(utcnow())
            self._error = None

    # Serialization

    def to_blob(self) -> bytes:
        payload = {"version": BLOB_VERSION, "principal_id": self.principal_id}
        payload.update(self.snapshot())
        return json.dumps(payload, sort_keys=True).encode("utf-8")

    @classmethod
    def from_blob(cls, principal_id: str, blob: bytes, *, feed_limit: int = 50) -> "AppState":
        payload = json.loads(blob.decode("utf-8"))
        if payload.get("version") != BLOB_VERSION or payload.get("principal_id") != principal_id:
            raise ValueError("Cached state does not match this principal")
        state = cls(principal_id, feed_limit=feed_limit)
        for name in MIRROR_COLLECTIONS:
            state.replace(name, payload.get(name) or [])
        state.select_shop(payload.get("selected_shop"))
        state._last_sync = payload.get("last_sync")
        return state


def _load_scoped(principal, feed_limit: int) -> tuple[dict, dict | None]:
    loaded: dict[str, list[dict]] = {name: [] for name in MIRROR_COLLECTIONS}
    selected = None
    role = principal.role
    shop_id = principal.shop_id
    newest = {"order_by": "created_at", "descending": True}

    if role == ROLE_ADMIN:
        loaded["shops"] = _as_dicts(record_store.query("shops", order_by="name"))
        loaded["products"] = _as_dicts(record_store.query("products", order_by="name"))
        loaded["inventory"] = _as_dicts(record_store.query("inventory", order_by="created_at"))
        loaded["sales"] = _as_dicts(record_store.query("sales", **newest))
        loaded["expenses"] = _as_dicts(record_store.query("expenses", order_by="date", descending=True))
        loaded["deliveries"] = _as_dicts(record_store.query("deliveries", **newest))
        loaded["employees"] = _as_dicts(record_store.query("users", order_by="created_at"))

    elif role in (ROLE_MANAGER, ROLE_EMPLOYEE) and shop_id:
        shop = record_store.find("shops", shop_id)
        loaded["shops"] = [shop.to_dict()] if shop is not None else []
        loaded["products"] = _as_dicts(record_store.query("products", order_by="name"))
        scoped = {"shop_id": shop_id}
        loaded["inventory"] = _as_dicts(record_store.query("inventory", where=scoped, order_by="created_at"))
        loaded["deliveries"] = _as_dicts(record_store.query("deliveries", where=scoped, **newest))
        if role == ROLE_MANAGER:
            selected = loaded["shops"][0] if loaded["shops"] else None
            loaded["sales"] = _as_dicts(record_store.query("sales", where=scoped, **newest))
            loaded["expenses"] = _as_dicts(
                record_store.query("expenses", where=scoped, order_by="date", descending=True)
            )
            loaded["employees"] = _as_dicts(record_store.query("users", where=scoped, order_by="created_at"))

    elif role == ROLE_RIDER:
        loaded["shops"] = _as_dicts(record_store.query("shops", order_by="name"))
        mine = record_store.query("deliveries", where={"rider_id": principal.id}, **newest)
        open_runs = [
            d for d in record_store.query("deliveries", where={"status": DELIVERY_STATUS_PENDING}, **newest)
            if d.rider_id is None
        ]
        loaded["deliveries"] = _as_dicts(mine + open_runs)

    loaded["notifications"] = _as_dicts(notification_service.list_for_user(principal.id, limit=feed_limit))
    return loaded, selected


class StateRegistry:
    """Application states keyed by principal id."""

    def __init__(self, cache: BlobCache, *, feed_limit: int = 50):
        self.cache = cache
        self.feed_limit = feed_limit
        self._states: dict[str, AppState] = {}
        self._lock = threading.Lock()

    def get(self, principal_id: str) -> AppState | None:
        with self._lock:
            return self._states.get(principal_id)

    def warm_start(self, principal) -> AppState:
        """A state seeded from the blob cache when one is usable, else empty."""
        blob = self.cache.read_blob(state_key(principal.id))
        if blob is not None:
            try:
                return AppState.from_blob(principal.id, blob, feed_limit=self.feed_limit)
            except (ValueError, UnicodeDecodeError) as exc:
                current_app.logger.warning("Discarding cached state for %s: %s", principal.id, exc)
        return AppState(principal.id, feed_limit=self.feed_limit)

    def open(self, principal) -> tuple[AppState, PartialOutcome]:
        """Warm-start, refresh from the store and persist. A failed refresh keeps the warm copy."""
        outcome = PartialOutcome()
        state = self.warm_start(principal)
        with self._lock:
            self._states[principal.id] = state

        try:
            state.refresh(principal)
            outcome.record_success("refresh", principal_id=principal.id)
        except MultishopError as exc:
            outcome.record_failure("refresh", exc.message, principal_id=principal.id)

        outcome.extend(self.persist(principal, state))
        return state, outcome

    def ensure(self, principal) -> AppState:
        state = self.get(principal.id)
        if state is None:
            state, _ = self.open(principal)
        return state

    def persist(self, principal, state: AppState) -> PartialOutcome:
        outcome = PartialOutcome()
        for key, data in (
            (user_key(principal.id), json.dumps(principal.to_dict()).encode("utf-8")),
            (state_key(principal.id), state.to_blob()),
        ):
            if self.cache.write_blob(key, data):
                outcome.record_success("cache_write", key=key)
            else:
                outcome.record_failure("cache_write", "write failed", key=key)
        return outcome

    def close(self, principal_id: str) -> None:
        with self._lock:
            self._states.pop(principal_id, None)
        self.cache.remove_blob(user_key(principal_id))
        self.cache.remove_blob(state_key(principal_id))

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def on_principal_change(self, event: str, principal) -> None:
        if event == "login":
            self.open(principal)
        elif event == "logout":
            self.close(principal.id)


def get_registry() -> StateRegistry:
    return current_app.extensions[STATE_REGISTRY_KEY]


def state_for(principal) -> AppState | None:
    """The principal's open state, if any."""
    if principal is None:
        return None
    return get_registry().get(principal.id)
