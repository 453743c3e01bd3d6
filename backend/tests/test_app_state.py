"""
Application state tests.

Verifies:
- Role-scoped refresh
- Snapshots are copies
- Blob round trip and warm start through the registry
- Login opens a state, logout drops it
"""

import pytest

from multishop.errors import StoreUnavailable
from multishop.services import blob_cache, delivery_service, identity_service, record_store, sales_service
from multishop.services.app_state import AppState, get_registry
from multishop.services.blob_cache import BlobCache, state_key, user_key

PASSWORD = "Password123!"


def _ids(snapshot, collection):
    return {r["id"] for r in snapshot[collection]}


class TestRefreshScope:

    def test_admin_sees_everything(self, seed, stock):
        stock(seed.shop_a, seed.widget, current_stock=1)
        stock(seed.shop_b, seed.widget, current_stock=1)
        state = AppState(seed.admin.id)

        state.refresh(seed.admin)
        snapshot = state.snapshot()

        assert _ids(snapshot, "shops") == {seed.shop_a, seed.shop_b}
        assert len(snapshot["inventory"]) == 2
        assert len(snapshot["employees"]) == 7
        assert snapshot["last_sync"] is not None

    def test_manager_sees_own_shop(self, seed, stock):
        own = stock(seed.shop_a, seed.widget, current_stock=1)
        stock(seed.shop_b, seed.widget, current_stock=1)
        state = AppState(seed.manager_a.id)

        state.refresh(seed.manager_a)
        snapshot = state.snapshot()

        assert _ids(snapshot, "shops") == {seed.shop_a}
        assert _ids(snapshot, "inventory") == {own}
        assert snapshot["selected_shop"]["id"] == seed.shop_a
        assert _ids(snapshot, "employees") == {seed.manager_a.id, seed.employee_a.id}
        assert _ids(snapshot, "products") == {seed.widget, seed.gadget}

    def test_employee_does_not_mirror_sales_or_staff(self, seed, stock):
        widget = stock(seed.shop_a, seed.widget, current_stock=5)
        sales_service.record_sale(
            seed.shop_a, [{"inventory_id": widget, "quantity": 1}], payment_method="cash", actor=seed.employee_a
        )
        state = AppState(seed.employee_a.id)

        state.refresh(seed.employee_a)
        snapshot = state.snapshot()

        assert snapshot["sales"] == []
        assert snapshot["employees"] == []
        assert _ids(snapshot, "inventory") == {widget}

    def test_rider_sees_own_and_open_deliveries(self, seed):
        mine = delivery_service.create_delivery(seed.shop_a, {"address": "1 High St"}, actor=seed.manager_a).delivery
        open_run = delivery_service.create_delivery(seed.shop_a, {"address": "2 High St"}, actor=seed.manager_a).delivery
        theirs = delivery_service.create_delivery(seed.shop_a, {"address": "3 High St"}, actor=seed.manager_a).delivery
        delivery_service.update_delivery_status(mine.id, "in_transit", actor=seed.rider_1)
        delivery_service.update_delivery_status(theirs.id, "in_transit", actor=seed.rider_2)
        state = AppState(seed.rider_1.id)

        state.refresh(seed.rider_1)
        snapshot = state.snapshot()

        assert _ids(snapshot, "deliveries") == {mine.id, open_run.id}
        assert snapshot["inventory"] == []
        assert len(snapshot["notifications"]) == 3

    def test_failed_refresh_keeps_previous_mirror(self, seed, monkeypatch):
        state = AppState(seed.admin.id)
        state.refresh(seed.admin)
        before = state.snapshot()

        def broken(*args, **kwargs):
            raise StoreUnavailable("Record store query failed")

        monkeypatch.setattr(record_store, "query", broken)

        with pytest.raises(StoreUnavailable):
            state.refresh(seed.admin)

        after = state.snapshot()
        assert after["error"] == "Record store query failed"
        assert after["shops"] == before["shops"]


class TestCommands:

    def test_snapshot_is_a_copy(self, seed):
        state = AppState(seed.admin.id)
        state.replace("shops", [{"id": "s1", "name": "Shop"}])

        snapshot = state.snapshot()
        snapshot["shops"][0]["name"] = "Changed"
        snapshot["shops"].append({"id": "s2"})

        assert state.snapshot()["shops"] == [{"id": "s1", "name": "Shop"}]

    def test_upsert_and_remove(self, seed):
        state = AppState(seed.admin.id)
        state.add("sales", {"id": "a", "total_cents": 1})
        state.upsert("sales", {"id": "a", "total_cents": 2})
        state.add("sales", {"id": "b", "total_cents": 3})
        state.remove("sales", "b")

        assert state.snapshot()["sales"] == [{"id": "a", "total_cents": 2}]

    def test_notification_feed_is_capped(self, seed):
        state = AppState(seed.admin.id, feed_limit=2)
        for n in range(3):
            state.add_notification({"id": str(n), "read": False})

        assert [n["id"] for n in state.snapshot()["notifications"]] == ["2", "1"]
        state.mark_notification_read("1")
        assert state.snapshot()["notifications"][1]["read"] is True

    def test_unknown_collection(self, seed):
        with pytest.raises(ValueError):
            AppState(seed.admin.id).replace("accounts", [])


class TestPersistence:

    def test_blob_round_trip(self, seed, stock):
        stock(seed.shop_a, seed.widget, current_stock=3)
        state = AppState(seed.manager_a.id)
        state.refresh(seed.manager_a)

        restored = AppState.from_blob(seed.manager_a.id, state.to_blob())

        assert restored.snapshot() == state.snapshot()

    def test_blob_of_another_principal_is_refused(self, seed):
        blob = AppState(seed.manager_a.id).to_blob()
        with pytest.raises(ValueError):
            AppState.from_blob(seed.manager_b.id, blob)

    def test_blob_cache(self, tmp_path):
        cache = BlobCache(str(tmp_path / "cache"))

        assert cache.read_blob("app_state:x") is None
        assert cache.write_blob("app_state:x", b"payload") is True
        assert cache.read_blob("app_state:x") == b"payload"
        assert cache.remove_blob("app_state:x") is True
        assert cache.read_blob("app_state:x") is None
        assert cache.remove_blob("app_state:x") is True

    def test_unwritable_cache_reports_failure(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_bytes(b"")
        cache = BlobCache(str(blocker))

        assert cache.write_blob("user:x", b"payload") is False

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        root = tmp_path / "cache"
        cache = BlobCache(str(root))
        assert cache.write_blob("app_state:x", b"old") is True

        def refuse_rename(src, dst):
            raise OSError("rename refused")

        monkeypatch.setattr(blob_cache.os, "replace", refuse_rename)

        assert cache.write_blob("app_state:x", b"new") is False
        assert sorted(p.name for p in root.iterdir()) == ["app_state_x.blob"]
        assert cache.read_blob("app_state:x") == b"old"


class TestRegistry:

    def test_login_opens_and_logout_closes(self, seed):
        registry = get_registry()

        principal, token = identity_service.authenticate(seed.manager_a.email, PASSWORD)

        state = registry.get(principal.id)
        assert state is not None
        assert state.snapshot()["selected_shop"]["id"] == seed.shop_a
        assert registry.cache.read_blob(user_key(principal.id)) is not None
        assert registry.cache.read_blob(state_key(principal.id)) is not None

        identity_service.end_session(token)

        assert registry.get(principal.id) is None
        assert registry.cache.read_blob(state_key(principal.id)) is None

    def test_open_warm_starts_when_store_is_down(self, seed, monkeypatch):
        registry = get_registry()
        warm = AppState(seed.admin.id)
        warm.replace("shops", [{"id": "cached-shop"}])
        registry.cache.write_blob(state_key(seed.admin.id), warm.to_blob())

        def broken(*args, **kwargs):
            raise StoreUnavailable("Record store query failed")

        monkeypatch.setattr(record_store, "query", broken)

        state, outcome = registry.open(seed.admin)

        assert not outcome.ok
        assert [f.step for f in outcome.failures] == ["refresh"]
        snapshot = state.snapshot()
        assert _ids(snapshot, "shops") == {"cached-shop"}
        assert snapshot["error"] == "Record store query failed"

        registry.close(seed.admin.id)

    def test_ensure_reuses_open_state(self, seed):
        registry = get_registry()
        first = registry.ensure(seed.admin)
        assert registry.ensure(seed.admin) is first
        registry.close(seed.admin.id)
