"""
Notification fan-out tests.

One notification per recipient; a failed write for one recipient never
blocks the others.
"""

import pytest

from multishop.errors import IdentityMismatch, StoreUnavailable
from multishop.ids import is_temporary_id
from multishop.models import Notification
from multishop.services import notification_service, record_store
from multishop.services.app_state import AppState


class TestRecipients:

    def test_shop_scope_reaches_its_managers_only(self, seed):
        outcome = notification_service.notify(seed.shop_a, "low_stock", "Low stock alert for product Widget")

        assert outcome.ok
        assert [n.user_id for n in Notification.query.all()] == [seed.manager_a.id]

    def test_target_role_reaches_every_holder(self, seed):
        outcome = notification_service.notify(
            None, "new_delivery", "New delivery request from Shop A", target_role="rider"
        )

        assert len(outcome.steps) == 3
        recipients = {n.user_id for n in Notification.query.all()}
        assert recipients == {seed.rider_1.id, seed.rider_2.id, seed.rider_3.id}

    def test_no_recipients_is_a_noop(self, seed):
        shop = record_store.create("shops", name="Unstaffed")

        outcome = notification_service.notify(shop.id, "low_stock", "Low stock alert for product Widget")

        assert outcome.ok
        assert outcome.steps == []
        assert Notification.query.count() == 0

    def test_payload_and_unread_flag(self, seed):
        notification_service.notify(
            seed.shop_b, "transfer_request", "New product transfer request for 3 units.", {"quantity": 3}
        )

        notification = Notification.query.one()
        assert notification.read is False
        assert notification.data == {"quantity": 3}
        assert notification.type == "transfer_request"


class TestPartialDelivery:

    def test_one_failed_write_does_not_block_the_rest(self, seed, monkeypatch):
        original = record_store.create
        writes = {"n": 0}

        def flaky_create(collection, **fields):
            if collection == "notifications":
                writes["n"] += 1
                if writes["n"] == 2:
                    raise StoreUnavailable("write rejected")
            return original(collection, **fields)

        monkeypatch.setattr(record_store, "create", flaky_create)

        outcome = notification_service.notify(
            None, "new_delivery", "New delivery request from Shop A", target_role="rider"
        )

        assert [s.ok for s in outcome.steps] == [True, False, True]
        assert len(outcome.failures) == 1
        assert Notification.query.count() == 2
        assert outcome.failures[0].detail["user_id"] == seed.rider_2.id

    def test_recipient_lookup_failure_is_reported(self, seed, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreUnavailable("query failed")

        monkeypatch.setattr(notification_service, "resolve_recipients", broken)

        outcome = notification_service.notify(seed.shop_a, "low_stock", "Low stock alert for product Widget")

        assert [f.step for f in outcome.failures] == ["resolve_recipients"]


class TestLocalEcho:

    def test_actor_among_recipients_sees_it_immediately(self, seed):
        state = AppState(seed.manager_a.id)

        notification_service.notify(
            seed.shop_a,
            "low_stock",
            "Low stock alert for product Widget",
            actor_id=seed.manager_a.id,
            state=state,
        )

        feed = state.snapshot()["notifications"]
        assert len(feed) == 1
        assert is_temporary_id(feed[0]["id"])
        assert feed[0]["read"] is False

    def test_actor_outside_recipients_gets_no_echo(self, seed):
        state = AppState(seed.employee_a.id)

        notification_service.notify(
            seed.shop_a,
            "low_stock",
            "Low stock alert for product Widget",
            actor_id=seed.employee_a.id,
            state=state,
        )

        assert state.snapshot()["notifications"] == []

    def test_refresh_replaces_echo_with_stored_record(self, seed):
        state = AppState(seed.manager_a.id)
        notification_service.notify(
            seed.shop_a, "low_stock", "Low stock alert for product Widget",
            actor_id=seed.manager_a.id, state=state,
        )

        state.refresh(seed.manager_a)

        feed = state.snapshot()["notifications"]
        assert len(feed) == 1
        assert not is_temporary_id(feed[0]["id"])


class TestFeed:

    def test_feed_is_newest_first_and_bounded(self, app, seed):
        for n in range(5):
            notification_service.notify(seed.shop_a, "low_stock", f"Low stock alert for product {n}")

        feed = notification_service.list_for_user(seed.manager_a.id, limit=3)

        assert [n.message for n in feed] == [
            "Low stock alert for product 4",
            "Low stock alert for product 3",
            "Low stock alert for product 2",
        ]

    def test_mark_read(self, seed):
        notification_service.notify(seed.shop_a, "low_stock", "Low stock alert for product Widget")
        notification = Notification.query.one()

        updated = notification_service.mark_read(notification.id, user_id=seed.manager_a.id)

        assert updated.read is True

    def test_mark_read_of_someone_elses_notification(self, seed):
        notification_service.notify(seed.shop_a, "low_stock", "Low stock alert for product Widget")
        notification = Notification.query.one()

        with pytest.raises(IdentityMismatch):
            notification_service.mark_read(notification.id, user_id=seed.manager_b.id)

    def test_mark_all_read(self, seed):
        for _ in range(3):
            notification_service.notify(seed.shop_a, "low_stock", "Low stock alert for product Widget")

        assert notification_service.mark_all_read(seed.manager_a.id) == 3
        assert Notification.query.filter_by(read=False).count() == 0
