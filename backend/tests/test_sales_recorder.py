"""
Sales recorder tests.

Verifies:
- Cart validation happens before any write
- Totals, discount rounding and the frozen item snapshot
- Stock decrements and the low stock notification
- Compensation when a decrement fails mid-cart
"""

from decimal import Decimal

import pytest

from multishop.errors import IdentityMismatch, NotFound, PartialFailure, StoreUnavailable, ValidationFailure
from multishop.models import Notification, Sale
from multishop.services import inventory_service, notification_service, record_store, sales_service


def _sell(seed, lines, **kwargs):
    kwargs.setdefault("payment_method", "cash")
    kwargs.setdefault("actor", seed.employee_a)
    return sales_service.record_sale(seed.shop_a, lines, **kwargs)


def _sale_count():
    return Sale.query.count()


# =============================================================================
# VALIDATION
# =============================================================================


class TestSaleValidation:

    def test_empty_cart(self, seed):
        with pytest.raises(ValidationFailure):
            _sell(seed, [])
        assert _sale_count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, "two", None])
    def test_quantity_must_be_positive(self, seed, stock, quantity):
        inventory_id = stock(seed.shop_a, seed.widget, current_stock=5)
        with pytest.raises(ValidationFailure):
            _sell(seed, [{"inventory_id": inventory_id, "quantity": quantity}])
        assert inventory_service.get_record(inventory_id).current_stock == 5

    def test_quantity_above_stock_changes_nothing(self, seed, stock):
        inventory_id = stock(seed.shop_a, seed.widget, current_stock=3, low_stock_threshold=2)
        _sell(seed, [{"inventory_id": inventory_id, "quantity": 2}])
        record = inventory_service.get_record(inventory_id)
        assert record.current_stock == 1
        assert inventory_service.is_low_stock(record)
        alerts = Notification.query.filter_by(user_id=seed.manager_a.id, type="low_stock").all()
        assert len(alerts) == 1

        with pytest.raises(ValidationFailure) as exc:
            _sell(seed, [{"inventory_id": inventory_id, "quantity": 5}])

        assert exc.value.details["available"] == 1
        assert inventory_service.get_record(inventory_id).current_stock == 1
        assert _sale_count() == 1

    def test_repeated_lines_are_summed_against_stock(self, seed, stock):
        inventory_id = stock(seed.shop_a, seed.widget, current_stock=3)
        with pytest.raises(ValidationFailure):
            _sell(seed, [
                {"inventory_id": inventory_id, "quantity": 2},
                {"inventory_id": inventory_id, "quantity": 2},
            ])
        assert inventory_service.get_record(inventory_id).current_stock == 3

    def test_record_from_another_shop(self, seed, stock):
        other = stock(seed.shop_b, seed.widget, current_stock=5)
        with pytest.raises(ValidationFailure):
            _sell(seed, [{"inventory_id": other, "quantity": 1}], actor=seed.admin)

    def test_unknown_inventory_record(self, seed):
        with pytest.raises(NotFound):
            _sell(seed, [{"inventory_id": "missing", "quantity": 1}])

    @pytest.mark.parametrize("discount", [-1, 100.01, "lots"])
    def test_discount_out_of_range(self, seed, stock, discount):
        inventory_id = stock(seed.shop_a, seed.widget, current_stock=5)
        with pytest.raises(ValidationFailure):
            _sell(seed, [{"inventory_id": inventory_id, "quantity": 1}], discount_percent=discount)

    def test_unknown_payment_method(self, seed, stock):
        inventory_id = stock(seed.shop_a, seed.widget, current_stock=5)
        with pytest.raises(ValidationFailure):
            _sell(seed, [{"inventory_id": inventory_id, "quantity": 1}], payment_method="barter")

    def test_staff_of_another_shop_cannot_sell(self, seed, stock):
        inventory_id = stock(seed.shop_a, seed.widget, current_stock=5)
        with pytest.raises(IdentityMismatch):
            _sell(seed, [{"inventory_id": inventory_id, "quantity": 1}], actor=seed.manager_b)


# =============================================================================
# RECORDING
# =============================================================================


class TestRecordSale:

    def test_totals_and_snapshot(self, seed, stock):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        gadget = stock(seed.shop_a, seed.gadget, current_stock=10)

        outcome = _sell(seed, [
            {"inventory_id": widget, "quantity": 2},
            {"inventory_id": gadget, "quantity": 1},
        ], discount_percent=10)

        sale = outcome.sale
        assert sale.subtotal_cents == 4550
        assert sale.discount_cents == 455
        assert sale.total_cents == 4095
        assert sale.customer_name == "Walk-in Customer"
        assert [line["product_name"] for line in sale.items] == ["Widget", "Gadget"]
        assert sale.items[0]["unit_price_cents"] == 1000
        assert sale.to_dict()["total"] == "40.95"

    def test_discount_rounds_half_up_to_the_cent(self, seed, stock):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        gadget = stock(seed.shop_a, seed.gadget, current_stock=10)

        sale = _sell(seed, [
            {"inventory_id": widget, "quantity": 2},
            {"inventory_id": gadget, "quantity": 1},
        ], discount_percent="12.5").sale

        # 4550 * 12.5% = 568.75
        assert sale.discount_cents == 569
        assert sale.total_cents == 3981

    def test_snapshot_survives_catalog_edits(self, seed, stock):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        sale = _sell(seed, [{"inventory_id": widget, "quantity": 1}]).sale

        record_store.update("products", seed.widget, name="Renamed", price_cents=9999)

        stored = sales_service.get_sale(sale.id)
        assert stored.items[0]["product_name"] == "Widget"
        assert stored.total_cents == 1000

    def test_stock_is_decremented(self, seed, stock):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        gadget = stock(seed.shop_a, seed.gadget, current_stock=4)

        outcome = _sell(seed, [
            {"inventory_id": widget, "quantity": 3},
            {"inventory_id": gadget, "quantity": 4},
        ])

        assert inventory_service.get_record(widget).current_stock == 7
        assert inventory_service.get_record(gadget).current_stock == 0
        decrements = [s for s in outcome.side_effects.steps if s.step == "decrement"]
        assert len(decrements) == 2
        assert all(s.ok for s in decrements)

    def test_identical_carts_are_two_sales(self, seed, stock):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        cart = [{"inventory_id": widget, "quantity": 2}]

        first = _sell(seed, cart).sale
        second = _sell(seed, cart).sale

        assert first.id != second.id
        assert _sale_count() == 2
        assert inventory_service.get_record(widget).current_stock == 6

    def test_list_sales_newest_first_and_scoped(self, seed, stock):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        other = stock(seed.shop_b, seed.widget, current_stock=10)
        first = _sell(seed, [{"inventory_id": widget, "quantity": 1}]).sale
        second = _sell(seed, [{"inventory_id": widget, "quantity": 1}]).sale
        sales_service.record_sale(
            seed.shop_b, [{"inventory_id": other, "quantity": 1}], payment_method="card", actor=seed.manager_b
        )

        listed = sales_service.list_sales(seed.shop_a)
        assert [s.id for s in listed][:2] in ([second.id, first.id], [first.id, second.id])
        assert {s.shop_id for s in listed} == {seed.shop_a}
        assert listed[0].created_at >= listed[-1].created_at


# =============================================================================
# LOW STOCK NOTIFICATION
# =============================================================================


class TestLowStockAlert:

    def test_reaching_threshold_notifies_once(self, seed, stock, monkeypatch):
        calls = []
        original = notification_service.notify

        def spy(*args, **kwargs):
            calls.append(args)
            return original(*args, **kwargs)

        monkeypatch.setattr(notification_service, "notify", spy)
        widget = stock(seed.shop_a, seed.widget, current_stock=5, low_stock_threshold=5)

        _sell(seed, [{"inventory_id": widget, "quantity": 1}])

        assert len(calls) == 1
        assert calls[0][1] == "low_stock"
        feed = Notification.query.filter_by(user_id=seed.manager_a.id).all()
        assert len(feed) == 1
        assert feed[0].message == "Low stock alert for product Widget"
        assert feed[0].data["current_stock"] == 4
        assert inventory_service.get_record(widget).current_stock == 4

    def test_notification_failure_keeps_the_sale(self, seed, stock, monkeypatch):
        def broken(*args, **kwargs):
            raise StoreUnavailable("notifications down")

        monkeypatch.setattr(notification_service, "notify", broken)
        widget = stock(seed.shop_a, seed.widget, current_stock=3, low_stock_threshold=5)

        outcome = _sell(seed, [{"inventory_id": widget, "quantity": 1}])

        assert inventory_service.get_record(widget).current_stock == 2
        assert outcome.sale.status == "completed"
        assert not outcome.side_effects.ok
        assert [f.step for f in outcome.side_effects.failures] == ["low_stock_notification"]


# =============================================================================
# COMPENSATION
# =============================================================================


class TestSaleCompensation:

    def test_failed_decrement_reverses_applied_lines(self, seed, stock, monkeypatch):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        gadget = stock(seed.shop_a, seed.gadget, current_stock=10)
        original = inventory_service.apply_delta

        def flaky(inventory_id, delta, reason, **kwargs):
            if inventory_id == gadget and reason == "sale":
                raise StoreUnavailable("inventory write failed")
            return original(inventory_id, delta, reason, **kwargs)

        monkeypatch.setattr(inventory_service, "apply_delta", flaky)

        with pytest.raises(PartialFailure) as exc:
            _sell(seed, [
                {"inventory_id": widget, "quantity": 2},
                {"inventory_id": gadget, "quantity": 1},
            ])

        details = exc.value.details
        steps = [(s["step"], s["ok"]) for s in details["steps"]]
        assert steps == [
            ("decrement", True),
            ("decrement", False),
            ("compensate", True),
            ("mark_reversed", True),
        ]
        assert inventory_service.get_record(widget).current_stock == 10
        assert inventory_service.get_record(gadget).current_stock == 10
        assert sales_service.get_sale(details["sale_id"]).status == "reversed"

    def test_reversed_sale_kept_for_audit(self, seed, stock, monkeypatch):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)

        def broken(inventory_id, delta, reason, **kwargs):
            raise StoreUnavailable("inventory write failed")

        monkeypatch.setattr(inventory_service, "apply_delta", broken)

        with pytest.raises(PartialFailure):
            _sell(seed, [{"inventory_id": widget, "quantity": 1}])

        sales = Sale.query.all()
        assert len(sales) == 1
        assert sales[0].status == "reversed"
        assert sales[0].total_cents == 1000
        assert Decimal(sales[0].to_dict()["total"]) == Decimal("10.00")
