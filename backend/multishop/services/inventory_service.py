# Overview: Service-layer operations for inventory; the per-(shop, product) stock ledger.

"""
Inventory Ledger Invariants (authoritative)

Stock model:
- One InventoryRecord per (shop_id, product_id); current_stock is a mutable counter.
- Every change goes through apply_delta(); nothing else computes a new stock
  value from an old one.
- is_low_stock(r)    == r.current_stock <= r.low_stock_threshold
- is_out_of_stock(r) == r.current_stock == 0
- Negative results are representable and pass through unless
  INVENTORY_ALLOW_NEGATIVE_STOCK is false.

Concurrency:
- The read-compute-write in apply_delta() runs under run_with_retry();
  a concurrent write to the same record surfaces as StaleDataError through
  the version counter and the whole cycle is retried.

Side effects:
- A "sale" delta that lands at or below the threshold fans out one
  low_stock notification to the shop. A failure there is logged and
  recorded in the caller's outcome; it never undoes the stock change.
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFound, ValidationFailure
from ..models.notifications import TYPE_LOW_STOCK
from ..time_utils import utcnow
from ..validation import coerce_int, coerce_str, one_of
from . import notification_service, record_store
from .concurrency import run_with_retry
from .outcome import PartialOutcome

REASON_RESTOCK = "restock"
REASON_SALE = "sale"
REASON_TRANSFER_OUT = "transfer_out"
REASON_TRANSFER_IN = "transfer_in"
REASON_SALE_REVERSAL = "sale_reversal"
REASON_TRANSFER_REVERSAL = "transfer_reversal"

REASONS = (
    REASON_RESTOCK,
    REASON_SALE,
    REASON_TRANSFER_OUT,
    REASON_TRANSFER_IN,
    REASON_SALE_REVERSAL,
    REASON_TRANSFER_REVERSAL,
)

STATUS_IN_STOCK = "in_stock"
STATUS_LOW_STOCK = "low_stock"
STATUS_OUT_OF_STOCK = "out_of_stock"


def _value(record, name: str) -> int:
    if isinstance(record, dict):
        return int(record.get(name) or 0)
    return int(getattr(record, name) or 0)


def is_low_stock(record) -> bool:
    """Accepts a model or a mirrored dict."""
    return _value(record, "current_stock") <= _value(record, "low_stock_threshold")


def is_out_of_stock(record) -> bool:
    return _value(record, "current_stock") == 0


def stock_status(record) -> str:
    if is_out_of_stock(record):
        return STATUS_OUT_OF_STOCK
    if is_low_stock(record):
        return STATUS_LOW_STOCK
    return STATUS_IN_STOCK


def find_stock(shop_id: str, product_id: str):
    records = record_store.query(
        "inventory",
        where={"shop_id": shop_id, "product_id": product_id},
        limit=1,
    )
    return records[0] if records else None


def get_stock(shop_id: str, product_id: str):
    record = find_stock(shop_id, product_id)
    if record is None:
        raise NotFound(
            "Product is not stocked at this shop",
            {"shop_id": shop_id, "product_id": product_id},
        )
    return record


def get_record(inventory_id: str):
    return record_store.get("inventory", inventory_id)


def list_inventory(shop_id: str | None = None) -> list:
    where = {"shop_id": shop_id} if shop_id else None
    return record_store.query("inventory", where=where, order_by="created_at")


def low_stock_records(shop_id: str | None = None) -> list:
    return [r for r in list_inventory(shop_id) if is_low_stock(r)]


def create_record(
    shop_id: str,
    product_id: str,
    *,
    current_stock=0,
    low_stock_threshold=0,
    notes=None,
    actor_id: str | None = None,
    state=None,
):
    """Open the ledger row for a product at a shop."""
    record_store.get("shops", shop_id)
    record_store.get("products", product_id)
    if find_stock(shop_id, product_id) is not None:
        raise ValidationFailure(
            "Inventory record already exists for this shop and product",
            {"shop_id": shop_id, "product_id": product_id},
        )

    current_stock = coerce_int(current_stock, "current_stock", minimum=0)
    low_stock_threshold = coerce_int(low_stock_threshold, "low_stock_threshold", minimum=0)
    fields = dict(
        shop_id=shop_id,
        product_id=product_id,
        current_stock=current_stock,
        low_stock_threshold=low_stock_threshold,
        notes=coerce_str(notes, "notes", max_length=2000),
        created_by=actor_id,
    )
    if current_stock > 0:
        fields.update(last_restock_date=utcnow(), last_restock_quantity=current_stock)

    record = record_store.create("inventory", **fields)
    if state is not None:
        state.upsert("inventory", record.to_dict())
    return record


def apply_delta(
    inventory_id: str,
    delta,
    reason: str,
    *,
    actor_id: str | None = None,
    low_stock_threshold=None,
    notes=None,
    outcome: PartialOutcome | None = None,
    state=None,
):
    """
    Apply a signed stock change and return the updated record.

    Restock deltas must be positive and also stamp last_restock_date and
    last_restock_quantity; they may set low_stock_threshold and notes.
    """
    reason = one_of(reason, "reason", REASONS)
    delta = coerce_int(delta, "delta")
    if reason == REASON_RESTOCK and delta < 1:
        raise ValidationFailure("Restock quantity must be at least 1", field="quantity")
    if low_stock_threshold is not None:
        low_stock_threshold = coerce_int(low_stock_threshold, "low_stock_threshold", minimum=0)
    notes = coerce_str(notes, "notes", max_length=2000)
    allow_negative = current_app.config.get("INVENTORY_ALLOW_NEGATIVE_STOCK", True)

    def _write():
        record = record_store.get("inventory", inventory_id)
        new_stock = record.current_stock + delta
        if new_stock < 0 and not allow_negative:
            raise ValidationFailure(
                "Stock cannot go below zero",
                {"inventory_id": inventory_id, "current_stock": record.current_stock, "delta": delta},
            )

        fields = {"current_stock": new_stock, "updated_by": actor_id}
        if reason == REASON_RESTOCK:
            fields["last_restock_date"] = utcnow()
            fields["last_restock_quantity"] = delta
            if low_stock_threshold is not None:
                fields["low_stock_threshold"] = low_stock_threshold
            if notes is not None:
                fields["notes"] = notes

        return record_store.update(
            "inventory", inventory_id, expected_version=record.version_id, **fields
        )

    record = run_with_retry(_write)
    current_app.logger.debug(
        "Inventory %s %s %+d -> %s", inventory_id, reason, delta, record.current_stock
    )

    if state is not None:
        state.upsert("inventory", record.to_dict())

    if reason == REASON_SALE and is_low_stock(record):
        _notify_low_stock(record, actor_id=actor_id, outcome=outcome, state=state)

    return record


def restock(
    inventory_id: str,
    quantity,
    *,
    low_stock_threshold=None,
    notes=None,
    actor_id: str | None = None,
    state=None,
):
    quantity = coerce_int(quantity, "quantity", minimum=1)
    return apply_delta(
        inventory_id,
        quantity,
        REASON_RESTOCK,
        actor_id=actor_id,
        low_stock_threshold=low_stock_threshold,
        notes=notes,
        state=state,
    )


def _notify_low_stock(record, *, actor_id, outcome, state) -> None:
    try:
        product = record_store.find("products", record.product_id)
        product_name = product.name if product is not None else "Unknown Product"
        result = notification_service.notify(
            record.shop_id,
            TYPE_LOW_STOCK,
            f"Low stock alert for product {product_name}",
            {
                "inventory_id": record.id,
                "product_id": record.product_id,
                "shop_id": record.shop_id,
                "current_stock": record.current_stock,
                "low_stock_threshold": record.low_stock_threshold,
            },
            actor_id=actor_id,
            state=state,
        )
    except Exception as exc:
        current_app.logger.warning("Low stock notification for inventory %s failed: %s", record.id, exc)
        if outcome is not None:
            outcome.record_failure("low_stock_notification", exc, inventory_id=record.id)
        return

    if outcome is not None:
        outcome.extend(result)
