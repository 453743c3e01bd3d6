# Overview: Service-layer operations for sales; validate a cart, persist the sale and decrement stock.

"""
Sales Recorder

FLOW:
1. Validate everything before any write: non-empty cart, quantity >= 1,
   quantity (summed per inventory record) <= known stock, every record
   belongs to the selling shop, discount within [0, 100], payment method.
2. Persist one Sale with a frozen snapshot of the cart lines.
3. Decrement stock line by line through the inventory ledger.

COMPENSATION: if a decrement fails, the decrements already applied are
reversed with "sale_reversal" deltas, the sale is marked reversed and
PartialFailure is raised carrying the sale id and every step result.

Not idempotent: two identical carts produce two sales and two decrements.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import MultishopError, NotFound, PartialFailure, ValidationFailure
from ..models.sales import PAYMENT_METHODS, SALE_STATUS_COMPLETED, SALE_STATUS_REVERSED
from ..money import apply_bps, percent_to_bps
from ..validation import coerce_int, coerce_range, coerce_str, one_of
from . import inventory_service, record_store
from .access_service import ensure_shop_access
from .outcome import PartialOutcome

DEFAULT_CUSTOMER_NAME = "Walk-in Customer"


@dataclass
class SaleOutcome:
    sale: object
    side_effects: PartialOutcome = field(default_factory=PartialOutcome)

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "side_effects": self.side_effects.to_dict(),
        }


def _build_lines(shop_id: str, cart_lines) -> list[dict]:
    if not isinstance(cart_lines, (list, tuple)) or not cart_lines:
        raise ValidationFailure("Cart is empty", field="items")

    requested = defaultdict(int)
    lines = []
    for index, raw in enumerate(cart_lines):
        if not isinstance(raw, dict):
            raise ValidationFailure(f"items[{index}] must be an object", field="items")

        inventory_id = raw.get("inventory_id")
        if not inventory_id:
            raise ValidationFailure(f"items[{index}].inventory_id is required", field="inventory_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity", minimum=1)

        record = record_store.get("inventory", inventory_id)
        if record.shop_id != shop_id:
            raise ValidationFailure(
                "Inventory record belongs to another shop",
                {"inventory_id": inventory_id, "shop_id": shop_id},
            )
        if raw.get("product_id") and raw["product_id"] != record.product_id:
            raise ValidationFailure(
                "Product does not match inventory record",
                {"inventory_id": inventory_id, "product_id": raw["product_id"]},
            )

        product = record_store.find("products", record.product_id)
        if product is None:
            raise NotFound("Product not found", {"product_id": record.product_id})

        requested[inventory_id] += quantity
        if requested[inventory_id] > record.current_stock:
            raise ValidationFailure(
                f"Only {record.current_stock} units of {product.name} available",
                {
                    "inventory_id": inventory_id,
                    "requested": requested[inventory_id],
                    "available": record.current_stock,
                },
            )

        lines.append({
            "inventory_id": inventory_id,
            "product_id": record.product_id,
            "product_name": product.name,
            "quantity": quantity,
            "unit_price_cents": product.price_cents,
            "subtotal_cents": product.price_cents * quantity,
        })
    return lines


def record_sale(
    shop_id: str,
    cart_lines,
    *,
    customer_name=None,
    customer_phone=None,
    payment_method=None,
    discount_percent=0,
    notes=None,
    actor=None,
    state=None,
) -> SaleOutcome:
    if actor is not None:
        ensure_shop_access(actor, shop_id)
    record_store.get("shops", shop_id)

    payment_method = one_of(payment_method, "payment_method", PAYMENT_METHODS)
    discount_bps = percent_to_bps(discount_percent, field="discount_percent")
    customer_name = coerce_str(customer_name, "customer_name") or DEFAULT_CUSTOMER_NAME
    customer_phone = coerce_str(customer_phone, "customer_phone", max_length=32)
    notes = coerce_str(notes, "notes", max_length=2000)
    lines = _build_lines(shop_id, cart_lines)

    subtotal_cents = sum(line["subtotal_cents"] for line in lines)
    discount_cents = apply_bps(subtotal_cents, discount_bps)
    actor_id = actor.id if actor is not None else None

    sale = record_store.create(
        "sales",
        shop_id=shop_id,
        items=lines,
        customer_name=customer_name,
        customer_phone=customer_phone,
        payment_method=payment_method,
        notes=notes,
        subtotal_cents=subtotal_cents,
        discount_bps=discount_bps,
        discount_cents=discount_cents,
        total_cents=subtotal_cents - discount_cents,
        status=SALE_STATUS_COMPLETED,
        created_by=actor_id,
    )

    side_effects = PartialOutcome()
    applied: list[dict] = []
    for line in lines:
        try:
            inventory_service.apply_delta(
                line["inventory_id"],
                -line["quantity"],
                inventory_service.REASON_SALE,
                actor_id=actor_id,
                outcome=side_effects,
                state=state,
            )
        except (MultishopError, SQLAlchemyError) as exc:
            current_app.logger.error("Stock decrement for sale %s failed: %s", sale.id, exc)
            side_effects.record_failure(
                "decrement", exc, inventory_id=line["inventory_id"], quantity=line["quantity"]
            )
            _compensate(sale, applied, side_effects, actor_id=actor_id, state=state)
            raise PartialFailure(
                "Sale could not be completed; applied stock changes were reversed",
                {"sale_id": sale.id, "steps": side_effects.to_dict()["steps"]},
            )
        side_effects.record_success("decrement", inventory_id=line["inventory_id"], quantity=line["quantity"])
        applied.append(line)

    if state is not None:
        state.add("sales", sale.to_dict())
    current_app.logger.info("Recorded sale %s at shop %s (%s lines)", sale.id, shop_id, len(lines))
    return SaleOutcome(sale=sale, side_effects=side_effects)


def _compensate(sale, applied: list[dict], outcome: PartialOutcome, *, actor_id, state) -> None:
    for line in reversed(applied):
        try:
            inventory_service.apply_delta(
                line["inventory_id"],
                line["quantity"],
                inventory_service.REASON_SALE_REVERSAL,
                actor_id=actor_id,
                state=state,
            )
        except (MultishopError, SQLAlchemyError) as exc:
            current_app.logger.error(
                "Compensation for sale %s on inventory %s failed: %s", sale.id, line["inventory_id"], exc
            )
            outcome.record_failure("compensate", exc, inventory_id=line["inventory_id"], quantity=line["quantity"])
            continue
        outcome.record_success("compensate", inventory_id=line["inventory_id"], quantity=line["quantity"])

    sale_id = sale.id
    try:
        sale = record_store.update("sales", sale_id, status=SALE_STATUS_REVERSED)
    except (MultishopError, SQLAlchemyError) as exc:
        current_app.logger.error("Could not mark sale %s reversed: %s", sale_id, exc)
        outcome.record_failure("mark_reversed", exc, sale_id=sale_id)
        return
    outcome.record_success("mark_reversed", sale_id=sale_id)
    if state is not None:
        state.add("sales", sale.to_dict())


def get_sale(sale_id: str):
    return record_store.get("sales", sale_id)


def list_sales(shop_id: str | None = None, start=None, end=None, limit: int | None = None) -> list:
    """Newest first; start/end bound created_at inclusively."""
    where = {"shop_id": shop_id} if shop_id else None
    start, end = coerce_range(start, end)
    between = ("created_at", start, end) if (start is not None or end is not None) else None
    return record_store.query(
        "sales",
        where=where,
        between=between,
        order_by="created_at",
        descending=True,
        limit=limit,
    )
