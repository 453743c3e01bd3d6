# Overview: Service-layer operations for inter-shop transfers; two-phase request and approval.

"""
Transfer Workflow

LIFECYCLE:
- request_transfer(): creates a pending request and notifies the receiving
  shop's managers. Inventory is never touched at this point.
- approve_transfer(): pending -> approved. Re-validates source stock, claims
  the status with a versioned write, then applies transfer_out at the source
  and transfer_in at the destination (opening the destination record when
  the product is new there). A failed stock step is reversed with
  transfer_reversal and the transfer is released back to pending.
- reject_transfer(): pending -> rejected. No stock moves.

approved and rejected are terminal; any further transition is a
ValidationFailure.

AUTHORITY:
- request: admin or a principal bound to the source shop
- approve/reject: admin or a principal bound to the destination shop
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import MultishopError, PartialFailure, ValidationFailure
from ..models.inventory import (
    TRANSFER_STATUS_APPROVED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_REJECTED,
    TRANSFER_TERMINAL_STATUSES,
)
from ..models.notifications import (
    TYPE_TRANSFER_APPROVED,
    TYPE_TRANSFER_REJECTED,
    TYPE_TRANSFER_REQUEST,
)
from ..time_utils import utcnow
from ..validation import coerce_int, coerce_str
from . import inventory_service, notification_service, record_store
from .access_service import ensure_shop_access
from .outcome import PartialOutcome


@dataclass
class TransferOutcome:
    transfer: object
    side_effects: PartialOutcome = field(default_factory=PartialOutcome)

    def to_dict(self) -> dict:
        return {
            "transfer": self.transfer.to_dict(),
            "side_effects": self.side_effects.to_dict(),
        }


def _ensure_pending(transfer) -> None:
    if transfer.status in TRANSFER_TERMINAL_STATUSES:
        raise ValidationFailure(
            f"Transfer is already {transfer.status}",
            {"transfer_id": transfer.id, "status": transfer.status},
        )


def _claim(transfer_id: str, version: int, **fields):
    """Move a pending transfer to a terminal status, guarded by its version."""
    try:
        return record_store.update(
            "transfers", transfer_id, expected_version=version, **fields
        )
    except StaleDataError:
        current_app.logger.warning("Transfer %s was decided concurrently", transfer_id)
        raise ValidationFailure(
            "Transfer was changed by another request",
            {"transfer_id": transfer_id},
        )


def _release(transfer_id: str, side_effects: PartialOutcome) -> None:
    try:
        record_store.update(
            "transfers",
            transfer_id,
            status=TRANSFER_STATUS_PENDING,
            approved_by=None,
            approved_at=None,
        )
        side_effects.record_success("release")
    except (MultishopError, SQLAlchemyError) as exc:
        current_app.logger.error("Transfer %s could not be returned to pending: %s", transfer_id, exc)
        side_effects.record_failure("release", exc)


def request_transfer(
    from_shop_id: str,
    to_shop_id: str,
    product_id: str,
    quantity,
    *,
    notes=None,
    actor=None,
    state=None,
) -> TransferOutcome:
    quantity = coerce_int(quantity, "quantity", minimum=1)
    if not from_shop_id or not to_shop_id:
        raise ValidationFailure("Both shops are required", field="to_shop_id")
    if from_shop_id == to_shop_id:
        raise ValidationFailure("Cannot transfer to the same shop", field="to_shop_id")
    if actor is not None:
        ensure_shop_access(actor, from_shop_id)

    record_store.get("shops", from_shop_id)
    record_store.get("shops", to_shop_id)
    product = record_store.get("products", product_id)

    source = inventory_service.get_stock(from_shop_id, product_id)
    if quantity > source.current_stock:
        raise ValidationFailure(
            f"Only {source.current_stock} units of {product.name} available",
            {"requested": quantity, "available": source.current_stock},
        )

    actor_id = actor.id if actor is not None else None
    transfer = record_store.create(
        "transfers",
        from_shop_id=from_shop_id,
        to_shop_id=to_shop_id,
        product_id=product_id,
        quantity=quantity,
        notes=coerce_str(notes, "notes", max_length=2000),
        status=TRANSFER_STATUS_PENDING,
        created_by=actor_id,
    )
    current_app.logger.info(
        "Transfer %s requested: %s x%s from %s to %s",
        transfer.id, product_id, quantity, from_shop_id, to_shop_id,
    )

    side_effects = notification_service.notify(
        to_shop_id,
        TYPE_TRANSFER_REQUEST,
        f"New product transfer request for {quantity} units.",
        {
            "transfer_id": transfer.id,
            "from_shop_id": from_shop_id,
            "product_id": product_id,
            "quantity": quantity,
        },
        actor_id=actor_id,
        state=state,
    )
    return TransferOutcome(transfer=transfer, side_effects=side_effects)


def approve_transfer(transfer_id: str, *, actor, state=None) -> TransferOutcome:
    """
    pending -> approved, then move the stock.

    The status is claimed first with a versioned write, so a second approval
    (retried or concurrent) fails before any stock moves. If a stock step
    fails afterwards, the moves already made are reversed and the transfer
    goes back to pending.
    """
    transfer = record_store.get("transfers", transfer_id)
    _ensure_pending(transfer)
    version = transfer.version_id
    ensure_shop_access(actor, transfer.to_shop_id)

    from_shop_id = transfer.from_shop_id
    to_shop_id = transfer.to_shop_id
    product_id = transfer.product_id
    quantity = transfer.quantity

    source = inventory_service.get_stock(from_shop_id, product_id)
    if quantity > source.current_stock:
        raise ValidationFailure(
            "Source shop no longer has enough stock",
            {"requested": quantity, "available": source.current_stock},
        )
    source_id = source.id

    _claim(
        transfer_id,
        version,
        status=TRANSFER_STATUS_APPROVED,
        approved_by=actor.id,
        approved_at=utcnow(),
    )

    side_effects = PartialOutcome()
    try:
        inventory_service.apply_delta(
            source_id, -quantity, inventory_service.REASON_TRANSFER_OUT, actor_id=actor.id, state=state
        )
    except (MultishopError, SQLAlchemyError) as exc:
        current_app.logger.error("Transfer %s could not debit source: %s", transfer_id, exc)
        side_effects.record_failure("transfer_out", exc, inventory_id=source_id, quantity=quantity)
        _release(transfer_id, side_effects)
        raise
    side_effects.record_success("transfer_out", inventory_id=source_id, quantity=quantity)

    destination_id = None
    try:
        destination = inventory_service.find_stock(to_shop_id, product_id)
        if destination is None:
            destination = inventory_service.create_record(
                to_shop_id, product_id, actor_id=actor.id, state=state
            )
        destination_id = destination.id
        inventory_service.apply_delta(
            destination_id, quantity, inventory_service.REASON_TRANSFER_IN, actor_id=actor.id, state=state
        )
    except (MultishopError, SQLAlchemyError) as exc:
        current_app.logger.error("Transfer %s could not credit destination: %s", transfer_id, exc)
        side_effects.record_failure("transfer_in", exc, inventory_id=destination_id, quantity=quantity)
        try:
            inventory_service.apply_delta(
                source_id, quantity, inventory_service.REASON_TRANSFER_REVERSAL, actor_id=actor.id, state=state
            )
            side_effects.record_success("compensate", inventory_id=source_id, quantity=quantity)
        except (MultishopError, SQLAlchemyError) as undo_exc:
            current_app.logger.error("Transfer %s compensation failed: %s", transfer_id, undo_exc)
            side_effects.record_failure("compensate", undo_exc, inventory_id=source_id, quantity=quantity)
        _release(transfer_id, side_effects)
        raise PartialFailure(
            "Transfer could not be completed",
            {"transfer_id": transfer_id, "steps": side_effects.to_dict()["steps"]},
        )
    side_effects.record_success("transfer_in", inventory_id=destination_id, quantity=quantity)
    current_app.logger.info("Transfer %s approved by %s", transfer_id, actor.id)

    side_effects.extend(notification_service.notify(
        from_shop_id,
        TYPE_TRANSFER_APPROVED,
        f"Transfer request for {quantity} units was approved.",
        {"transfer_id": transfer_id, "to_shop_id": to_shop_id, "product_id": product_id, "quantity": quantity},
        actor_id=actor.id,
        state=state,
    ))
    return TransferOutcome(transfer=record_store.get("transfers", transfer_id), side_effects=side_effects)


def reject_transfer(transfer_id: str, *, actor, reason=None, state=None) -> TransferOutcome:
    transfer = record_store.get("transfers", transfer_id)
    _ensure_pending(transfer)
    version = transfer.version_id
    ensure_shop_access(actor, transfer.to_shop_id)

    transfer = _claim(
        transfer_id,
        version,
        status=TRANSFER_STATUS_REJECTED,
        rejected_by=actor.id,
        rejected_at=utcnow(),
        rejection_reason=coerce_str(reason, "reason"),
    )
    current_app.logger.info("Transfer %s rejected by %s", transfer_id, actor.id)

    side_effects = notification_service.notify(
        transfer.from_shop_id,
        TYPE_TRANSFER_REJECTED,
        f"Transfer request for {transfer.quantity} units was rejected.",
        {"transfer_id": transfer_id, "to_shop_id": transfer.to_shop_id, "reason": transfer.rejection_reason},
        actor_id=actor.id,
        state=state,
    )
    return TransferOutcome(transfer=transfer, side_effects=side_effects)


def get_transfer(transfer_id: str):
    return record_store.get("transfers", transfer_id)


def list_transfers(shop_id: str | None = None, status: str | None = None) -> list:
    """Newest first. With shop_id, includes transfers in either direction."""
    where = {"status": status} if status else {}
    if not shop_id:
        return record_store.query("transfers", where=where or None, order_by="created_at", descending=True)

    outgoing = record_store.query("transfers", where={**where, "from_shop_id": shop_id})
    incoming = record_store.query("transfers", where={**where, "to_shop_id": shop_id})
    merged = {t.id: t for t in outgoing + incoming}
    return sorted(merged.values(), key=lambda t: t.created_at, reverse=True)
