# Overview: Service-layer operations for deliveries; creation, forward-only status updates, rider pickup.

"""
Deliveries

- create_delivery(): pending run from a shop; notifies every rider
- update_delivery_status(): pending -> in_transit -> completed, never
  backwards. A rider touching an unassigned delivery picks it up; a
  delivery held by another rider is off limits. Notifies the origin
  shop's managers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import IdentityMismatch, ValidationFailure
from ..models.auth import ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_RIDER
from ..models.deliveries import DELIVERY_STATUS_ORDER, DELIVERY_STATUS_PENDING
from ..models.notifications import TYPE_DELIVERY_STATUS_UPDATE, TYPE_NEW_DELIVERY
from ..validation import coerce_str, one_of
from . import notification_service, record_store
from .access_service import ensure_role, ensure_shop_access
from .outcome import PartialOutcome


@dataclass
class DeliveryOutcome:
    delivery: object
    side_effects: PartialOutcome = field(default_factory=PartialOutcome)

    def to_dict(self) -> dict:
        return {
            "delivery": self.delivery.to_dict(),
            "side_effects": self.side_effects.to_dict(),
        }


def create_delivery(shop_id: str, data: dict, *, actor, state=None) -> DeliveryOutcome:
    ensure_role(actor, ROLE_MANAGER, ROLE_EMPLOYEE)
    ensure_shop_access(actor, shop_id)
    shop = record_store.get("shops", shop_id)

    to_shop_id = data.get("to_shop_id") or None
    if to_shop_id is not None:
        if to_shop_id == shop_id:
            raise ValidationFailure("Cannot deliver to the origin shop", field="to_shop_id")
        record_store.get("shops", to_shop_id)

    delivery = record_store.create(
        "deliveries",
        shop_id=shop_id,
        to_shop_id=to_shop_id,
        status=DELIVERY_STATUS_PENDING,
        customer_name=coerce_str(data.get("customer_name"), "customer_name"),
        customer_phone=coerce_str(data.get("customer_phone"), "customer_phone", max_length=32),
        address=coerce_str(data.get("address"), "address", max_length=512),
        notes=coerce_str(data.get("notes"), "notes", max_length=2000),
        created_by=actor.id,
    )
    current_app.logger.info("Delivery %s created at shop %s", delivery.id, shop_id)
    if state is not None:
        state.add("deliveries", delivery.to_dict())

    side_effects = notification_service.notify(
        None,
        TYPE_NEW_DELIVERY,
        f"New delivery request from {shop.name}",
        {"delivery_id": delivery.id, "shop_id": shop_id},
        target_role=ROLE_RIDER,
        actor_id=actor.id,
        state=state,
    )
    return DeliveryOutcome(delivery=delivery, side_effects=side_effects)


def update_delivery_status(delivery_id: str, status: str, *, actor, state=None) -> DeliveryOutcome:
    status = one_of(status, "status", DELIVERY_STATUS_ORDER)
    delivery = record_store.get("deliveries", delivery_id)

    fields = {"status": status, "updated_by": actor.id}
    if actor.role == ROLE_RIDER:
        if delivery.rider_id is None:
            fields["rider_id"] = actor.id
        elif delivery.rider_id != actor.id:
            raise IdentityMismatch("Delivery is assigned to another rider", {"delivery_id": delivery_id})
    else:
        ensure_role(actor, ROLE_MANAGER, ROLE_EMPLOYEE)
        ensure_shop_access(actor, delivery.shop_id)

    current_index = DELIVERY_STATUS_ORDER.index(delivery.status)
    if DELIVERY_STATUS_ORDER.index(status) <= current_index:
        raise ValidationFailure(
            f"Delivery cannot move from {delivery.status} to {status}",
            {"delivery_id": delivery_id, "status": delivery.status},
        )

    delivery = record_store.update("deliveries", delivery_id, **fields)
    current_app.logger.info("Delivery %s moved to %s by %s", delivery_id, status, actor.id)
    if state is not None:
        state.upsert("deliveries", delivery.to_dict())

    side_effects = notification_service.notify(
        delivery.shop_id,
        TYPE_DELIVERY_STATUS_UPDATE,
        f"Delivery status updated to {status}",
        {"delivery_id": delivery_id, "status": status, "rider_id": delivery.rider_id},
        actor_id=actor.id,
        state=state,
    )
    return DeliveryOutcome(delivery=delivery, side_effects=side_effects)


def get_delivery(delivery_id: str):
    return record_store.get("deliveries", delivery_id)


def list_deliveries(shop_id: str | None = None, rider_id: str | None = None, status: str | None = None) -> list:
    where = {}
    if shop_id:
        where["shop_id"] = shop_id
    if rider_id:
        where["rider_id"] = rider_id
    if status:
        where["status"] = status
    return record_store.query("deliveries", where=where or None, order_by="created_at", descending=True)
