# Overview: Service-layer operations for the product catalog.

from __future__ import annotations

from flask import current_app

from ..errors import ValidationFailure
from ..models.auth import ROLE_ADMIN
from ..money import to_cents
from ..validation import coerce_str
from . import record_store
from .access_service import ensure_role


def _clean(data: dict, *, creating: bool) -> dict:
    fields = {}
    if creating or "name" in data:
        fields["name"] = coerce_str(data.get("name"), "name", required=True)
    if creating or "price" in data:
        price_cents = to_cents(data.get("price"), field="price")
        if price_cents < 0:
            raise ValidationFailure("price must be zero or more", field="price")
        fields["price_cents"] = price_cents
    if "category" in data:
        fields["category"] = coerce_str(data.get("category"), "category", max_length=120)
    if "description" in data:
        fields["description"] = coerce_str(data.get("description"), "description", max_length=5000)
    if "image_url" in data:
        fields["image_url"] = coerce_str(data.get("image_url"), "image_url", max_length=512)
    return fields


def create_product(data: dict, *, actor, state=None):
    ensure_role(actor, ROLE_ADMIN)
    product = record_store.create("products", created_by=actor.id, **_clean(data, creating=True))
    current_app.logger.info("Product %s created by %s", product.id, actor.id)
    if state is not None:
        state.upsert("products", product.to_dict())
    return product


def update_product(product_id: str, data: dict, *, actor, state=None):
    ensure_role(actor, ROLE_ADMIN)
    product = record_store.update("products", product_id, updated_by=actor.id, **_clean(data, creating=False))
    if state is not None:
        state.upsert("products", product.to_dict())
    return product


def delete_product(product_id: str, *, actor, state=None) -> None:
    """Products still stocked somewhere cannot be deleted."""
    ensure_role(actor, ROLE_ADMIN)
    record_store.get("products", product_id)
    if record_store.query("inventory", where={"product_id": product_id}, limit=1):
        raise ValidationFailure("Product is still stocked at a shop", {"product_id": product_id})
    record_store.delete("products", product_id)
    if state is not None:
        state.remove("products", product_id)


def get_product(product_id: str):
    return record_store.get("products", product_id)


def list_products(category: str | None = None) -> list:
    where = {"category": category} if category else None
    return record_store.query("products", where=where, order_by="name")
