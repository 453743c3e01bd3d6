from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..money import format_cents
from ..time_utils import to_utc_z, utcnow

SHOP_STATUS_ACTIVE = "active"
SHOP_STATUS_INACTIVE = "inactive"
SHOP_STATUSES = (SHOP_STATUS_ACTIVE, SHOP_STATUS_INACTIVE)


class Shop(db.Model):
    """
    A physical shop. Created and edited by admins only.

    Shops are never soft-deleted; status toggles between active and
    inactive. manager_id points at the user record of the shop's manager
    when one has been assigned.
    """
    __tablename__ = "shops"
    __table_args__ = (
        db.Index("ix_shops_status", "status"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=True)

    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    opening_hours = db.Column(db.String(120), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SHOP_STATUS_ACTIVE)
    manager_id = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.String(32), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)
    updated_by = db.Column(db.String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "phone": self.phone,
            "email": self.email,
            "opening_hours": self.opening_hours,
            "status": self.status,
            "manager_id": self.manager_id,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
        }


class Product(db.Model):
    """
    Catalog entry. Independent of any shop; per-shop stock lives in
    InventoryRecord.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category", "name"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.String(32), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)
    updated_by = db.Column(db.String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "image_url": self.image_url,
            "price_cents": self.price_cents,
            "price": format_cents(self.price_cents),
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
        }
