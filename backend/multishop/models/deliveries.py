from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z, utcnow

DELIVERY_STATUS_PENDING = "pending"
DELIVERY_STATUS_IN_TRANSIT = "in_transit"
DELIVERY_STATUS_COMPLETED = "completed"

# Forward-only progression
DELIVERY_STATUS_ORDER = (
    DELIVERY_STATUS_PENDING,
    DELIVERY_STATUS_IN_TRANSIT,
    DELIVERY_STATUS_COMPLETED,
)


class Delivery(db.Model):
    """
    Delivery run from an origin shop to a customer or another shop.

    rider_id stays empty until a rider picks the delivery up.
    """
    __tablename__ = "deliveries"
    __table_args__ = (
        db.Index("ix_deliveries_shop_status", "shop_id", "status"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=False)
    to_shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=True)
    rider_id = db.Column(db.String(32), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=DELIVERY_STATUS_PENDING)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.String(32), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)
    updated_by = db.Column(db.String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<Delivery id={self.id} shop_id={self.shop_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "to_shop_id": self.to_shop_id,
            "rider_id": self.rider_id,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "address": self.address,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
        }
