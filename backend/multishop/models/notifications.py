from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z, utcnow

TYPE_LOW_STOCK = "low_stock"
TYPE_DELIVERY_STATUS_UPDATE = "delivery_status_update"
TYPE_TRANSFER_REQUEST = "transfer_request"
TYPE_TRANSFER_APPROVED = "transfer_approved"
TYPE_TRANSFER_REJECTED = "transfer_rejected"
TYPE_NEW_DELIVERY = "new_delivery"

NOTIFICATION_TYPES = (
    TYPE_LOW_STOCK,
    TYPE_DELIVERY_STATUS_UPDATE,
    TYPE_TRANSFER_REQUEST,
    TYPE_TRANSFER_APPROVED,
    TYPE_TRANSFER_REJECTED,
    TYPE_NEW_DELIVERY,
)


class Notification(db.Model):
    """
    One notification for one recipient.

    Written by the fan-out; the only mutation afterwards is read=True.
    Never deleted; feeds are bounded by a limit at read time.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id = db.Column(db.String(40), primary_key=True, default=new_id)
    user_id = db.Column(db.String(32), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    message = db.Column(db.String(512), nullable=False)
    data = db.Column(db.JSON, nullable=True)
    read = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "message": self.message,
            "data": dict(self.data or {}),
            "read": self.read,
            "created_at": to_utc_z(self.created_at),
        }
