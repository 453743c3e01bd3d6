from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..time_utils import to_utc_z, utcnow

TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_APPROVED = "approved"
TRANSFER_STATUS_REJECTED = "rejected"
TRANSFER_TERMINAL_STATUSES = (TRANSFER_STATUS_APPROVED, TRANSFER_STATUS_REJECTED)


class InventoryRecord(db.Model):
    """
    Current stock of one product at one shop.

    Exactly one row per (shop_id, product_id). current_stock is a mutable
    counter owned by the inventory ledger; nothing else may compute a new
    value from an old one. It is nominally >= 0 but negative values are
    representable (see INVENTORY_ALLOW_NEGATIVE_STOCK).

    CONCURRENCY: version_id is SQLAlchemy's optimistic concurrency column.
    An UPDATE whose version no longer matches raises StaleDataError and the
    ledger re-reads and retries.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "product_id", name="uq_inventory_shop_product"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=False, index=True)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)

    last_restock_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_restock_quantity = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.String(32), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)
    updated_by = db.Column(db.String(32), nullable=True)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord id={self.id} shop_id={self.shop_id} "
            f"product_id={self.product_id} current_stock={self.current_stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "product_id": self.product_id,
            "current_stock": self.current_stock,
            "low_stock_threshold": self.low_stock_threshold,
            "last_restock_date": to_utc_z(self.last_restock_date),
            "last_restock_quantity": self.last_restock_quantity,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
        }


class TransferRequest(db.Model):
    """
    Intent to move stock between shops.

    LIFECYCLE:
    1. pending: created by the source shop; no stock has moved
    2. approved: receiving side accepted; source decremented, destination incremented
    3. rejected: receiving side declined; no stock moves

    approved and rejected are terminal. version_id guards the pending ->
    approved/rejected claim so two deciders cannot both win.
    """
    __tablename__ = "transfers"
    __table_args__ = (
        db.Index("ix_transfers_to_shop_status", "to_shop_id", "status"),
        db.Index("ix_transfers_from_shop_status", "from_shop_id", "status"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    from_shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=False)
    to_shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=False)
    product_id = db.Column(db.String(32), db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.String(32), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    approved_by = db.Column(db.String(32), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.String(32), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<TransferRequest id={self.id} {self.from_shop_id}->{self.to_shop_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_shop_id": self.from_shop_id,
            "to_shop_id": self.to_shop_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "notes": self.notes,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "version_id": self.version_id,
        }
