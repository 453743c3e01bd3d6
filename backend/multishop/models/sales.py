from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..money import bps_to_percent, format_cents
from ..time_utils import to_iso_date, to_utc_z, utcnow

SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_REVERSED = "reversed"

PAYMENT_METHODS = ("cash", "card", "mobile", "other")


class Sale(db.Model):
    """
    A completed sale.

    items is a frozen snapshot of the cart at sale time: product name and
    unit price are copied, never re-derived from the catalog, so historical
    sales do not change when products are edited.

    Sales are never edited by callers. The only status change is
    completed -> reversed, written by the sales recorder when it had to
    compensate a failed stock decrement.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_shop_created", "shop_id", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=False, index=True)

    # [{product_id, product_name, quantity, unit_price_cents, subtotal_cents, inventory_id}]
    items = db.Column(db.JSON, nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    payment_method = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by = db.Column(db.String(32), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Sale id={self.id} shop_id={self.shop_id} total_cents={self.total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "items": [dict(item) for item in (self.items or [])],
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "subtotal_cents": self.subtotal_cents,
            "discount_percentage": str(bps_to_percent(self.discount_bps)),
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "subtotal": format_cents(self.subtotal_cents),
            "discount_amount": format_cents(self.discount_cents),
            "total": format_cents(self.total_cents),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }


class Expense(db.Model):
    """Append-only shop expense."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_shop_date", "shop_id", "date"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=False, index=True)
    category = db.Column(db.String(120), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.String(32), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "date": to_iso_date(self.date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
