from __future__ import annotations

from datetime import date

from ..errors import ValidationFailure
from ..models.auth import ROLE_MANAGER
from ..money import to_cents
from ..time_utils import utcnow
from ..validation import coerce_date, coerce_range, coerce_str
from . import record_store
from .access_service import ensure_role, ensure_shop_access


def add_expense(shop_id: str, data: dict, *, actor, state=None):
    """Record a shop expense. Amount must be positive; date defaults to today."""
    ensure_role(actor, ROLE_MANAGER)
    ensure_shop_access(actor, shop_id)
    record_store.get("shops", shop_id)

    amount_cents = to_cents(data.get("amount"), field="amount")
    if amount_cents <= 0:
        raise ValidationFailure("amount must be greater than zero", field="amount")
    expense_date: date = coerce_date(data.get("date"), "date") or utcnow().date()

    expense = record_store.create(
        "expenses",
        shop_id=shop_id,
        category=coerce_str(data.get("category"), "category", max_length=120, required=True),
        amount_cents=amount_cents,
        date=expense_date,
        notes=coerce_str(data.get("notes"), "notes", max_length=2000),
        created_by=actor.id,
    )
    if state is not None:
        state.add("expenses", expense.to_dict())
    return expense


def list_expenses(shop_id: str | None = None, start=None, end=None) -> list:
    where = {"shop_id": shop_id} if shop_id else None
    between = None
    if start is not None or end is not None:
        between = ("date", *coerce_range(start, end))
    return record_store.query("expenses", where=where, between=between, order_by="date", descending=True)
