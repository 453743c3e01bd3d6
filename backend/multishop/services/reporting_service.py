# Overview: Reporting folds over an application-state snapshot; no store access.

"""
Aggregation & Reporting

Every function here is a pure fold over a snapshot produced by
AppState.snapshot(). Range bounds are inclusive; a None bound is open and
a bare date as the end bound covers that whole day.

- Sales are bucketed by created_at; reversed sales are excluded
- Expenses are bucketed by their date
- Money comes back as Decimal with two places
"""

from __future__ import annotations

from decimal import Decimal

from ..models.sales import SALE_STATUS_REVERSED
from ..money import from_cents
from ..time_utils import as_datetime
from ..validation import coerce_range
from .inventory_service import (
    STATUS_LOW_STOCK,
    STATUS_OUT_OF_STOCK,
    is_low_stock,
    stock_status,
)

UNKNOWN_PRODUCT = "Unknown Product"
UNCATEGORIZED = "Uncategorized"


def _in_range(value, low, high) -> bool:
    moment = as_datetime(value)
    if moment is None:
        return False
    if low is not None and moment < low:
        return False
    if high is not None and moment > high:
        return False
    return True


def _for_shop(record: dict, shop_id) -> bool:
    return shop_id is None or record.get("shop_id") == shop_id


def sales_in_range(snapshot: dict, shop_id=None, start=None, end=None) -> list[dict]:
    low, high = coerce_range(start, end)
    return [
        sale for sale in snapshot.get("sales", [])
        if sale.get("status") != SALE_STATUS_REVERSED
        and _for_shop(sale, shop_id)
        and _in_range(sale.get("created_at"), low, high)
    ]


def expenses_in_range(snapshot: dict, shop_id=None, start=None, end=None) -> list[dict]:
    low, high = coerce_range(start, end)
    return [
        expense for expense in snapshot.get("expenses", [])
        if _for_shop(expense, shop_id) and _in_range(expense.get("date"), low, high)
    ]


def sales_total(snapshot: dict, shop_id=None, start=None, end=None) -> Decimal:
    cents = sum(int(s.get("total_cents") or 0) for s in sales_in_range(snapshot, shop_id, start, end))
    return from_cents(cents)


def expense_total(snapshot: dict, shop_id=None, start=None, end=None) -> Decimal:
    cents = sum(int(e.get("amount_cents") or 0) for e in expenses_in_range(snapshot, shop_id, start, end))
    return from_cents(cents)


def profit(snapshot: dict, shop_id=None, start=None, end=None) -> Decimal:
    return sales_total(snapshot, shop_id, start, end) - expense_total(snapshot, shop_id, start, end)


def inventory_report(snapshot: dict, shop_id=None) -> list[dict]:
    """Inventory rows enriched with product name, category and stock status."""
    products = {p.get("id"): p for p in snapshot.get("products", [])}
    rows = []
    for record in snapshot.get("inventory", []):
        if not _for_shop(record, shop_id):
            continue
        product = products.get(record.get("product_id")) or {}
        row = dict(record)
        row["product_name"] = product.get("name") or UNKNOWN_PRODUCT
        row["product_category"] = product.get("category") or UNCATEGORIZED
        row["stock_status"] = stock_status(record)
        rows.append(row)
    rows.sort(key=lambda r: (r["product_category"], r["product_name"]))
    return rows


def dashboard_summary(snapshot: dict, shop_id=None, start=None, end=None) -> dict:
    sales = sales_in_range(snapshot, shop_id, start, end)
    report = inventory_report(snapshot, shop_id)
    revenue = sales_total(snapshot, shop_id, start, end)
    expenses = expense_total(snapshot, shop_id, start, end)
    return {
        "shop_id": shop_id,
        "sales_count": len(sales),
        "sales_total": str(revenue),
        "expense_total": str(expenses),
        "profit": str(revenue - expenses),
        "inventory_items": len(report),
        "low_stock_count": sum(1 for r in report if is_low_stock(r)),
        "out_of_stock_count": sum(1 for r in report if r["stock_status"] == STATUS_OUT_OF_STOCK),
        "low_stock_items": [
            {
                "inventory_id": r.get("id"),
                "product_name": r["product_name"],
                "current_stock": r.get("current_stock"),
                "low_stock_threshold": r.get("low_stock_threshold"),
            }
            for r in report if r["stock_status"] in (STATUS_LOW_STOCK, STATUS_OUT_OF_STOCK)
        ],
    }
