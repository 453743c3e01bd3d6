# Overview: Typed record-store adapter over the named collections; every call is its own unit of work.

"""
Record Store Adapter

Every collection is a table and every record a row with a generated string
id. Callers address collections by name so that workflows read the same
way regardless of which entity they touch.

UNIT OF WORK:
- Each call commits before returning; there is no multi-record transaction
- StaleDataError (optimistic concurrency conflict) is rolled back and
  re-raised so the caller can re-read and retry
- Any other SQLAlchemy failure is rolled back and raised as StoreUnavailable
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import NotFound, StoreUnavailable, ValidationFailure
from ..extensions import db
from ..models import (
    Delivery,
    Expense,
    InventoryRecord,
    Notification,
    Product,
    Sale,
    Shop,
    TransferRequest,
    User,
)
from ..time_utils import as_datetime, parse_iso_date

COLLECTIONS = {
    "shops": Shop,
    "products": Product,
    "inventory": InventoryRecord,
    "sales": Sale,
    "expenses": Expense,
    "deliveries": Delivery,
    "users": User,
    "notifications": Notification,
    "transfers": TransferRequest,
}

# Fields the store owns; callers never write them through update()
_PROTECTED_FIELDS = frozenset({"id", "version_id", "created_at"})


def _model(collection: str):
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValidationFailure(f"Unknown collection: {collection}", field="collection")


def _column(model, field: str):
    column = model.__table__.columns.get(field)
    if column is None:
        raise ValidationFailure(f"Unknown field {field} on {model.__tablename__}", field=field)
    return getattr(model, field)


def _coerce_bound(model, field: str, value):
    """Range bounds arrive as strings or dates; match them to the column type."""
    if value is None:
        return None
    python_type = None
    try:
        python_type = model.__table__.columns[field].type.python_type
    except NotImplementedError:
        return value
    if python_type is datetime:
        return as_datetime(value)
    if python_type is date and isinstance(value, str):
        return parse_iso_date(value)
    if python_type is date and isinstance(value, datetime):
        return value.date()
    return value


def _commit(action: str, collection: str) -> None:
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Record store %s on %s failed: %s", action, collection, exc)
        raise StoreUnavailable(
            f"Record store {action} failed",
            {"collection": collection, "reason": exc.__class__.__name__},
        )


def create(collection: str, **fields) -> Any:
    """Insert a record; the store assigns the id unless one is supplied."""
    model = _model(collection)
    for name in fields:
        _column(model, name)
    record = model(**fields)
    db.session.add(record)
    _commit("create", collection)
    return record


def find(collection: str, record_id: str | None):
    """Return the record or None."""
    model = _model(collection)
    if not record_id:
        return None
    try:
        return db.session.get(model, record_id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Record store get on %s failed: %s", collection, exc)
        raise StoreUnavailable("Record store get failed", {"collection": collection})


def get(collection: str, record_id: str | None):
    record = find(collection, record_id)
    if record is None:
        raise NotFound(
            f"{collection} record not found",
            {"collection": collection, "id": record_id},
        )
    return record


def update(collection: str, record_id: str, *, expected_version: int | None = None, **fields):
    """
    Patch fields on one record.

    When expected_version is given and the model is versioned, a mismatch
    raises StaleDataError without writing.
    """
    model = _model(collection)
    record = get(collection, record_id)
    for name in fields:
        if name in _PROTECTED_FIELDS:
            raise ValidationFailure(f"{name} cannot be updated", field=name)
        _column(model, name)

    if expected_version is not None and hasattr(record, "version_id"):
        if record.version_id != expected_version:
            raise StaleDataError(
                f"{collection} {record_id} changed: expected version "
                f"{expected_version}, found {record.version_id}"
            )

    for name, value in fields.items():
        setattr(record, name, value)
    _commit("update", collection)
    return record


def delete(collection: str, record_id: str) -> None:
    record = get(collection, record_id)
    db.session.delete(record)
    _commit("delete", collection)


def query(
    collection: str,
    *,
    where: dict | None = None,
    where_in: dict[str, Iterable] | None = None,
    between: tuple[str, Any, Any] | None = None,
    order_by: str | None = None,
    descending: bool = False,
    limit: int | None = None,
) -> list:
    """
    Filtered read.

    where: equality filters
    where_in: field -> allowed values (an empty list matches nothing)
    between: (field, low, high), inclusive; a None bound is open
    """
    model = _model(collection)
    q = db.session.query(model)

    for name, value in (where or {}).items():
        q = q.filter(_column(model, name) == value)

    for name, values in (where_in or {}).items():
        values = list(values)
        if not values:
            return []
        q = q.filter(_column(model, name).in_(values))

    if between is not None:
        name, low, high = between
        column = _column(model, name)
        low = _coerce_bound(model, name, low)
        high = _coerce_bound(model, name, high)
        if low is not None:
            q = q.filter(column >= low)
        if high is not None:
            q = q.filter(column <= high)

    if order_by:
        column = _column(model, order_by)
        q = q.order_by(column.desc() if descending else column.asc())

    if limit is not None:
        if limit < 0:
            raise ValidationFailure("limit must be non-negative", field="limit")
        q = q.limit(limit)

    try:
        return q.all()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Record store query on %s failed: %s", collection, exc)
        raise StoreUnavailable("Record store query failed", {"collection": collection})
