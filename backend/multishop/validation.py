from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

from .errors import ValidationFailure
from .time_utils import as_datetime, as_range_end, parse_iso_date


def coerce_int(value: Any, field: str, *, minimum: int | None = None, required: bool = True) -> int | None:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings (optional leading minus). Rejects
    bools, floats, decimals and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationFailure(f"{field} is required", field=field)
        return None

    if isinstance(value, bool):
        raise ValidationFailure(f"{field} must be an integer", field=field)

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationFailure(f"{field} must be a whole number", field=field)
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationFailure(f"{field} must be an integer", field=field)
    else:
        raise ValidationFailure(f"{field} must be an integer", field=field)

    if minimum is not None and result < minimum:
        raise ValidationFailure(f"{field} must be at least {minimum}", field=field)
    return result


def coerce_str(value: Any, field: str, *, max_length: int = 255, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationFailure(f"{field} is required", field=field)
        return None
    if not isinstance(value, str):
        raise ValidationFailure(f"{field} must be a string", field=field)
    value = value.strip()
    if not value:
        if required:
            raise ValidationFailure(f"{field} is required", field=field)
        return None
    if len(value) > max_length:
        raise ValidationFailure(f"{field} must be at most {max_length} characters", field=field)
    return value


def coerce_date(value: Any, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationFailure(f"{field} must be an ISO date", field=field)
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationFailure(f"{field} must be an ISO date", field=field)


def one_of(value: Any, field: str, allowed: Iterable[str]) -> str:
    allowed = tuple(allowed)
    normalized = (value or "").strip().lower() if isinstance(value, str) else value
    if normalized not in allowed:
        raise ValidationFailure(
            f"{field} must be one of: {', '.join(allowed)}",
            field=field,
        )
    return normalized


def coerce_range(start: Any, end: Any) -> tuple[datetime | None, datetime | None]:
    """Inclusive (start, end) bounds; a bare end date covers its whole day."""
    try:
        low = as_datetime(start)
    except (TypeError, ValueError):
        raise ValidationFailure("start must be an ISO date or datetime", field="start")
    try:
        high = as_range_end(end)
    except (TypeError, ValueError):
        raise ValidationFailure("end must be an ISO date or datetime", field="end")
    return low, high
