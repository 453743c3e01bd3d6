"""Record id generation.

Store ids are opaque 32-char hex strings. Temporary ids are handed out for
records synthesized locally before the store has assigned a real one.
"""
from __future__ import annotations

import uuid

TEMPORARY_ID_PREFIX = "tmp-"


def new_id() -> str:
    return uuid.uuid4().hex


def temporary_id() -> str:
    return f"{TEMPORARY_ID_PREFIX}{uuid.uuid4().hex}"


def is_temporary_id(value: str | None) -> bool:
    return bool(value) and value.startswith(TEMPORARY_ID_PREFIX)
