# Overview: Bounded retry for optimistic-concurrency conflicts on versioned records.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a read-compute-write operation, retrying on StaleDataError.

    func must re-read everything it depends on; each attempt starts from a
    clean session. attempts defaults to STORE_RETRY_ATTEMPTS. The last
    conflict is re-raised once attempts are exhausted.
    """
    if attempts is None:
        attempts = current_app.config.get("STORE_RETRY_ATTEMPTS", 3)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Optimistic concurrency conflict persisted after %s attempts: %s",
                    attempts, exc,
                )
                raise
            current_app.logger.info("Concurrent write detected, retrying (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
