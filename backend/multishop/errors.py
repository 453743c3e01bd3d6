"""
Error taxonomy shared by every service.

Services raise these; routes turn them into JSON responses using
``http_status``. ``details`` carries structured context (offending field,
per-step results) for the caller.
"""
from __future__ import annotations


class MultishopError(Exception):
    """Base class for domain errors."""
    http_status = 500
    kind = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class NotFound(MultishopError):
    """Referenced record does not exist at access time."""
    http_status = 404
    kind = "not_found"


class ValidationFailure(MultishopError):
    """Input is missing, malformed, out of range, or exceeds known stock."""
    http_status = 400
    kind = "validation_failure"

    def __init__(self, message: str, details: dict | None = None, *, field: str | None = None):
        details = dict(details or {})
        if field is not None:
            details.setdefault("field", field)
        super().__init__(message, details)
        self.field = field


class StoreUnavailable(MultishopError):
    """The record store rejected or failed a call."""
    http_status = 503
    kind = "store_unavailable"


class PartialFailure(MultishopError):
    """A multi-step workflow completed some steps and failed others."""
    http_status = 409
    kind = "partial_failure"


class Unauthenticated(MultishopError):
    """Credentials or session token are missing, wrong, or expired."""
    http_status = 401
    kind = "unauthenticated"


class IdentityMismatch(MultishopError):
    """Principal lacks the role or shop scope an operation requires."""
    http_status = 403
    kind = "identity_mismatch"
