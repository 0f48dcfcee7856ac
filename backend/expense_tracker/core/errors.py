"""Error kinds raised by the bill ingestion core.

Every component-level operation either returns its result or raises
exactly one of the classes below.  Callers switch on the class rather
than on messages.  Each kind carries the HTTP status the API layer
answers with, so route handlers never translate errors themselves.

============================  ======  ==========================================
Kind                          Status  Meaning
============================  ======  ==========================================
``InputError``                400     malformed upload or missing file
``ServiceUnavailable``        503     recognition service unreachable
``NoTextDetected``            422     recognition succeeded but found no text
``ValidationError``           422     confirmation with an uncategorised item
``NotFound``                  404     unknown bill or staged item
``StoreError``                503     persistence failure, unit rolled back
``ConflictError``             409     lost a concurrent or state race
``OperationCancelled``        504     caller deadline expired, unit rolled back
============================  ======  ==========================================
"""

from __future__ import annotations

from typing import Any, Optional


class ExpenseTrackerError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error: str = "Internal error"

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "details": self.details if self.details is not None else self.message}


class InputError(ExpenseTrackerError):
    status_code = 400
    error = "Invalid input"


class ServiceUnavailable(ExpenseTrackerError):
    status_code = 503
    error = "Recognition service unavailable"


class NoTextDetected(ExpenseTrackerError):
    status_code = 422
    error = "No text detected"


class ValidationError(ExpenseTrackerError):
    status_code = 422
    error = "Validation error"


class NotFound(ExpenseTrackerError):
    status_code = 404
    error = "Not found"


class StoreError(ExpenseTrackerError):
    status_code = 503
    error = "Storage error"


class ConflictError(StoreError):
    """The record changed underneath the operation; nothing was applied."""

    status_code = 409
    error = "Conflict"


class OperationCancelled(ExpenseTrackerError):
    status_code = 504
    error = "Operation cancelled"


__all__ = [
    "ExpenseTrackerError",
    "InputError",
    "ServiceUnavailable",
    "NoTextDetected",
    "ValidationError",
    "NotFound",
    "StoreError",
    "ConflictError",
    "OperationCancelled",
]
