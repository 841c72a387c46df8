# Overview: Typed error taxonomy shared by every ledger service and route.

"""
Ledger errors.

Every service raises one of these synchronously; none are swallowed. The
route layer maps `http_status` / `code` onto the JSON error envelope.

Only ConcurrencyConflict is retryable by the caller. Everything else needs
caller or operator intervention.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for engine errors. `details` carries render context."""

    code = "LEDGER_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(LedgerError):
    """Malformed input (negative quantity, unknown VAT mode, ...)."""

    code = "VALIDATION_ERROR"
    http_status = 400


class DocumentNotFound(LedgerError):
    code = "NOT_FOUND"
    http_status = 404


class InvalidTransition(LedgerError):
    """Illegal status change for a document."""

    code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        document_id: int | None = None,
        action: str | None = None,
        current_status: str | None = None,
        details: dict | None = None,
    ):
        merged = {
            "kind": kind,
            "document_id": document_id,
            "action": action,
            "current_status": current_status,
        }
        merged.update(details or {})
        super().__init__(message, merged)


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class OverAllocation(LedgerError):
    """Allocation exceeds a document balance or the payment's unallocated amount."""

    code = "OVER_ALLOCATION"
    http_status = 409


class DuplicateNumber(LedgerError):
    """Sequencer integrity violation. Fatal: indicates a bug, never retried."""

    code = "DUPLICATE_NUMBER"
    http_status = 500


class ConcurrencyConflict(LedgerError):
    """Lost a lock/version race after the retry attempts ran out."""

    code = "CONCURRENCY_CONFLICT"
    http_status = 503
    retryable = True
