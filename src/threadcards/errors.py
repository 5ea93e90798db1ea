"""Centralized error definitions for threadcards.

Normalization is designed to degrade rather than fail: malformed bodies,
ambiguous authorship and incomplete organization context are all resolved
in-core. The errors below cover the few cases that must be signalled
explicitly to the caller.

Usage:
    from threadcards.errors import InvalidRecordError

    try:
        message = normalize_message(record, context)
    except InvalidRecordError as e:
        logger.warning(e.message, extra=e.details)
"""

from __future__ import annotations


# =============================================================================
# Base Error
# =============================================================================


class ThreadcardsError(Exception):
    """Base exception for all threadcards errors.

    Attributes:
        code: Error code for categorization
        recoverable: Whether retrying with the same input could succeed
        details: Additional error details for debugging
    """

    code: str = "THREADCARDS_ERROR"
    default_message: str = "An unexpected error occurred"
    recoverable: bool = True

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


# =============================================================================
# Record Errors
# =============================================================================


class InvalidRecordError(ThreadcardsError):
    """Raw record violates data integrity (e.g. a missing body).

    Raised per record; batch operations catch it, skip the record and keep
    going with the rest of the batch.
    """

    code = "INVALID_RECORD"
    default_message = "Raw message record is invalid"
    recoverable = False

    def __init__(
        self,
        message: str | None = None,
        *,
        record_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.record_id = record_id
        merged = dict(details or {})
        if record_id is not None:
            merged.setdefault("record_id", record_id)
        super().__init__(message, details=merged)


# =============================================================================
# Estimation Errors
# =============================================================================


class EstimationInputError(ThreadcardsError, ValueError):
    """Completeness estimation received impossible counts."""

    code = "ESTIMATION_INPUT_ERROR"
    default_message = "Completeness estimation inputs are invalid"
    recoverable = False


__all__ = [
    "ThreadcardsError",
    "InvalidRecordError",
    "EstimationInputError",
]
