"""Diagnostics for per-record recovery decisions.

Normalization never surfaces errors to end users: a record that cannot be
normalized is omitted and ambiguous authorship is resolved by precedence.
Support staff still need to see *why* a card is missing or attributed the
way it is, so every such decision is captured as a :class:`Diagnostic` and
logged without message content (ids and decision names only).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    """Kinds of recovery decisions worth tracing."""

    AUTHORSHIP_CONFLICT = "authorship_conflict"
    INVALID_RECORD = "invalid_record"
    NORMALIZATION_FAILED = "normalization_failed"
    SEGMENTATION_FALLBACK = "segmentation_fallback"
    DUPLICATE_DROPPED = "duplicate_dropped"


_LOG_LEVELS = {
    DiagnosticKind.AUTHORSHIP_CONFLICT: logging.DEBUG,
    DiagnosticKind.DUPLICATE_DROPPED: logging.DEBUG,
    DiagnosticKind.SEGMENTATION_FALLBACK: logging.INFO,
    DiagnosticKind.INVALID_RECORD: logging.WARNING,
    DiagnosticKind.NORMALIZATION_FAILED: logging.ERROR,
}


class Diagnostic(BaseModel):
    """One traced decision about a single record."""

    kind: DiagnosticKind = Field(..., description="Decision category")
    record_id: Optional[str] = Field(default=None, description="Affected record id")
    message: str = Field(..., description="Short description without message content")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Decision details")

    model_config = {"frozen": True}


class DiagnosticsCollector:
    """Collect diagnostics for one batch and mirror them to the log.

    Authorship conflicts and dropped duplicates are routine; they are only
    logged when ``debug_trace`` is enabled. Invalid and failed records are
    always logged.
    """

    def __init__(self, *, debug_trace: bool = False):
        """Initialize collector.

        Args:
            debug_trace: Log routine decisions at debug level as well
        """
        self.debug_trace = debug_trace
        self._items: List[Diagnostic] = []

    def record(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        record_id: Optional[str] = None,
        **metadata: Any,
    ) -> Diagnostic:
        """Store a diagnostic and log it."""
        diagnostic = Diagnostic(
            kind=kind, record_id=record_id, message=message, metadata=metadata
        )
        self._items.append(diagnostic)

        level = _LOG_LEVELS[kind]
        if level > logging.DEBUG or self.debug_trace:
            logger.log(
                level,
                f"{kind.value}: {message}",
                extra={"record_id": record_id, "diagnostic_kind": kind.value},
            )
        return diagnostic

    def extend(self, diagnostics: List[Diagnostic]) -> None:
        """Adopt diagnostics produced elsewhere (already logged)."""
        self._items.extend(diagnostics)

    @property
    def items(self) -> List[Diagnostic]:
        """Diagnostics recorded so far, in order."""
        return list(self._items)

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        """Diagnostics of one kind."""
        return [item for item in self._items if item.kind == kind]

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["DiagnosticKind", "Diagnostic", "DiagnosticsCollector"]
