"""Deduplication of raw message rows.

The same message can be stored more than once (webhook retries, re-synced
mailboxes, merged conversations). Rows are collapsed on a stable dedup key:

- ``explicit:<id>`` when the row carries an external message id or a
  Message-ID style header
- ``fp:<sha256>`` content fingerprint of sender kind, a truncated body hash
  and the UTC creation time otherwise

The fingerprint excludes the storage id, so rows with different ids but
identical content and time collapse into one.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, List, Optional

from ..addresses import header_value
from ..config import DEFAULT_SETTINGS, NormalizationSettings
from ..diagnostics import DiagnosticKind, DiagnosticsCollector
from ..models import RawMessageRecord

logger = logging.getLogger(__name__)

MESSAGE_ID_HEADERS = ("Message-ID", "Message-Id", "X-Message-Id")


def explicit_message_id(record: RawMessageRecord) -> Optional[str]:
    """Explicit identifier of a record, angle brackets stripped."""
    candidates = [record.external_id, header_value(record.headers, *MESSAGE_ID_HEADERS)]
    for candidate in candidates:
        if candidate is None:
            continue
        value = str(candidate).strip().strip("<>").strip()
        if value:
            return value
    return None


def content_fingerprint(
    record: RawMessageRecord, settings: Optional[NormalizationSettings] = None
) -> str:
    """SHA256 fingerprint of sender kind, body hash prefix and timestamp."""
    settings = settings or DEFAULT_SETTINGS
    body_hash = hashlib.sha256((record.body or "").encode("utf-8")).hexdigest()
    sender_kind = record.sender_kind.value if record.sender_kind else "unknown"
    material = "|".join(
        [
            sender_kind,
            body_hash[: settings.body_hash_length],
            record.created_at.isoformat(),
        ]
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def compute_dedup_key(
    record: RawMessageRecord, settings: Optional[NormalizationSettings] = None
) -> str:
    """Stable dedup key for a raw record.

    Args:
        record: Raw storage row
        settings: Settings controlling the fingerprint (defaults if omitted)

    Returns:
        ``"explicit:<id>"`` or ``"fp:<sha256 hex>"``
    """
    explicit = explicit_message_id(record)
    if explicit:
        return f"explicit:{explicit}"
    return f"fp:{content_fingerprint(record, settings)}"


class Deduplicator:
    """Remembers dedup keys across pages of one conversation view.

    Example:
        >>> dedup = Deduplicator()
        >>> first = dedup.add(page_one.records)
        >>> second = dedup.add(page_two.records)  # rows seen on page one are dropped
        >>> dedup.dropped_count
    """

    def __init__(
        self,
        settings: Optional[NormalizationSettings] = None,
        *,
        diagnostics: Optional[DiagnosticsCollector] = None,
    ):
        """Initialize deduplicator.

        Args:
            settings: Settings controlling the fingerprint (defaults if omitted)
            diagnostics: Collector receiving a diagnostic per dropped row
        """
        self.settings = settings or DEFAULT_SETTINGS
        self.diagnostics = diagnostics
        self._seen: set = set()
        self.dropped_count = 0

    def add(self, records: Iterable[RawMessageRecord]) -> List[RawMessageRecord]:
        """Keep records whose key was not seen before, in input order."""
        kept = []
        for record in records:
            key = compute_dedup_key(record, self.settings)
            if key in self._seen:
                self.dropped_count += 1
                if self.diagnostics is not None:
                    self.diagnostics.record(
                        DiagnosticKind.DUPLICATE_DROPPED,
                        "Duplicate record dropped",
                        record_id=record.id,
                        dedup_key=key,
                    )
                continue
            self._seen.add(key)
            kept.append(record)
        return kept

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def reset(self) -> None:
        """Forget every key seen so far."""
        self._seen.clear()
        self.dropped_count = 0


def dedupe(
    records: Iterable[RawMessageRecord], settings: Optional[NormalizationSettings] = None
) -> List[RawMessageRecord]:
    """Collapse duplicate records, first occurrence wins, order preserved.

    Args:
        records: Raw rows, possibly containing duplicates
        settings: Settings controlling the fingerprint (defaults if omitted)

    Returns:
        Records with unique dedup keys
    """
    deduplicator = Deduplicator(settings)
    kept = deduplicator.add(records)
    if deduplicator.dropped_count:
        logger.debug(f"Dropped {deduplicator.dropped_count} duplicate record(s)")
    return kept


__all__ = [
    "MESSAGE_ID_HEADERS",
    "explicit_message_id",
    "content_fingerprint",
    "compute_dedup_key",
    "Deduplicator",
    "dedupe",
]
