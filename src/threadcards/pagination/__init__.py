"""Deduplication, completeness estimation and progressive thread views."""

from .dedup import (
    Deduplicator,
    compute_dedup_key,
    content_fingerprint,
    dedupe,
    explicit_message_id,
)
from .completeness import estimate_completeness, round_half_up
from .loader import MessagePageFetcher, ThreadPage, ThreadViewBuilder

__all__ = [
    "Deduplicator",
    "compute_dedup_key",
    "content_fingerprint",
    "dedupe",
    "explicit_message_id",
    "estimate_completeness",
    "round_half_up",
    "MessagePageFetcher",
    "ThreadPage",
    "ThreadViewBuilder",
]
