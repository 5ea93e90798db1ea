"""Thread assembly: segmentation, ordering and header-based membership."""

from .segmenter import segment_message_into_cards, synthetic_id
from .ordering import merge_cards, order_cards
from .seed import (
    MessageThreadInfo,
    ThreadSeed,
    build_thread_seed,
    extract_message_ids,
    message_matches_thread,
    normalize_subject,
)

__all__ = [
    "segment_message_into_cards",
    "synthetic_id",
    "merge_cards",
    "order_cards",
    "MessageThreadInfo",
    "ThreadSeed",
    "build_thread_seed",
    "extract_message_ids",
    "message_matches_thread",
    "normalize_subject",
]
