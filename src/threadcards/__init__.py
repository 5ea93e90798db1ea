"""threadcards: message normalization and thread segmentation.

Turns raw support-inbox message rows (email, chat, SMS) into a stable,
deduplicated, ordered sequence of display-ready message cards.

Main Components:
- normalize_message / normalize_messages: authorship + quote splitting
- find_quote_boundary: visible body vs. quoted history
- segment_message_into_cards: quoted history as synthetic cards
- dedupe / Deduplicator: duplicate row collapsing
- estimate_completeness: how many cards remain unloaded
- ThreadViewBuilder: page-by-page assembly of a thread view

Quick Start:
    >>> from threadcards import NormalizationContext, RawMessageRecord, normalize_message
    >>> context = NormalizationContext(agent_emails=["agent@acme.com"])
    >>> record = RawMessageRecord.model_validate(row)
    >>> message = normalize_message(record, context)
"""

from .errors import EstimationInputError, InvalidRecordError, ThreadcardsError
from .config import DEFAULT_SETTINGS, NormalizationSettings
from .addresses import EmailAddress
from .models import (
    AttachmentMetadata,
    AuthorType,
    CompletenessEstimate,
    Confidence,
    Direction,
    MessagePage,
    NormalizationContext,
    NormalizedMessage,
    QuotedBlock,
    QuoteKind,
    QuoteSplit,
    RawMessageRecord,
    SenderKind,
    SyntheticCard,
)
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticsCollector

# Loaded before normalization: the normalizer imports pagination.dedup
from .pagination import (
    Deduplicator,
    MessagePageFetcher,
    ThreadPage,
    ThreadViewBuilder,
    compute_dedup_key,
    dedupe,
    estimate_completeness,
)
from .normalization import (
    AuthorResolution,
    NormalizationResult,
    QuoteAttribution,
    QuoteBoundaryDetector,
    QuoteStrategy,
    find_quote_boundary,
    normalize_message,
    normalize_messages,
    resolve_author,
)
from .thread import (
    ThreadSeed,
    build_thread_seed,
    extract_message_ids,
    merge_cards,
    message_matches_thread,
    normalize_subject,
    order_cards,
    segment_message_into_cards,
)

__version__ = "0.1.0"

__all__ = [
    "ThreadcardsError",
    "InvalidRecordError",
    "EstimationInputError",
    "NormalizationSettings",
    "DEFAULT_SETTINGS",
    "EmailAddress",
    "AttachmentMetadata",
    "AuthorType",
    "CompletenessEstimate",
    "Confidence",
    "Direction",
    "MessagePage",
    "NormalizationContext",
    "NormalizedMessage",
    "QuotedBlock",
    "QuoteKind",
    "QuoteSplit",
    "RawMessageRecord",
    "SenderKind",
    "SyntheticCard",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticsCollector",
    "Deduplicator",
    "MessagePageFetcher",
    "ThreadPage",
    "ThreadViewBuilder",
    "compute_dedup_key",
    "dedupe",
    "estimate_completeness",
    "AuthorResolution",
    "NormalizationResult",
    "QuoteAttribution",
    "QuoteBoundaryDetector",
    "QuoteStrategy",
    "find_quote_boundary",
    "normalize_message",
    "normalize_messages",
    "resolve_author",
    "ThreadSeed",
    "build_thread_seed",
    "extract_message_ids",
    "merge_cards",
    "message_matches_thread",
    "normalize_subject",
    "order_cards",
    "segment_message_into_cards",
    "__version__",
]
