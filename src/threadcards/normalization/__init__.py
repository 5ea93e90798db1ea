"""Message normalization: authorship, quote detection and normalization.

Main Components:
- resolve_author / resolve_identity: agent / customer / system attribution
- find_quote_boundary: visible body vs. quoted history split
- parse_attribution_line / parse_header_run: quoted-turn attribution
- normalize_message / normalize_messages: raw row to NormalizedMessage

Quick Start:
    >>> from threadcards.normalization import normalize_message
    >>> message = normalize_message(record, context)
    >>> message.visible_body, message.quoted_blocks
"""

from .identity import (
    AuthorResolution,
    SenderIdentity,
    is_agent_address,
    is_agent_phone,
    resolve_author,
    resolve_identity,
)
from .attribution import (
    NorwegianParserInfo,
    QuoteAttribution,
    parse_attribution_line,
    parse_header_run,
    parse_quoted_date,
)
from .html_lines import TextLine, extract_html_lines, split_text_lines
from .quote_detector import (
    AngleBracketStrategy,
    AttributionLineStrategy,
    HeaderBlockStrategy,
    HtmlContainerStrategy,
    QuoteBoundary,
    QuoteBoundaryDetector,
    QuoteDocument,
    QuoteStrategy,
    default_strategies,
    extract_block_attribution,
    find_quote_boundary,
)
from .normalizer import (
    NormalizationResult,
    build_preview,
    html_to_text,
    normalize_message,
    normalize_messages,
)

__all__ = [
    "AuthorResolution",
    "SenderIdentity",
    "is_agent_address",
    "is_agent_phone",
    "resolve_author",
    "resolve_identity",
    "NorwegianParserInfo",
    "QuoteAttribution",
    "parse_attribution_line",
    "parse_header_run",
    "parse_quoted_date",
    "TextLine",
    "extract_html_lines",
    "split_text_lines",
    "AngleBracketStrategy",
    "AttributionLineStrategy",
    "HeaderBlockStrategy",
    "HtmlContainerStrategy",
    "QuoteBoundary",
    "QuoteBoundaryDetector",
    "QuoteDocument",
    "QuoteStrategy",
    "default_strategies",
    "extract_block_attribution",
    "find_quote_boundary",
    "NormalizationResult",
    "build_preview",
    "html_to_text",
    "normalize_message",
    "normalize_messages",
]
