"""Message normalization.

Turns one raw storage row into a display-ready NormalizedMessage:

- Resolves authorship (agent / customer / system) and direction
- Splits the body into visible content and verbatim quoted blocks
- Parses To/Cc participants and builds a plain-text preview
- Computes the dedup key used for deduplication and memoization

``normalize_message`` is pure: equal inputs give equal outputs. The batch
variant ``normalize_messages`` recovers per record so that one bad row never
blanks a whole conversation.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import html2text
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from ..addresses import EmailAddress, header_value
from ..config import DEFAULT_SETTINGS, NormalizationSettings
from ..diagnostics import Diagnostic, DiagnosticKind, DiagnosticsCollector
from ..errors import InvalidRecordError
from ..models import NormalizationContext, NormalizedMessage, RawMessageRecord
from ..pagination.dedup import compute_dedup_key
from .identity import SenderIdentity, resolve_identity
from .quote_detector import find_quote_boundary

logger = logging.getLogger(__name__)


class NormalizationResult(BaseModel):
    """Outcome of normalizing a batch of records."""

    messages: List[NormalizedMessage] = Field(
        default_factory=list, description="Normalized messages, input order"
    )
    diagnostics: List[Diagnostic] = Field(
        default_factory=list, description="Recovery decisions taken for the batch"
    )

    model_config = {"frozen": True}

    @property
    def skipped_ids(self) -> List[str]:
        """Ids of records omitted from the result."""
        skipped = {DiagnosticKind.INVALID_RECORD, DiagnosticKind.NORMALIZATION_FAILED}
        return [item.record_id for item in self.diagnostics if item.kind in skipped]


def _html_converter() -> html2text.HTML2Text:
    converter = html2text.HTML2Text()
    converter.ignore_links = False
    converter.ignore_images = True
    converter.ignore_emphasis = False
    converter.body_width = 0  # No line wrapping
    return converter


def html_to_text(html: str) -> str:
    """Convert HTML to readable plain text."""
    try:
        return _html_converter().handle(html).strip()
    except Exception as e:
        logger.warning(f"HTML to text conversion failed: {e}")
        return BeautifulSoup(html, "html.parser").get_text(" ").strip()


def build_preview(body: str, is_html: bool, length: int) -> str:
    """Single-line plain-text snippet of a body.

    Args:
        body: Visible body (HTML or plain text)
        is_html: Whether the body is HTML
        length: Maximum preview length in characters

    Returns:
        Whitespace-collapsed snippet, at most ``length`` characters
    """
    if not body or length <= 0:
        return ""
    text = html_to_text(body) if is_html else body
    text = " ".join(text.split())
    if len(text) > length:
        text = text[:length].rstrip()
    return text


def normalize_message(
    record: RawMessageRecord,
    context: NormalizationContext,
    settings: Optional[NormalizationSettings] = None,
) -> NormalizedMessage:
    """Normalize one raw record.

    Args:
        record: Raw storage row
        context: Organizational context for the conversation
        settings: Normalization settings (defaults if omitted)

    Returns:
        NormalizedMessage with authorship, visible body and quoted blocks

    Raises:
        InvalidRecordError: If the record has no body
    """
    settings = settings or DEFAULT_SETTINGS
    if record.body is None:
        raise InvalidRecordError("Record has no body", record_id=record.id)

    identity = SenderIdentity.from_record(record)
    resolution = resolve_identity(identity, context, settings)
    split = find_quote_boundary(record.body, record.content_type)

    if split.has_quoted_content and context.debug_trace:
        logger.debug(
            f"Split {len(split.quoted_blocks)} quoted block(s) from record {record.id}",
            extra={"record_id": record.id, "detector": split.detector},
        )

    return NormalizedMessage(
        id=record.id,
        dedup_key=compute_dedup_key(record, settings),
        created_at=record.created_at,
        channel=record.channel or "email",
        content_type=record.content_type,
        from_address=identity.address,
        from_phone=identity.phone,
        to_addresses=EmailAddress.from_header(header_value(record.headers, "To")),
        cc_addresses=EmailAddress.from_header(header_value(record.headers, "Cc")),
        direction=resolution.direction,
        author_type=resolution.author_type,
        author_label=resolution.author_label,
        author_conflict=resolution.conflict,
        visible_body=split.visible_body,
        quoted_blocks=split.quoted_blocks,
        preview=build_preview(split.visible_body, record.is_html, settings.preview_length),
        is_internal=record.is_internal,
        attachments=list(record.attachments),
        source=record,
    )


def normalize_messages(
    records: Iterable[RawMessageRecord],
    context: NormalizationContext,
    settings: Optional[NormalizationSettings] = None,
) -> NormalizationResult:
    """Normalize a batch, skipping records that cannot be normalized.

    Invalid records (no body) and records that fail unexpectedly are omitted
    and reported as diagnostics; the rest of the batch is unaffected.

    Args:
        records: Deduplicated raw rows
        context: Organizational context, shared by the whole batch
        settings: Normalization settings (defaults if omitted)

    Returns:
        NormalizationResult with messages in input order and diagnostics
    """
    settings = settings or DEFAULT_SETTINGS
    collector = DiagnosticsCollector(debug_trace=context.debug_trace)
    messages = []

    for record in records:
        try:
            message = normalize_message(record, context, settings)
        except InvalidRecordError as e:
            collector.record(
                DiagnosticKind.INVALID_RECORD,
                e.message,
                record_id=record.id,
                code=e.code,
            )
            continue
        except Exception as e:
            collector.record(
                DiagnosticKind.NORMALIZATION_FAILED,
                f"Normalization failed: {type(e).__name__}",
                record_id=record.id,
                error_type=type(e).__name__,
            )
            logger.debug(f"Normalization failure detail for {record.id}: {e}", exc_info=True)
            continue

        if message.author_conflict:
            collector.record(
                DiagnosticKind.AUTHORSHIP_CONFLICT,
                "Stored sender kind disagrees with address matching",
                record_id=record.id,
                author_type=message.author_type.value,
            )
        messages.append(message)

    return NormalizationResult(messages=messages, diagnostics=collector.items)


__all__ = [
    "NormalizationResult",
    "html_to_text",
    "build_preview",
    "normalize_message",
    "normalize_messages",
]
