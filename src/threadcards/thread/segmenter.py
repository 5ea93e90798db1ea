"""Thread segmentation.

Turns one normalized message that carries quoted history into a sequence of
message-shaped cards so a long email chain reads like a conversation:

- Card 0 is the message itself
- Card i is built from quoted block i-1: attribution stripped, author
  re-resolved from the captured address, timestamp from the attribution
  date when it keeps ordering strict

When the quoted author cannot be identified, authorship alternates from the
previous card and the card is flagged ``author_inferred``. When no usable
date exists, the timestamp is the previous card's minus a small offset and
the card is flagged ``timestamp_inferred``; such times are for ordering only.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..config import DEFAULT_SETTINGS, NormalizationSettings
from ..diagnostics import DiagnosticKind, DiagnosticsCollector
from ..models import (
    AuthorType,
    NormalizationContext,
    NormalizedMessage,
    QuotedBlock,
    SenderKind,
    SyntheticCard,
)
from ..normalization.attribution import QuoteAttribution
from ..normalization.identity import AuthorResolution, SenderIdentity, resolve_identity
from ..normalization.normalizer import build_preview
from ..normalization.quote_detector import extract_block_attribution

logger = logging.getLogger(__name__)

_ALTERNATE = {
    AuthorType.AGENT: SenderKind.CUSTOMER,
    AuthorType.CUSTOMER: SenderKind.AGENT,
    AuthorType.SYSTEM: SenderKind.CUSTOMER,
}


def synthetic_id(parent_id: str, index: int) -> str:
    """Id of the card built from quoted block ``index`` of a message."""
    return f"{parent_id}::q{index}"


def segment_message_into_cards(
    message: NormalizedMessage,
    context: NormalizationContext,
    settings: Optional[NormalizationSettings] = None,
    *,
    diagnostics: Optional[DiagnosticsCollector] = None,
) -> List[SyntheticCard]:
    """Split a message and its quoted history into cards.

    Args:
        message: Normalized message
        context: Organizational context used to re-resolve quoted authors
        settings: Synthetic offset and labels (defaults if omitted)
        diagnostics: Collector receiving a diagnostic per fallback card

    Returns:
        ``1 + len(message.quoted_blocks)`` cards, newest first, with
        strictly decreasing timestamps
    """
    settings = settings or DEFAULT_SETTINGS
    cards = [SyntheticCard.from_message(message)]

    for index, block in enumerate(message.quoted_blocks):
        previous = cards[-1]
        try:
            card = _card_from_block(message, block, index, previous, context, settings)
        except Exception as e:
            if diagnostics is not None:
                diagnostics.record(
                    DiagnosticKind.SEGMENTATION_FALLBACK,
                    f"Quoted block {index} kept as raw text: {type(e).__name__}",
                    record_id=message.id,
                    quote_index=index,
                )
            else:
                logger.info(
                    f"Quoted block {index} of {message.id} kept as raw text: {type(e).__name__}"
                )
            card = _fallback_card(message, block, index, previous, context, settings)
        cards.append(card)

    return cards


def _card_from_block(
    message: NormalizedMessage,
    block: QuotedBlock,
    index: int,
    previous: SyntheticCard,
    context: NormalizationContext,
    settings: NormalizationSettings,
) -> SyntheticCard:
    attribution, body = extract_block_attribution(block, message.is_html)
    resolution, author_inferred = _resolve_quoted_author(attribution, previous, context, settings)

    stated = attribution.date if attribution else None
    if stated is not None and stated < previous.created_at:
        created_at = stated
        timestamp_inferred = False
    else:
        created_at = previous.created_at - settings.synthetic_offset
        timestamp_inferred = True

    visible_body = body or block.raw
    return SyntheticCard(
        id=synthetic_id(message.id, index),
        dedup_key=synthetic_id(message.dedup_key, index),
        created_at=created_at,
        channel=message.channel,
        content_type=message.content_type,
        from_address=attribution.email_address if attribution else None,
        direction=resolution.direction,
        author_type=resolution.author_type,
        author_label=resolution.author_label,
        author_conflict=False,
        visible_body=visible_body,
        preview=build_preview(visible_body, message.is_html, settings.preview_length),
        is_internal=message.is_internal,
        source=message.source,
        is_synthetic=True,
        quote_index=index,
        parent_id=message.id,
        timestamp_inferred=timestamp_inferred,
        author_inferred=author_inferred,
    )


def _resolve_quoted_author(
    attribution: Optional[QuoteAttribution],
    previous: SyntheticCard,
    context: NormalizationContext,
    settings: NormalizationSettings,
) -> Tuple[AuthorResolution, bool]:
    """Resolve a quoted author, returning (resolution, inferred)."""
    address = attribution.email_address if attribution else None
    name = attribution.name if attribution else None

    if address is not None:
        identity = SenderIdentity(address=address, name=name)
        return resolve_identity(identity, context, settings), False

    if name and context.customer_name and name.casefold() == context.customer_name.casefold():
        identity = SenderIdentity(sender_kind=SenderKind.CUSTOMER, name=name)
        return resolve_identity(identity, context, settings), False

    return _alternate_author(previous, name, context, settings), True


def _alternate_author(
    previous: SyntheticCard,
    name: Optional[str],
    context: NormalizationContext,
    settings: NormalizationSettings,
) -> AuthorResolution:
    identity = SenderIdentity(sender_kind=_ALTERNATE[previous.author_type], name=name)
    return resolve_identity(identity, context, settings)


def _fallback_card(
    message: NormalizedMessage,
    block: QuotedBlock,
    index: int,
    previous: SyntheticCard,
    context: NormalizationContext,
    settings: NormalizationSettings,
) -> SyntheticCard:
    resolution = _alternate_author(previous, None, context, settings)
    return SyntheticCard(
        id=synthetic_id(message.id, index),
        dedup_key=synthetic_id(message.dedup_key, index),
        created_at=previous.created_at - settings.synthetic_offset,
        channel=message.channel,
        content_type=message.content_type,
        direction=resolution.direction,
        author_type=resolution.author_type,
        author_label=resolution.author_label,
        visible_body=block.raw,
        is_internal=message.is_internal,
        source=message.source,
        is_synthetic=True,
        quote_index=index,
        parent_id=message.id,
        timestamp_inferred=True,
        author_inferred=True,
    )


__all__ = ["synthetic_id", "segment_message_into_cards"]
