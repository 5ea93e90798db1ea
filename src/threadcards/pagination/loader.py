"""Progressive thread view assembly.

Composes the per-page pipeline used while a conversation is scrolled:

    fetched page -> dedupe (against every page so far) -> normalize
        -> [segment] -> merge into ordered cards -> estimate completeness

The builder never fetches anything itself. Fetching is owned by the caller
through a :class:`MessagePageFetcher`; the builder only consumes the pages
the caller hands over, so it stays synchronous and free of I/O.

Example:
    >>> builder = ThreadViewBuilder(context, segment=True)
    >>> page = fetcher.fetch(["conv-1"], cursor=None, page_size=50)
    >>> view = builder.add_page(page)
    >>> view.estimate.display_remaining
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from ..config import DEFAULT_SETTINGS, NormalizationSettings
from ..diagnostics import Diagnostic, DiagnosticsCollector
from ..models import CompletenessEstimate, MessagePage, NormalizationContext, NormalizedMessage
from ..normalization.normalizer import normalize_messages
from ..thread.ordering import merge_cards
from ..thread.segmenter import segment_message_into_cards
from .completeness import estimate_completeness
from .dedup import Deduplicator

logger = logging.getLogger(__name__)


# =============================================================================
# Collaborator Protocol
# =============================================================================


class MessagePageFetcher(Protocol):
    """Protocol for the paginated message fetch owned by the caller.

    Implementations query persistence for one or more conversations and
    return the raw rows of one page, newest first, together with the total
    raw row count of those conversations.
    """

    def fetch(
        self,
        conversation_ids: Sequence[str],
        cursor: Optional[Any],
        page_size: int,
    ) -> MessagePage:
        """Fetch one page of raw rows.

        Args:
            conversation_ids: Conversations merged into the view
            cursor: Cursor returned with the previous page (None for the first)
            page_size: Maximum rows to return

        Returns:
            MessagePage with records, total count and next cursor
        """
        ...


# =============================================================================
# View Model
# =============================================================================


class ThreadPage(BaseModel):
    """State of a thread view after one page was added."""

    cards: List[NormalizedMessage] = Field(
        default_factory=list, description="Every card so far, in view order"
    )
    new_cards: List[NormalizedMessage] = Field(
        default_factory=list, description="Cards contributed by this page"
    )
    estimate: CompletenessEstimate = Field(..., description="Completeness after this page")
    diagnostics: List[Diagnostic] = Field(
        default_factory=list, description="Recovery decisions taken for this page"
    )
    has_more: bool = Field(default=False, description="More pages are available")
    next_cursor: Optional[Any] = Field(default=None, description="Cursor for the next page")

    model_config = {"frozen": True}


# =============================================================================
# Builder
# =============================================================================


class ThreadViewBuilder:
    """Accumulate fetched pages into one ordered, deduplicated card list."""

    def __init__(
        self,
        context: NormalizationContext,
        settings: Optional[NormalizationSettings] = None,
        *,
        segment: bool = False,
        chronological: bool = False,
    ):
        """Initialize builder.

        Args:
            context: Organizational context, fixed for the whole view
            settings: Normalization settings (defaults if omitted)
            segment: Split quoted history into synthetic cards
            chronological: Oldest first instead of newest first
        """
        self.context = context
        self.settings = settings or DEFAULT_SETTINGS
        self.segment = segment
        self.chronological = chronological
        self.reset()

    def reset(self) -> None:
        """Forget every page added so far."""
        self._deduplicator = Deduplicator(self.settings)
        self._cards: List[NormalizedMessage] = []
        self._raw_loaded = 0

    @property
    def cards(self) -> List[NormalizedMessage]:
        """Cards accumulated so far, in view order."""
        return list(self._cards)

    @property
    def raw_loaded_count(self) -> int:
        """Raw rows received so far, duplicates included."""
        return self._raw_loaded

    def add_page(self, page: MessagePage) -> ThreadPage:
        """Add one fetched page to the view.

        Args:
            page: Page returned by the fetch collaborator

        Returns:
            ThreadPage with the merged cards, this page's cards, the
            completeness estimate and diagnostics
        """
        collector = DiagnosticsCollector(debug_trace=self.context.debug_trace)
        self._deduplicator.diagnostics = collector
        fresh = self._deduplicator.add(page.records)
        self._raw_loaded += len(page.records)

        result = normalize_messages(fresh, self.context, self.settings)
        collector.extend(result.diagnostics)

        new_cards: List[NormalizedMessage] = []
        for message in result.messages:
            if self.segment:
                new_cards.extend(
                    segment_message_into_cards(
                        message, self.context, self.settings, diagnostics=collector
                    )
                )
            else:
                new_cards.append(message)

        self._cards = merge_cards(self._cards, new_cards, chronological=self.chronological)
        estimate = estimate_completeness(
            page.total_raw_count, len(self._cards), self._raw_loaded, self.settings
        )

        logger.debug(
            f"Added page: {len(fresh)} new record(s), {len(new_cards)} card(s)",
            extra={
                "raw_loaded_count": self._raw_loaded,
                "card_count": len(self._cards),
                "confidence": estimate.confidence.value,
            },
        )

        return ThreadPage(
            cards=self.cards,
            new_cards=new_cards,
            estimate=estimate,
            diagnostics=collector.items,
            has_more=page.has_more,
            next_cursor=page.next_cursor,
        )


__all__ = ["MessagePageFetcher", "ThreadPage", "ThreadViewBuilder"]
