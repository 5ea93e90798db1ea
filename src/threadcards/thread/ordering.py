"""Card ordering and merging.

Cards from every loaded page are kept in one list ordered by timestamp,
newest first by default. Equal timestamps are broken by the originating
record id and then by position within the record (original card before its
quoted turns) so the order is total and stable across reloads. Numeric ids
compare as numbers, so "9" sorts before "10"; other ids compare as text
after all numeric ones.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple, TypeVar

from ..models import NormalizedMessage

CardT = TypeVar("CardT", bound=NormalizedMessage)


def _record_id_key(record_id: str) -> Tuple[int, int, str]:
    if record_id.isascii() and record_id.isdigit():
        return 0, int(record_id), record_id
    return 1, 0, record_id


def _tiebreak_key(card: NormalizedMessage) -> Tuple[Tuple[int, int, str], int]:
    return _record_id_key(card.source.id), getattr(card, "position", 0)


def order_cards(cards: Iterable[CardT], chronological: bool = False) -> List[CardT]:
    """Order cards by timestamp.

    Args:
        cards: Normalized messages or synthetic cards
        chronological: Oldest first instead of newest first

    Returns:
        New list; timestamps are non-increasing (or non-decreasing when
        ``chronological``), ties ordered by record id then position
    """
    # Stable sorts: the tiebreak order survives the timestamp sort
    ordered = sorted(cards, key=_tiebreak_key)
    return sorted(ordered, key=lambda card: card.created_at, reverse=not chronological)


def merge_cards(
    existing: Sequence[CardT], new: Iterable[CardT], chronological: bool = False
) -> List[CardT]:
    """Merge newly loaded cards into an ordered list, dropping repeated ids.

    Args:
        existing: Cards already shown
        new: Cards from the latest page
        chronological: Oldest first instead of newest first

    Returns:
        Ordered list with each card id at most once (first occurrence wins)
    """
    seen = set()
    merged = []
    for card in list(existing) + list(new):
        if card.id in seen:
            continue
        seen.add(card.id)
        merged.append(card)
    return order_cards(merged, chronological=chronological)


__all__ = ["order_cards", "merge_cards"]
