"""Progressive completeness estimation.

Segmentation turns one raw row into one or more cards, so the number of
cards still unloaded cannot be read off the raw row count. The estimator
extrapolates the cards-per-row ratio observed so far and reports whether
the result is trustworthy enough to show.

Confidence is high only when enough rows were sampled and the remaining
count is small; otherwise the remaining count is withheld and presentation
falls back to a generic "load more" affordance.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from ..config import DEFAULT_SETTINGS, NormalizationSettings
from ..errors import EstimationInputError
from ..models import CompletenessEstimate, Confidence

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (non-negative input)."""
    return int(math.floor(value + 0.5))


def estimate_completeness(
    total_raw_count: int,
    normalized_loaded_count: int,
    raw_loaded_count: int,
    settings: Optional[NormalizationSettings] = None,
) -> CompletenessEstimate:
    """Estimate how many normalized cards remain unloaded.

    Args:
        total_raw_count: Raw rows in the whole conversation
        normalized_loaded_count: Cards produced from the rows loaded so far
        raw_loaded_count: Raw rows loaded so far
        settings: Sample-size and display thresholds (defaults if omitted)

    Returns:
        CompletenessEstimate; ``display_remaining`` is None when confidence
        is low

    Raises:
        EstimationInputError: If any count is negative
    """
    settings = settings or DEFAULT_SETTINGS
    counts = {
        "total_raw_count": total_raw_count,
        "normalized_loaded_count": normalized_loaded_count,
        "raw_loaded_count": raw_loaded_count,
    }
    negative = {name: value for name, value in counts.items() if value < 0}
    if negative:
        raise EstimationInputError(
            f"Counts must be non-negative: {', '.join(sorted(negative))}",
            details=negative,
        )

    ratio = normalized_loaded_count / max(raw_loaded_count, 1)
    estimated_total = round_half_up(total_raw_count * ratio)
    remaining = max(estimated_total - normalized_loaded_count, 0)

    confident = (
        raw_loaded_count >= settings.min_sample_size
        and remaining <= settings.confident_remaining_limit
    )

    estimate = CompletenessEstimate(
        total_raw_count=total_raw_count,
        loaded_normalized_count=normalized_loaded_count,
        raw_loaded_count=raw_loaded_count,
        ratio=ratio,
        estimated_total_normalized=estimated_total,
        remaining=remaining,
        confidence=Confidence.HIGH if confident else Confidence.LOW,
    )
    logger.debug(
        f"Completeness estimate: {remaining} remaining ({estimate.confidence.value})",
        extra={"raw_loaded_count": raw_loaded_count, "ratio": ratio},
    )
    return estimate


__all__ = ["round_half_up", "estimate_completeness"]
