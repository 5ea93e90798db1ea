"""Tests for progressive completeness estimation."""

from __future__ import annotations

import pytest

from threadcards.config import NormalizationSettings
from threadcards.errors import EstimationInputError
from threadcards.models import Confidence
from threadcards.pagination.completeness import estimate_completeness, round_half_up


def test_small_sample_of_large_conversation_is_low_confidence():
    """Three rows of a thousand are not enough to trust the ratio."""
    estimate = estimate_completeness(1000, 3, 3)

    assert estimate.ratio == 1.0
    assert estimate.estimated_total_normalized == 1000
    assert estimate.remaining == 997
    assert estimate.confidence == Confidence.LOW
    assert estimate.display_remaining is None


def test_sufficient_sample_with_small_remaining_is_high_confidence():
    """Enough rows and a small remainder may be shown."""
    estimate = estimate_completeness(20, 15, 10)

    assert estimate.ratio == 1.5
    assert estimate.estimated_total_normalized == 30
    assert estimate.remaining == 15
    assert estimate.confidence == Confidence.HIGH
    assert estimate.display_remaining == 15


def test_estimated_total_rounds_half_up():
    """5 * 0.5 = 2.5 rounds to 3."""
    estimate = estimate_completeness(5, 1, 2)

    assert estimate.estimated_total_normalized == 3
    assert estimate.remaining == 2


@pytest.mark.parametrize(
    "value,expected",
    [(0.0, 0), (0.4, 0), (0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2)],
)
def test_round_half_up(value, expected):
    """Halves round up, unlike Python's banker's rounding."""
    assert round_half_up(value) == expected


@pytest.mark.parametrize("total", [600, 1000, 10_000])
def test_large_remaining_is_never_confident(total):
    """More than 500 remaining is low confidence whatever the sample size."""
    estimate = estimate_completeness(total, 50, 50)

    assert estimate.remaining > 500
    assert estimate.confidence == Confidence.LOW


def test_remaining_is_never_negative():
    """Loading more cards than extrapolated clamps remaining at zero."""
    estimate = estimate_completeness(10, 30, 10)

    assert estimate.remaining == 0
    assert estimate.is_complete


def test_nothing_loaded_yet():
    """Zero loaded rows is a valid (low confidence) state."""
    estimate = estimate_completeness(0, 0, 0)

    assert estimate.ratio == 0.0
    assert estimate.remaining == 0
    assert estimate.confidence == Confidence.LOW


def test_min_sample_size_is_configurable():
    """A smaller sample threshold allows confidence earlier."""
    settings = NormalizationSettings(min_sample_size=3)

    estimate = estimate_completeness(10, 3, 3, settings)

    assert estimate.confidence == Confidence.HIGH
    assert estimate.display_remaining == 7


def test_negative_counts_are_rejected():
    """Impossible counts raise a ValueError subclass with details."""
    with pytest.raises(EstimationInputError) as exc_info:
        estimate_completeness(-1, 0, 0)

    assert exc_info.value.details == {"total_raw_count": -1}
    assert isinstance(exc_info.value, ValueError)

    with pytest.raises(ValueError):
        estimate_completeness(10, 0, -2)
