"""Tests for reply attribution parsing.

Tests cover:
- English "On ... wrote:" lines with bracketed, bare and missing addresses
- Norwegian "Den ... kl. ... skrev", "På ... skrev" and "Skrev ...:" lines
- Nested (">"-prefixed) attribution lines
- Outlook header runs and forward markers
- Deterministic date parsing
"""

from __future__ import annotations

from datetime import datetime, timezone

from threadcards.normalization.attribution import (
    is_attribution_start,
    is_separator,
    parse_attribution_line,
    parse_header_field,
    parse_header_run,
    parse_quoted_date,
)


# ============================================================================
# English Attribution Lines
# ============================================================================


def test_english_attribution_with_bracketed_address():
    """Name, address and date are extracted."""
    attribution = parse_attribution_line(
        "On Mon, Jan 1, 2024 at 10:00 AM John <john@x.com> wrote:"
    )

    assert attribution is not None
    assert attribution.name == "John"
    assert attribution.address == "john@x.com"
    assert attribution.date == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert attribution.language == "en"


def test_english_attribution_with_bare_address():
    """Bare addresses are accepted without a display name."""
    attribution = parse_attribution_line(
        "On Thu, Jan 4, 2024 at 3:30 PM customer@example.com wrote:"
    )

    assert attribution is not None
    assert attribution.name is None
    assert attribution.address == "customer@example.com"
    assert attribution.date == datetime(2024, 1, 4, 15, 30, tzinfo=timezone.utc)


def test_english_attribution_without_address():
    """The author may be given by name only."""
    attribution = parse_attribution_line("On 1/2/2024, Jane Doe wrote:")

    assert attribution is not None
    assert attribution.name == "Jane Doe"
    assert attribution.address is None
    assert attribution.date == datetime(2024, 1, 2, tzinfo=timezone.utc)


def test_nested_attribution_line_is_recognized():
    """Leading quote markers are ignored for matching."""
    attribution = parse_attribution_line(
        ">> On Mon, Jan 1, 2024 at 10:00 AM John <john@x.com> wrote:"
    )

    assert attribution is not None
    assert attribution.address == "john@x.com"


def test_mailto_link_address():
    """Outlook style [mailto:...] addresses are unwrapped."""
    attribution = parse_attribution_line(
        "On Mon, Jan 1, 2024 at 10:00 AM John Doe [mailto:John@X.com] wrote:"
    )

    assert attribution is not None
    assert attribution.address == "john@x.com"
    assert attribution.name == "John Doe"


def test_regular_sentences_are_not_attributions():
    """Lines starting with "On" are only attributions when they end in wrote:."""
    assert parse_attribution_line("On Monday we will ship the fix.") is None
    assert parse_attribution_line("") is None
    assert is_attribution_start("On Monday we will ship the fix.")
    assert not is_attribution_start("Thanks for the update")


# ============================================================================
# Norwegian Attribution Lines
# ============================================================================


def test_norwegian_attribution_with_time():
    """Den <date> kl. <time> skrev <name> <address>:"""
    attribution = parse_attribution_line(
        "Den 4. jan. 2024 kl. 15:30 skrev Kari Nordmann <kari@example.no>:"
    )

    assert attribution is not None
    assert attribution.language == "no"
    assert attribution.name == "Kari Nordmann"
    assert attribution.address == "kari@example.no"
    assert attribution.date == datetime(2024, 1, 4, 15, 30, tzinfo=timezone.utc)


def test_norwegian_paa_attribution():
    """På <date> skrev <name> <address>:"""
    attribution = parse_attribution_line("På 4. januar 2024 skrev Kari <kari@example.no>:")

    assert attribution is not None
    assert attribution.language == "no"
    assert attribution.address == "kari@example.no"
    assert attribution.date == datetime(2024, 1, 4, tzinfo=timezone.utc)


def test_norwegian_skrev_attribution():
    """Skrev <name> <address>: with an optional trailing date."""
    attribution = parse_attribution_line("Skrev Kari Nordmann <kari@example.no>:")

    assert attribution is not None
    assert attribution.language == "no"
    assert attribution.name == "Kari Nordmann"
    assert attribution.address == "kari@example.no"
    assert attribution.date is None

    dated = parse_attribution_line("Skrev Kari <kari@example.no> den 4. januar 2024:")
    assert dated.address == "kari@example.no"
    assert dated.date == datetime(2024, 1, 4, tzinfo=timezone.utc)


def test_skrev_sentence_without_address_is_not_an_attribution():
    """Ordinary sentences starting with "Skrev" need an author address."""
    assert parse_attribution_line("Skrev under kontrakten i går:") is None


# ============================================================================
# Header Runs
# ============================================================================


def test_header_field_aliases():
    """Norwegian field names map to their English counterparts."""
    assert parse_header_field("Fra: Kari <kari@example.no>") == ("from", "Kari <kari@example.no>")
    assert parse_header_field("Sendt: 4. januar 2024 15:30") == ("sent", "4. januar 2024 15:30")
    assert parse_header_field("Hello there") is None


def test_outlook_header_run():
    """Separator plus From/Sent fields yield an attribution."""
    attribution = parse_header_run(
        [
            "-----Original Message-----",
            "From: John Doe [mailto:john@x.com]",
            "Sent: Thursday, January 4, 2024 3:30 PM",
            "To: support@acme.com",
            "Subject: Help",
        ]
    )

    assert attribution is not None
    assert attribution.name == "John Doe"
    assert attribution.address == "john@x.com"
    assert attribution.date == datetime(2024, 1, 4, 15, 30, tzinfo=timezone.utc)


def test_header_run_without_from_is_rejected():
    """A run needs a From field to name the author."""
    assert parse_header_run(["Subject: Help", "To: support@acme.com"]) is None


def test_forward_markers_are_separators():
    """Apple Mail forward markers open a header run like Outlook separators."""
    assert is_separator("Begin forwarded message:")
    assert is_separator("Start på videresendt melding:")
    assert not is_separator("Begin forwarded message: see below")

    attribution = parse_header_run(["Begin forwarded message:", "From: a@b.com", "Subject: x"])

    assert attribution is not None
    assert attribution.address == "a@b.com"


# ============================================================================
# Date Parsing
# ============================================================================


def test_dates_without_year_are_ignored():
    """Dates that would depend on today's date are not used."""
    assert parse_quoted_date("Monday") is None
    assert parse_quoted_date("Jan 4 at 3:30 PM") is None
    assert parse_quoted_date(None) is None


def test_timezone_aware_dates_are_converted_to_utc():
    """Offsets stated by the client are honored."""
    parsed = parse_quoted_date("Thu, 4 Jan 2024 15:30:00 +0100")

    assert parsed == datetime(2024, 1, 4, 14, 30, tzinfo=timezone.utc)
