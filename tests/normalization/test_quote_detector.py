"""Tests for quote boundary detection.

Tests cover:
- Attribution-line replies (English, Norwegian, wrapped, nested)
- Gmail-style, Apple Mail cite and Outlook-style HTML containers
- Separator, forward marker and bare header blocks
- Angle-bracket quoting, including interleaved replies that must not split
- Trailing text after the last quoted run
- Bodies without quotes
- Strategy failures degrading to "no match"
- No duplication between visible body and quoted blocks
"""

from __future__ import annotations

import logging

import pytest

from threadcards.models import QuotedBlock, QuoteKind
from threadcards.normalization.quote_detector import (
    AttributionLineStrategy,
    QuoteBoundaryDetector,
    QuoteStrategy,
    extract_block_attribution,
    find_quote_boundary,
)

ATTRIBUTION_REPLY = (
    "Thanks!\n\nOn Mon, Jan 1, 2024 at 10:00 AM John <john@x.com> wrote:\n> Hi\n> there"
)

TWO_GMAIL_CONTAINERS = """<div>Latest reply from agent</div>
<div class="gmail_quote">
<div>On Thu, Jan 4, 2024 at 3:30 PM Customer &lt;<a href="mailto:customer@example.com">customer@example.com</a>&gt; wrote:<br></div>
<blockquote>
<div>Customer response here</div>
</blockquote>
</div>
<div class="gmail_quote">
<div>On Wed, Jan 3, 2024 at 2:30 PM Agent &lt;<a href="mailto:agent@test.com">agent@test.com</a>&gt; wrote:<br></div>
<blockquote>
<div>Original agent message</div>
</blockquote>
</div>"""

OUTLOOK_HTML = (
    "<div>Thanks for reaching out</div>"
    '<hr style="display:inline-block;width:98%" tabindex="-1">'
    '<div id="divRplyFwdMsg" dir="ltr"><b>From:</b> Customer &lt;customer@example.com&gt;<br>'
    "<b>Sent:</b> Thursday, January 4, 2024 3:30 PM</div>"
    "<div>Original question</div>"
)

SEPARATOR_REPLY = (
    "Customer reply\n\n"
    "-----Original Message-----\n"
    "From: John Doe [mailto:john@x.com]\n"
    "Sent: Thursday, January 4, 2024 3:30 PM\n"
    "To: support@acme.com\n"
    "Subject: Help\n\n"
    "Old text"
)

NESTED_ATTRIBUTIONS = (
    "Reply\n\n"
    "On Tue, Jan 2, 2024 at 9:00 AM Agent <agent@test.com> wrote:\n"
    "> Answer\n"
    ">\n"
    "> On Mon, Jan 1, 2024 at 8:00 AM Customer <customer@example.com> wrote:\n"
    ">> Question"
)

FORWARDED_MESSAGE = "FYI\n\nBegin forwarded message:\n\nFrom: a@b.com\nSubject: x\n\nbody"

QUOTE_THEN_SIGNATURE = "Thanks\n\n> q1\n> q2\n\n--\nJohn"


def _assert_no_duplication(split):
    for block in split.quoted_blocks:
        assert block.raw
        assert block.raw not in split.visible_body


# ============================================================================
# Attribution Lines
# ============================================================================


def test_attribution_reply_splits_visible_and_quoted():
    """Concrete scenario: short reply above an attributed quote."""
    split = find_quote_boundary(ATTRIBUTION_REPLY)

    assert split.visible_body == "Thanks!"
    assert len(split.quoted_blocks) == 1
    assert split.quoted_blocks[0].kind == QuoteKind.HEADER_BLOCK
    assert split.quoted_blocks[0].raw == (
        "On Mon, Jan 1, 2024 at 10:00 AM John <john@x.com> wrote:\n> Hi\n> there"
    )
    assert split.detector == "attribution_line"
    _assert_no_duplication(split)


def test_nested_attribution_lines_become_sibling_blocks():
    """Each attribution line, quoted or not, starts a block."""
    split = find_quote_boundary(NESTED_ATTRIBUTIONS)

    assert split.visible_body == "Reply"
    assert len(split.quoted_blocks) == 2
    assert split.quoted_blocks[0].raw.startswith("On Tue")
    assert split.quoted_blocks[1].raw.startswith("> On Mon")
    assert split.quoted_blocks[1].raw.endswith(">> Question")
    _assert_no_duplication(split)


def test_norwegian_attribution_reply():
    """Norwegian clients are recognized."""
    split = find_quote_boundary(
        "Takk!\n\nDen 4. jan. 2024 kl. 15:30 skrev Kari <kari@example.no>:\n> Hei"
    )

    assert split.visible_body == "Takk!"
    assert [block.kind for block in split.quoted_blocks] == [QuoteKind.HEADER_BLOCK]


def test_norwegian_skrev_attribution_reply():
    """Gmail's short Norwegian attribution starts a quote."""
    split = find_quote_boundary("Takk\n\nSkrev Kari <kari@example.no>:\n> Hei")

    assert split.visible_body == "Takk"
    assert [block.raw for block in split.quoted_blocks] == [
        "Skrev Kari <kari@example.no>:\n> Hei"
    ]

    attribution, body = extract_block_attribution(split.quoted_blocks[0])
    assert attribution.address == "kari@example.no"
    assert attribution.language == "no"
    assert body == "> Hei"


def test_wrapped_attribution_line_is_joined():
    """An attribution wrapped over two lines still starts the quote."""
    split = find_quote_boundary(
        "Thanks\n\nOn Mon, Jan 1, 2024 at 10:00 AM John Smith\n<john@x.com> wrote:\n> Hi"
    )

    assert split.visible_body == "Thanks"
    assert len(split.quoted_blocks) == 1
    assert split.quoted_blocks[0].raw.startswith("On Mon")


# ============================================================================
# HTML Containers
# ============================================================================


def test_two_sibling_gmail_containers():
    """Concrete scenario: each top-level container is one block."""
    split = find_quote_boundary(TWO_GMAIL_CONTAINERS, "text/html")

    assert split.visible_body == "<div>Latest reply from agent</div>"
    assert len(split.quoted_blocks) == 2
    assert all(
        block.kind == QuoteKind.HTML_GMAIL_CONTAINER for block in split.quoted_blocks
    )
    assert "Customer response here" in split.quoted_blocks[0].raw
    assert "Original agent message" in split.quoted_blocks[1].raw
    assert split.quoted_blocks[1].raw.startswith('<div class="gmail_quote">')
    _assert_no_duplication(split)


def test_nested_gmail_containers_stay_in_one_block():
    """Only outermost containers start blocks."""
    html = (
        "<div>Reply</div>"
        '<div class="gmail_quote">On Mon, Jan 1, 2024 at 10:00 AM a@b.com wrote:'
        '<blockquote class="gmail_quote">Old<div class="gmail_quote">Older</div></blockquote>'
        "</div>"
    )

    split = find_quote_boundary(html, "text/html")

    assert len(split.quoted_blocks) == 1
    assert "Older" in split.quoted_blocks[0].raw


def test_outlook_divider_and_header_container_form_one_block():
    """An <hr> directly followed by the reply header is one Outlook block."""
    split = find_quote_boundary(OUTLOOK_HTML, "text/html")

    assert split.visible_body == "<div>Thanks for reaching out</div>"
    assert len(split.quoted_blocks) == 1
    assert split.quoted_blocks[0].kind == QuoteKind.HTML_OUTLOOK_BORDERED
    assert split.quoted_blocks[0].raw.startswith("<hr")
    assert "Original question" in split.quoted_blocks[0].raw


def test_html_attribution_without_container_is_detected_on_text():
    """Text strategies run on the decoded text of HTML bodies."""
    html = (
        "<p>Sure, done.</p>"
        "<p>On Mon, Jan 1, 2024 at 10:00 AM John &lt;john@x.com&gt; wrote:</p>"
        "<blockquote><p>Can you do it?</p></blockquote>"
    )

    split = find_quote_boundary(html, "text/html")

    assert split.visible_body == "<p>Sure, done.</p>"
    assert split.quoted_blocks[0].raw.startswith("<p>On Mon")
    assert split.quoted_blocks[0].kind == QuoteKind.HEADER_BLOCK


def test_cite_blockquote_is_a_container():
    """Thunderbird and Apple Mail cite blockquotes start a block."""
    html = '<div>Reply</div><blockquote type="cite">old</blockquote>'

    split = find_quote_boundary(html, "text/html")

    assert split.visible_body == "<div>Reply</div>"
    assert [block.raw for block in split.quoted_blocks] == [
        '<blockquote type="cite">old</blockquote>'
    ]
    assert split.quoted_blocks[0].kind == QuoteKind.HTML_GMAIL_CONTAINER


def test_apple_mail_attribution_outside_blockquote_joins_the_block():
    """The attribution written just before a cite blockquote belongs to the quote."""
    html = (
        "<div>Reply</div>"
        "<div><br><div>On Jan 1, 2024, at 10:00, John &lt;john@x.com&gt; wrote:</div><br>"
        '<blockquote type="cite"><div>Old</div><blockquote type="cite">Older</blockquote>'
        "</blockquote></div>"
    )

    split = find_quote_boundary(html, "text/html")

    assert split.visible_body == "<div>Reply</div>"
    assert len(split.quoted_blocks) == 1
    assert split.quoted_blocks[0].raw.startswith("<div><br><div>On Jan 1")
    assert "Older" in split.quoted_blocks[0].raw

    attribution, body = extract_block_attribution(split.quoted_blocks[0], is_html=True)
    assert attribution.address == "john@x.com"
    assert body.startswith('<blockquote type="cite">')


def test_apple_mail_quote_class():
    """AppleMailQuote containers are recognized like Gmail's."""
    html = '<div>Ok</div><div class="AppleMailQuote"><div>Earlier text</div></div>'

    split = find_quote_boundary(html, "text/html")

    assert split.visible_body == "<div>Ok</div>"
    assert split.quoted_blocks[0].kind == QuoteKind.HTML_GMAIL_CONTAINER
    assert split.quoted_blocks[0].raw.startswith('<div class="AppleMailQuote">')


# ============================================================================
# Header Blocks
# ============================================================================


def test_original_message_separator():
    """Separator followed by header fields starts a header block."""
    split = find_quote_boundary(SEPARATOR_REPLY)

    assert split.visible_body == "Customer reply"
    assert len(split.quoted_blocks) == 1
    assert split.quoted_blocks[0].raw.startswith("-----Original Message-----")
    assert split.quoted_blocks[0].raw.endswith("Old text")


def test_bare_from_header_run():
    """A From line followed by another header field starts a block."""
    split = find_quote_boundary(
        "Reply text\n\n"
        "From: customer@example.com\n"
        "Sent: Thursday, January 4, 2024 3:30 PM\n"
        "Subject: Help\n\n"
        "Please help"
    )

    assert split.visible_body == "Reply text"
    assert split.quoted_blocks[0].raw.startswith("From: customer@example.com")


def test_single_from_line_is_not_a_header_block():
    """A lone "From:" line in prose is not quoted history."""
    body = "From: the team, with thanks.\nSee you soon."

    split = find_quote_boundary(body)

    assert split.visible_body == body
    assert split.quoted_blocks == ()

def test_begin_forwarded_message_starts_header_block():
    """Apple Mail's forward marker is a separator like Outlook's."""
    split = find_quote_boundary(FORWARDED_MESSAGE)

    assert split.visible_body == "FYI"
    assert len(split.quoted_blocks) == 1
    assert split.quoted_blocks[0].kind == QuoteKind.HEADER_BLOCK
    assert split.quoted_blocks[0].raw.startswith("Begin forwarded message:")

    attribution, body = extract_block_attribution(split.quoted_blocks[0])
    assert attribution.address == "a@b.com"
    assert body == "body"



# ============================================================================
# Angle Brackets
# ============================================================================


def test_trailing_angle_bracket_runs():
    """Each contiguous run of quoted lines is one block."""
    split = find_quote_boundary("My answer\n\n> old line 1\n> old line 2\n\n> older")

    assert split.visible_body == "My answer"
    assert [block.raw for block in split.quoted_blocks] == [
        "> old line 1\n> old line 2",
        "> older",
    ]
    assert all(
        block.kind == QuoteKind.ANGLE_BRACKET_PLAIN for block in split.quoted_blocks
    )


def test_interleaved_inline_replies_are_not_split():
    """Splitting would hide authored content between quotes."""
    body = "> question one\nanswer one\n> question two\nanswer two"

    split = find_quote_boundary(body)

    assert split.visible_body == body
    assert split.quoted_blocks == ()

def test_text_after_trailing_quote_stays_in_last_block():
    """A signature after the quoted run ends the block instead of cancelling the split."""
    split = find_quote_boundary(QUOTE_THEN_SIGNATURE)

    assert split.visible_body == "Thanks"
    assert [block.raw for block in split.quoted_blocks] == ["> q1\n> q2\n\n--\nJohn"]
    assert split.quoted_blocks[0].kind == QuoteKind.ANGLE_BRACKET_PLAIN


def test_answer_between_quoted_runs_is_not_split():
    """Content, then a quote, then an answer, then another quote is an inline reply."""
    body = "Thanks\n\n> q1\nmy answer\n> q2"

    split = find_quote_boundary(body)

    assert split.visible_body == body
    assert split.quoted_blocks == ()



# ============================================================================
# Fallbacks
# ============================================================================


def test_no_quote_pattern_keeps_whole_body():
    """Concrete scenario: nothing matches."""
    split = find_quote_boundary("  Just a plain message.\nSecond line.\n")

    assert split.visible_body == "Just a plain message.\nSecond line."
    assert split.quoted_blocks == ()
    assert split.detector is None


def test_fully_quoted_body_keeps_visible_content():
    """A boundary at the very top is not accepted."""
    split = find_quote_boundary("> only quoted\n> content")

    assert split.visible_body == "> only quoted\n> content"
    assert split.quoted_blocks == ()


@pytest.mark.parametrize("body", ["", "   ", None])
def test_empty_bodies(body):
    """Empty input gives an empty visible body and no blocks."""
    split = find_quote_boundary(body)

    assert split.visible_body == ""
    assert split.quoted_blocks == ()


def test_malformed_html_does_not_raise():
    """Broken markup degrades to "no quotes" or a best-effort split."""
    split = find_quote_boundary("<div><p>Unclosed <b>tags <<>> &bogus; </div", "text/html")

    assert split.visible_body


def test_failing_strategy_is_treated_as_no_match(caplog):
    """Unexpected strategy errors are logged and skipped."""

    class BrokenStrategy(QuoteStrategy):
        name = "broken"

        def detect(self, document):
            raise RuntimeError("boom")

    detector = QuoteBoundaryDetector([BrokenStrategy(), AttributionLineStrategy()])

    with caplog.at_level(logging.WARNING):
        split = detector.detect(ATTRIBUTION_REPLY)

    assert split.visible_body == "Thanks!"
    assert "broken" in caplog.text


@pytest.mark.parametrize(
    "body,content_type",
    [
        (ATTRIBUTION_REPLY, "text/plain"),
        (NESTED_ATTRIBUTIONS, "text/plain"),
        (SEPARATOR_REPLY, "text/plain"),
        (FORWARDED_MESSAGE, "text/plain"),
        (QUOTE_THEN_SIGNATURE, "text/plain"),
        (TWO_GMAIL_CONTAINERS, "text/html"),
        (OUTLOOK_HTML, "text/html"),
    ],
)
def test_blocks_are_exact_trailing_split(body, content_type):
    """Blocks are verbatim, ordered slices of the body after the visible part."""
    split = find_quote_boundary(body, content_type)

    position = body.index(split.visible_body) + len(split.visible_body)
    for block in split.quoted_blocks:
        found = body.index(block.raw, position)
        assert body[position:found].strip() == ""
        position = found + len(block.raw)
    assert body[position:].strip() == ""
    _assert_no_duplication(split)


# ============================================================================
# Block Attribution
# ============================================================================


def test_extract_attribution_from_plain_block():
    """The attribution line is removed from the quoted content."""
    block = QuotedBlock(
        kind=QuoteKind.HEADER_BLOCK,
        raw="On Mon, Jan 1, 2024 at 10:00 AM John <john@x.com> wrote:\n> Hi\n> there",
    )

    attribution, body = extract_block_attribution(block)

    assert attribution.address == "john@x.com"
    assert body == "> Hi\n> there"


def test_extract_attribution_from_html_block():
    """HTML content after the attribution is kept verbatim."""
    split = find_quote_boundary(TWO_GMAIL_CONTAINERS, "text/html")

    attribution, body = extract_block_attribution(split.quoted_blocks[0], is_html=True)

    assert attribution.address == "customer@example.com"
    assert attribution.name == "Customer"
    assert body.startswith("<blockquote>")
    assert "Customer response here" in body


def test_extract_attribution_from_header_run():
    """Separator and header fields are removed together."""
    split = find_quote_boundary(SEPARATOR_REPLY)

    attribution, body = extract_block_attribution(split.quoted_blocks[0])

    assert attribution.address == "john@x.com"
    assert body == "Old text"


def test_block_without_attribution_is_returned_unchanged():
    """Angle-bracket blocks carry no attribution."""
    block = QuotedBlock(kind=QuoteKind.ANGLE_BRACKET_PLAIN, raw="> older")

    assert extract_block_attribution(block) == (None, "> older")
