"""Quote boundary detection.

Splits a message body into the content the author wrote (visible body) and
re-included history (quoted blocks), recognizing the conventions of the
common mail clients. Strategies are tried in priority order and the first
one that finds a boundary wins:

1. HTML quote containers (Gmail-style classes, cite blockquotes, Outlook
   reply dividers)
2. Attribution lines ("On ... wrote:", "Den ... skrev ...:", "Skrev ...:")
3. Separator / header blocks ("-----Original Message-----",
   "Begin forwarded message:", "From:/Sent:" runs)
4. Angle-bracket quoting ("> " prefixed trailing lines)

Key Features:
- Blocks are exact slices of the original body, so HTML markup is preserved
  verbatim and no quoted content is duplicated into the visible body
- A boundary only counts when real content precedes it; a body that is
  entirely quoted stays fully visible
- A failing strategy is logged and treated as "no match"; detection never
  raises for malformed input
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from ..models import QuotedBlock, QuoteKind, QuoteSplit
from .attribution import (
    QuoteAttribution,
    is_attribution_start,
    is_separator,
    matching_text,
    parse_attribution_line,
    parse_header_field,
    parse_header_run,
)
from .html_lines import TextLine, body_lines

logger = logging.getLogger(__name__)

GMAIL_QUOTE_CLASSES = frozenset(
    {
        "gmail_quote",
        "gmail_quote_container",
        "yahoo_quoted",
        "protonmail_quote",
        "applemailquote",
    }
)
OUTLOOK_DIVIDER_IDS = frozenset({"divrplyfwdmsg", "appendonsend"})

_QUOTED_LINE_RE = re.compile(r"^\s*>")
_BORDER_TOP_RE = re.compile(r"border-top\s*:\s*(?!none|0(?:px|pt)?\s*(?:;|$))", re.IGNORECASE)
_IMAGE_RE = re.compile(r"<img\b", re.IGNORECASE)


# =============================================================================
# Boundary Model
# =============================================================================


@dataclass(frozen=True)
class QuoteBoundary:
    """Where quoted history starts in a body.

    Attributes:
        kind: Client convention every block is labeled with
        offsets: Ascending source offsets, one per block start
    """

    kind: QuoteKind
    offsets: Tuple[int, ...]


@dataclass
class QuoteDocument:
    """A body under inspection, with lazily built views shared by strategies."""

    body: str
    is_html: bool
    _lines: Optional[List[TextLine]] = field(default=None, repr=False)

    @property
    def lines(self) -> List[TextLine]:
        """Text lines with source offsets."""
        if self._lines is None:
            self._lines = body_lines(self.body, self.is_html)
        return self._lines

    def has_content_before(self, offset: int) -> bool:
        """Check if non-blank content precedes a source offset."""
        head = self.body[:offset]
        if not head.strip():
            return False
        if not self.is_html:
            return True
        if _IMAGE_RE.search(head):
            return True
        return any(not line.is_blank for line in self.lines if line.offset < offset)


# =============================================================================
# Strategies
# =============================================================================


class QuoteStrategy(ABC):
    """One client convention for marking quoted history."""

    name: str = "base"

    @abstractmethod
    def detect(self, document: QuoteDocument) -> Optional[QuoteBoundary]:
        """Find quoted block starts in a document.

        Args:
            document: Body under inspection

        Returns:
            QuoteBoundary, or None if the convention does not apply
        """


class HtmlContainerStrategy(QuoteStrategy):
    """Gmail-style quote containers, cite blockquotes and Outlook reply dividers in HTML.

    Only outermost markers start blocks: a container nested inside another
    container belongs to its parent block. Sibling containers each start a
    block of their own.
    """

    name = "html_container"

    def detect(self, document: QuoteDocument) -> Optional[QuoteBoundary]:
        if not document.is_html:
            return None

        soup = BeautifulSoup(document.body, "html.parser")
        line_starts = [0]
        for index, char in enumerate(document.body):
            if char == "\n":
                line_starts.append(index + 1)

        accepted = set()
        kinds: List[QuoteKind] = []
        offsets: List[int] = []
        for tag in soup.find_all(True):
            kind = self._classify(tag)
            if kind is None:
                continue
            if any(id(parent) in accepted for parent in tag.parents):
                continue
            if tag.sourceline is None or tag.sourcepos is None:
                return None

            offset = line_starts[tag.sourceline - 1] + tag.sourcepos
            if not document.body.startswith("<", offset):
                logger.debug(f"Source position of <{tag.name}> does not point at a tag")
                return None

            accepted.add(id(tag))
            if kind == QuoteKind.HTML_GMAIL_CONTAINER:
                offset = self._attribution_start(document, offset, offsets[-1] if offsets else 0)
            # A divider directly followed by its header container is one block
            if offsets and not self._has_text_between(document, offsets[-1], offset):
                continue
            kinds.append(kind)
            offsets.append(offset)

        if not offsets:
            return None
        return QuoteBoundary(kind=kinds[0], offsets=tuple(offsets))

    @staticmethod
    def _attribution_start(document: QuoteDocument, offset: int, floor: int) -> int:
        """Move a container start back over an attribution line placed just before it.

        Apple Mail and Thunderbird write ``On ... wrote:`` outside the cited
        blockquote; the attribution belongs to the quoted block.
        """
        before = [line for line in document.lines if floor < line.offset < offset]
        for index in (len(before) - 1, len(before) - 2):
            if index >= 0 and attribution_at(before, index) == len(before) - index:
                return before[index].offset
        return offset

    @staticmethod
    def _has_text_between(document: QuoteDocument, start: int, end: int) -> bool:
        return any(
            start <= line.offset < end and not line.is_blank for line in document.lines
        )

    def _classify(self, tag: Tag) -> Optional[QuoteKind]:
        classes = {str(value).lower() for value in tag.get("class") or []}
        if classes & GMAIL_QUOTE_CLASSES:
            return QuoteKind.HTML_GMAIL_CONTAINER
        if tag.name == "blockquote" and str(tag.get("type") or "").lower() == "cite":
            return QuoteKind.HTML_GMAIL_CONTAINER

        tag_id = str(tag.get("id") or "").lower()
        if tag_id in OUTLOOK_DIVIDER_IDS:
            return QuoteKind.HTML_OUTLOOK_BORDERED

        if tag.name == "hr":
            return QuoteKind.HTML_OUTLOOK_BORDERED if self._precedes_header(tag) else None

        style = str(tag.get("style") or "")
        if tag.name in ("div", "p", "table") and _BORDER_TOP_RE.search(style):
            if self._precedes_header(tag, inside=True):
                return QuoteKind.HTML_OUTLOOK_BORDERED
        return None

    def _precedes_header(self, tag: Tag, inside: bool = False) -> bool:
        """Check if a From/Fra header line follows (or opens) a divider."""
        strings = tag.stripped_strings if inside else (
            text.strip() for text in tag.find_all_next(string=True)
        )
        joined = []
        for text in strings:
            if text:
                joined.append(text)
            if len(joined) >= 2:
                break
        header = parse_header_field(" ".join(joined))
        return header is not None and header[0] == "from"


class AttributionLineStrategy(QuoteStrategy):
    """Attribution lines, including ones wrapped over two lines.

    Every attribution line starts a block, so nested re-quotes
    (``> On ... wrote:``) become sibling blocks.
    """

    name = "attribution_line"

    def detect(self, document: QuoteDocument) -> Optional[QuoteBoundary]:
        lines = document.lines
        offsets = []
        index = 0
        while index < len(lines):
            consumed = attribution_at(lines, index)
            if consumed:
                offsets.append(lines[index].offset)
                index += consumed
                continue
            index += 1

        if not offsets:
            return None
        return QuoteBoundary(kind=QuoteKind.HEADER_BLOCK, offsets=tuple(offsets))


class HeaderBlockStrategy(QuoteStrategy):
    """Outlook separators and bare ``From:`` header runs."""

    name = "header_block"

    def detect(self, document: QuoteDocument) -> Optional[QuoteBoundary]:
        lines = document.lines
        offsets = []
        index = 0
        while index < len(lines):
            consumed = header_run_at(lines, index)
            if consumed:
                offsets.append(lines[index].offset)
                index += consumed
                continue
            index += 1

        if not offsets:
            return None
        return QuoteBoundary(kind=QuoteKind.HEADER_BLOCK, offsets=tuple(offsets))


class AngleBracketStrategy(QuoteStrategy):
    """Trailing ``>``-prefixed lines.

    The first quoted line that follows real content starts the quoted
    history, and each contiguous run of quoted lines starts a block.
    Unquoted text after the last run (a signature, a closing note) stays in
    that block. Text between two quoted runs, or a body that opens with
    quoted lines and later has unquoted text, is an inline reply and is
    left alone.
    """

    name = "angle_bracket"

    def detect(self, document: QuoteDocument) -> Optional[QuoteBoundary]:
        lines = document.lines
        seen_content = False
        leading_quotes = False
        first = None
        for index, line in enumerate(lines):
            if _QUOTED_LINE_RE.match(line.text):
                if seen_content:
                    first = index
                    break
                leading_quotes = True
            elif not line.is_blank:
                seen_content = True

        if first is None:
            return None

        offsets = []
        in_run = False
        after_run = False
        for line in lines[first:]:
            if _QUOTED_LINE_RE.match(line.text):
                if after_run:
                    return None
                if not in_run:
                    offsets.append(line.offset)
                    in_run = True
            elif line.is_blank:
                in_run = False
            elif leading_quotes:
                return None
            else:
                in_run = False
                after_run = True

        return QuoteBoundary(kind=QuoteKind.ANGLE_BRACKET_PLAIN, offsets=tuple(offsets))


def default_strategies() -> List[QuoteStrategy]:
    """Strategies in priority order."""
    return [
        HtmlContainerStrategy(),
        AttributionLineStrategy(),
        HeaderBlockStrategy(),
        AngleBracketStrategy(),
    ]


# =============================================================================
# Line Matchers
# =============================================================================


def attribution_at(lines: Sequence[TextLine], index: int) -> int:
    """Number of lines forming an attribution at ``index`` (0 if none)."""
    text = lines[index].text
    if not is_attribution_start(text):
        return 0
    if parse_attribution_line(text):
        return 1
    if index + 1 < len(lines):
        joined = f"{matching_text(text)} {matching_text(lines[index + 1].text)}"
        if parse_attribution_line(joined):
            return 2
    return 0


def header_run_at(lines: Sequence[TextLine], index: int, window: int = 3) -> int:
    """Number of lines forming a separator/header run at ``index`` (0 if none).

    A run is either a separator followed by a header field within ``window``
    non-blank lines, or a ``From:`` field directly followed by another
    header field.
    """
    text = lines[index].text
    if is_separator(text):
        cursor = index + 1
        seen = 0
        while cursor < len(lines) and seen < window:
            if lines[cursor].is_blank:
                cursor += 1
                continue
            if parse_header_field(lines[cursor].text):
                return _skip_header_fields(lines, cursor) - index
            seen += 1
            cursor += 1
        return 0

    header = parse_header_field(text)
    if header is None or header[0] != "from":
        return 0
    cursor = index + 1
    while cursor < len(lines) and lines[cursor].is_blank:
        cursor += 1
    if cursor < len(lines) and parse_header_field(lines[cursor].text):
        return _skip_header_fields(lines, cursor) - index
    return 0


def _skip_header_fields(lines: Sequence[TextLine], index: int) -> int:
    """Index of the first line after a run of header fields."""
    while index < len(lines):
        if lines[index].is_blank:
            index += 1
            continue
        if parse_header_field(lines[index].text) is None:
            break
        index += 1
    return index


# =============================================================================
# Detector
# =============================================================================


class QuoteBoundaryDetector:
    """Run quote strategies in priority order and split the body.

    Example:
        >>> detector = QuoteBoundaryDetector()
        >>> split = detector.detect("Thanks!\\n\\nOn Mon, Jan 1, 2024 John <j@x.com> wrote:\\n> Hi")
        >>> split.visible_body
        'Thanks!'
    """

    def __init__(self, strategies: Optional[Sequence[QuoteStrategy]] = None):
        """Initialize detector.

        Args:
            strategies: Strategies in priority order (defaults if omitted)
        """
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def detect(self, body: Optional[str], content_type: str = "text/plain") -> QuoteSplit:
        """Split a body into visible content and quoted blocks.

        Args:
            body: Message body (HTML or plain text)
            content_type: Body content type

        Returns:
            QuoteSplit; without a boundary the visible body is the whole
            trimmed input and there are no blocks
        """
        body = body or ""
        document = QuoteDocument(body=body, is_html="html" in (content_type or "").lower())

        for strategy in self.strategies:
            try:
                boundary = strategy.detect(document)
            except Exception as e:
                logger.warning(
                    f"Quote strategy {strategy.name} failed, treating as no match: {e}",
                    extra={"strategy": strategy.name},
                )
                continue

            if boundary is None:
                continue
            split = self._split(document, boundary, strategy.name)
            if split is not None:
                return split

        return QuoteSplit(visible_body=body.strip())

    def _split(
        self, document: QuoteDocument, boundary: QuoteBoundary, detector: str
    ) -> Optional[QuoteSplit]:
        body = document.body
        offsets = sorted({offset for offset in boundary.offsets if 0 < offset < len(body)})
        if not offsets or not document.has_content_before(offsets[0]):
            return None

        ends = offsets[1:] + [len(body)]
        blocks = tuple(
            QuotedBlock(kind=boundary.kind, raw=body[start:end].strip())
            for start, end in zip(offsets, ends)
            if body[start:end].strip()
        )
        if not blocks:
            return None

        return QuoteSplit(
            visible_body=body[: offsets[0]].strip(),
            quoted_blocks=blocks,
            detector=detector,
        )


_DEFAULT_DETECTOR = QuoteBoundaryDetector()


def find_quote_boundary(body: Optional[str], content_type: str = "text/plain") -> QuoteSplit:
    """Split a body with the default strategies.

    Args:
        body: Message body (HTML or plain text)
        content_type: Body content type

    Returns:
        QuoteSplit with visible body and quoted blocks
    """
    return _DEFAULT_DETECTOR.detect(body, content_type)


def extract_block_attribution(
    block: QuotedBlock, is_html: bool = False
) -> Tuple[Optional[QuoteAttribution], str]:
    """Separate a quoted block's attribution from the quoted content.

    Args:
        block: Quoted block as produced by detection
        is_html: Whether the block is HTML markup

    Returns:
        (attribution or None, remaining content verbatim and trimmed)
    """
    raw = block.raw
    lines = [line for line in body_lines(raw, is_html) if not line.is_blank]
    if not lines:
        return None, raw.strip()

    consumed = attribution_at(lines, 0)
    attribution = None
    if consumed:
        joined = " ".join(matching_text(line.text) for line in lines[:consumed])
        attribution = parse_attribution_line(joined)
    else:
        consumed = header_run_at(lines, 0)
        if consumed:
            attribution = parse_header_run([line.text for line in lines[:consumed]])

    if not consumed:
        return None, raw.strip()
    if consumed >= len(lines):
        return attribution, ""
    return attribution, raw[lines[consumed].offset:].strip()


__all__ = [
    "QuoteBoundary",
    "QuoteDocument",
    "QuoteStrategy",
    "HtmlContainerStrategy",
    "AttributionLineStrategy",
    "HeaderBlockStrategy",
    "AngleBracketStrategy",
    "QuoteBoundaryDetector",
    "default_strategies",
    "attribution_at",
    "header_run_at",
    "find_quote_boundary",
    "extract_block_attribution",
]
