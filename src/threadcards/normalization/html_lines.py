"""Line views of message bodies with source offsets.

Quote detection works on text lines, but quoted blocks must be captured
verbatim from the original body. Every line therefore carries the offset in
the source where it starts: for plain text that is the start of the physical
line, for HTML it is the first tag or text token that opened the line.

HTML is walked with the standard library ``HTMLParser`` because it reports
exact source positions for every token. Entities are decoded in the line
text, ``<br>`` and block-level tags break lines, and script/style/head
content is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import List, Optional

logger = logging.getLogger(__name__)

BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "body", "center", "dd", "div",
        "dl", "dt", "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2",
        "h3", "h4", "h5", "h6", "header", "html", "li", "main", "nav", "ol", "p",
        "pre", "section", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "ul",
    }
)
BREAK_TAGS = frozenset({"br", "hr"})
SKIP_TAGS = frozenset({"head", "script", "style", "title"})


@dataclass(frozen=True)
class TextLine:
    """One line of decoded text and where it starts in the source body."""

    text: str
    offset: int

    @property
    def normalized(self) -> str:
        """Text with whitespace collapsed."""
        return " ".join(self.text.split())

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


class _LineCollector(HTMLParser):
    """Collect text lines from HTML while tracking source offsets."""

    def __init__(self, source: str):
        super().__init__(convert_charrefs=True)
        self.lines: List[TextLine] = []
        self._line_starts = [0]
        for index, char in enumerate(source):
            if char == "\n":
                self._line_starts.append(index + 1)
        self._parts: List[str] = []
        self._line_offset: Optional[int] = None
        self._pending_offset: Optional[int] = None
        self._skip_depth = 0

    def _position(self) -> int:
        lineno, column = self.getpos()
        return self._line_starts[lineno - 1] + column

    def _break(self) -> None:
        if self._line_offset is None:
            return
        text = "".join(self._parts)
        if text.strip():
            self.lines.append(TextLine(text=text, offset=self._line_offset))
        self._parts = []
        self._line_offset = None
        self._pending_offset = None

    def handle_starttag(self, tag, attrs):
        if tag in SKIP_TAGS:
            self._skip_depth += 1
            return
        if tag in BREAK_TAGS:
            self._break()
            return
        if tag in BLOCK_TAGS:
            self._break()
        # The first tag after a break opens the next line
        if self._line_offset is None and self._pending_offset is None:
            self._pending_offset = self._position()

    def handle_endtag(self, tag):
        if tag in SKIP_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if tag in BLOCK_TAGS:
            self._break()

    def handle_data(self, data):
        if self._skip_depth:
            return
        if self._line_offset is None:
            if not data.strip():
                return
            self._line_offset = (
                self._pending_offset if self._pending_offset is not None else self._position()
            )
        self._parts.append(data)

    def close(self):
        super().close()
        self._break()


def extract_html_lines(html: str) -> List[TextLine]:
    """Split an HTML body into non-blank text lines with source offsets.

    Args:
        html: HTML markup

    Returns:
        Lines in document order; empty if the markup cannot be walked
    """
    collector = _LineCollector(html)
    try:
        collector.feed(html)
        collector.close()
    except Exception as e:
        logger.warning(f"Failed to walk HTML body for line extraction: {e}")
        return []
    return collector.lines


def split_text_lines(text: str) -> List[TextLine]:
    """Split a plain-text body into physical lines with source offsets."""
    lines = []
    offset = 0
    for raw_line in text.splitlines(keepends=True):
        lines.append(TextLine(text=raw_line.rstrip("\r\n"), offset=offset))
        offset += len(raw_line)
    return lines


def body_lines(body: str, is_html: bool) -> List[TextLine]:
    """Line view of a body of either content type."""
    if is_html:
        return extract_html_lines(body)
    return split_text_lines(body)


__all__ = [
    "TextLine",
    "BLOCK_TAGS",
    "extract_html_lines",
    "split_text_lines",
    "body_lines",
]
