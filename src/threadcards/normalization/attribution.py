"""Reply attribution parsing (English and Norwegian).

Mail clients introduce re-included history with an attribution line or an
Outlook-style header run. This module recognizes both and extracts the
quoted author's name, address and (when parseable) the original send date:

- ``On Mon, Jan 1, 2024 at 10:00 AM John <john@x.com> wrote:``
- ``Den 4. jan. 2024 kl. 15:30 skrev Kari <kari@x.no>:``
- ``På 4. januar 2024 skrev Kari <kari@x.no>:``
- ``Skrev Kari <kari@x.no>:``
- ``-----Original Message-----`` or ``Begin forwarded message:`` followed by
  ``From: ...`` / ``Sent: ...`` runs

Matching is done on whitespace-collapsed text with leading ``>`` markers
removed, so nested re-quotes are recognized as well. Date parsing is
deterministic: dateutil is given a fixed default and only dates carrying a
year are accepted.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from dateutil import parser as dateutil_parser
from pydantic import BaseModel, Field

from ..addresses import EmailAddress, find_bare_address

logger = logging.getLogger(__name__)


class NorwegianParserInfo(dateutil_parser.parserinfo):
    """dateutil vocabulary for Norwegian month and weekday names."""

    MONTHS = [
        ("jan", "januar"),
        ("feb", "februar"),
        ("mar", "mars"),
        ("apr", "april"),
        ("mai",),
        ("jun", "juni"),
        ("jul", "juli"),
        ("aug", "august"),
        ("sep", "sept", "september"),
        ("okt", "oktober"),
        ("nov", "november"),
        ("des", "desember"),
    ]
    WEEKDAYS = [
        ("man", "mandag"),
        ("tir", "tirsdag"),
        ("ons", "onsdag"),
        ("tor", "torsdag"),
        ("fre", "fredag"),
        ("lør", "lørdag"),
        ("søn", "søndag"),
    ]
    JUMP = dateutil_parser.parserinfo.JUMP + ["kl", "den"]


_NORWEGIAN_INFO = NorwegianParserInfo(dayfirst=True)
_ENGLISH_INFO = dateutil_parser.parserinfo()
_DEFAULT_DATE = datetime(2000, 1, 1)

_QUOTE_PREFIX_RE = re.compile(r"^(?:\s*>)+\s*")
_TIME_RE = re.compile(r"\d{1,2}[:.]\d{2}(?:[:.]\d{2})?(?:\s*[AaPp]\.?\s?[Mm]\.?)?")
_HAS_YEAR_RE = re.compile(r"\b\d{4}\b|\b\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}\b")
_BRACKETED_ADDRESS_RE = re.compile(r"[<\[]\s*(?:mailto:)?\s*([^<>\[\]\s]+@[^<>\[\]\s]+?)\s*[>\]]")

_ENGLISH_ATTRIBUTION_RE = re.compile(r"^On\s+(?P<body>.+?)\s*wrote\s*:$", re.IGNORECASE)
_NORWEGIAN_KL_RE = re.compile(
    r"^Den\s+(?P<date>.+?)\s+kl\.?\s*(?P<time>\d{1,2}[:.]\d{2}(?:[:.]\d{2})?)\s*,?\s*"
    r"skrev\s+(?P<who>.+?)\s*:$",
    re.IGNORECASE,
)
_NORWEGIAN_DEN_RE = re.compile(
    r"^Den\s+(?P<date>.+?)\s*,?\s*skrev\s+(?P<who>.+?)\s*:$", re.IGNORECASE
)
_NORWEGIAN_PAA_RE = re.compile(
    r"^På\s+(?P<date>.+?)\s*,?\s*skrev\s+(?P<who>.+?)\s*:$", re.IGNORECASE
)
_NORWEGIAN_SKREV_RE = re.compile(r"^Skrev\s+(?P<who>.+?)\s*:$", re.IGNORECASE)
_ATTRIBUTION_START_RE = re.compile(r"^(?:On|Den|På|Skrev)\s", re.IGNORECASE)

SEPARATOR_RE = re.compile(
    r"^(?:-{2,}\s*(?:original message|opprinnelig melding|forwarded message|"
    r"videresendt melding)\s*-{2,}|"
    r"(?:begin forwarded message|start på videresendt melding)\s*:|_{5,})$",
    re.IGNORECASE,
)
_HEADER_FIELD_RE = re.compile(
    r"^\*?(?P<field>from|sent|to|cc|subject|date|fra|sendt|til|kopi|emne|dato)\*?\s*:\*?\s*"
    r"(?P<value>.*)$",
    re.IGNORECASE,
)
_HEADER_FIELD_ALIASES = {
    "fra": "from",
    "sendt": "sent",
    "til": "to",
    "kopi": "cc",
    "emne": "subject",
    "dato": "date",
}


class QuoteAttribution(BaseModel):
    """Who wrote a quoted turn, and when, as stated by the quoting client."""

    name: Optional[str] = Field(default=None, description="Quoted author display name")
    address: Optional[str] = Field(default=None, description="Quoted author address")
    date: Optional[datetime] = Field(default=None, description="Stated send date (UTC)")
    language: str = Field(default="en", description="Language of the attribution")
    raw: str = Field(..., description="Matched attribution text, whitespace-collapsed")

    model_config = {"frozen": True}

    @property
    def email_address(self) -> Optional[EmailAddress]:
        """Attribution address as an EmailAddress, if any."""
        if not self.address:
            return None
        return EmailAddress(address=self.address, display_name=self.name)


def matching_text(text: str) -> str:
    """Collapse whitespace and drop leading quote markers for matching."""
    return " ".join(_QUOTE_PREFIX_RE.sub("", text or "").split())


def is_attribution_start(text: str) -> bool:
    """Check if text could begin a (possibly wrapped) attribution line."""
    return bool(_ATTRIBUTION_START_RE.match(matching_text(text)))


def parse_attribution_line(text: str) -> Optional[QuoteAttribution]:
    """Parse an attribution line in any supported language.

    Args:
        text: One line (or two joined wrapped lines) of decoded text

    Returns:
        QuoteAttribution, or None if the text is not an attribution line
    """
    text = matching_text(text)
    if not text or len(text) > 400:
        return None

    match = _ENGLISH_ATTRIBUTION_RE.match(text)
    if match:
        return _parse_english(match.group("body"), text)

    match = _NORWEGIAN_KL_RE.match(text)
    if match:
        name, address = _split_author(match.group("who"))
        when = f"{match.group('date')} {match.group('time').replace('.', ':')}"
        return QuoteAttribution(
            name=name,
            address=address,
            date=parse_quoted_date(when, language="no"),
            language="no",
            raw=text,
        )

    for pattern in (_NORWEGIAN_DEN_RE, _NORWEGIAN_PAA_RE):
        match = pattern.match(text)
        if match:
            name, address = _split_author(match.group("who"))
            return QuoteAttribution(
                name=name,
                address=address,
                date=parse_quoted_date(match.group("date"), language="no"),
                language="no",
                raw=text,
            )

    match = _NORWEGIAN_SKREV_RE.match(text)
    if match:
        return _parse_skrev(match.group("who"), text)

    return None


def parse_header_field(text: str) -> Optional[Tuple[str, str]]:
    """Parse a ``Field: value`` header line into (canonical field, value)."""
    match = _HEADER_FIELD_RE.match(matching_text(text))
    if not match:
        return None
    field = match.group("field").lower()
    return _HEADER_FIELD_ALIASES.get(field, field), match.group("value").strip()


def is_separator(text: str) -> bool:
    """Check if text is an Outlook-style separator line."""
    return bool(SEPARATOR_RE.match(matching_text(text)))


def parse_header_run(lines: Sequence[str]) -> Optional[QuoteAttribution]:
    """Build an attribution from a run of header field lines.

    Args:
        lines: Decoded text lines, optionally starting with a separator

    Returns:
        QuoteAttribution from the From/Sent/Date fields, or None if the
        lines contain no From field
    """
    fields = {}
    raw_parts = []
    for line in lines:
        text = matching_text(line)
        if not text:
            continue
        if is_separator(text) and not fields:
            raw_parts.append(text)
            continue
        parsed = parse_header_field(text)
        if parsed is None:
            break
        field, value = parsed
        fields.setdefault(field, value)
        raw_parts.append(text)

    if "from" not in fields:
        return None

    name, address = _split_author(fields["from"])
    stated = fields.get("sent") or fields.get("date")
    language = "no" if any(
        matching_text(line).lower().startswith(("fra", "sendt", "dato")) for line in lines
    ) else "en"
    return QuoteAttribution(
        name=name,
        address=address,
        date=parse_quoted_date(stated, language=language) if stated else None,
        language=language,
        raw=" | ".join(raw_parts),
    )


def parse_quoted_date(text: Optional[str], *, language: str = "en") -> Optional[datetime]:
    """Parse a date stated by a quoting client.

    Only dates carrying a year are accepted so that results never depend on
    the current date. Naive results are taken as UTC.

    Args:
        text: Date text (e.g., "Mon, Jan 1, 2024 at 10:00 AM")
        language: "en" or "no"

    Returns:
        Timezone-aware UTC datetime, or None if the text is not a usable date
    """
    if not text:
        return None

    cleaned = re.sub(r"\b(?:at|kl)\b\.?", " ", text, flags=re.IGNORECASE)
    # "4. jan. 2024" -> "4 jan 2024"; time separators are left alone
    cleaned = re.sub(r"(?<=\w)\.(?=\s|$)", " ", cleaned)
    cleaned = " ".join(cleaned.replace(",", " ").split())
    if not _HAS_YEAR_RE.search(cleaned):
        return None

    infos = [_NORWEGIAN_INFO, _ENGLISH_INFO] if language == "no" else [_ENGLISH_INFO, _NORWEGIAN_INFO]
    for info in infos:
        try:
            parsed = dateutil_parser.parse(cleaned, parserinfo=info, default=_DEFAULT_DATE)
        except (ValueError, OverflowError) as e:
            logger.debug(f"Quoted date not parseable with {type(info).__name__}: {e}")
            continue
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    return None


def _parse_english(body: str, raw: str) -> QuoteAttribution:
    """Split the middle of an English attribution into date and author."""
    address = None
    prefix = body

    match = _BRACKETED_ADDRESS_RE.search(body)
    if match:
        address = match.group(1).lower()
        prefix = body[: match.start()]
    else:
        bare = find_bare_address(body)
        if bare:
            address = bare
            prefix = body[: body.lower().rfind(bare)]

    date_text = prefix
    name = None
    times = list(_TIME_RE.finditer(prefix))
    if times:
        date_text = prefix[: times[-1].end()]
        name = prefix[times[-1].end():]
    elif "," in prefix:
        date_text, name = prefix.rsplit(",", 1)

    name = _clean_name(name)
    if address is None and name and not _HAS_YEAR_RE.search(date_text or ""):
        # "On Monday John wrote:" carries no usable date
        date_text = ""

    return QuoteAttribution(
        name=name,
        address=address,
        date=parse_quoted_date(date_text, language="en"),
        language="en",
        raw=raw,
    )


def _parse_skrev(who: str, raw: str) -> Optional[QuoteAttribution]:
    """Parse "Skrev Name <address> [date]:" attributions.

    The leading verb is common in ordinary Norwegian sentences, so the
    author must carry an address.
    """
    date = None
    match = _BRACKETED_ADDRESS_RE.search(who)
    if match:
        name = _clean_name(who[: match.start()])
        address = match.group(1).lower()
        date = parse_quoted_date(who[match.end():], language="no")
    else:
        name, address = _split_author(who)

    if address is None:
        return None
    return QuoteAttribution(name=name, address=address, date=date, language="no", raw=raw)


def _split_author(who: str) -> Tuple[Optional[str], Optional[str]]:
    """Split "Name <address>" style author text."""
    match = _BRACKETED_ADDRESS_RE.search(who)
    if match:
        return _clean_name(who[: match.start()] + who[match.end():]), match.group(1).lower()

    bare = find_bare_address(who)
    if bare:
        index = who.lower().rfind(bare)
        return _clean_name(who[:index] + who[index + len(bare):]), bare

    return _clean_name(who), None


def _clean_name(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    name = name.strip().strip(",;:()\"' ").strip()
    return name or None


__all__ = [
    "QuoteAttribution",
    "NorwegianParserInfo",
    "SEPARATOR_RE",
    "matching_text",
    "is_attribution_start",
    "parse_attribution_line",
    "parse_header_field",
    "parse_header_run",
    "is_separator",
    "parse_quoted_date",
]
