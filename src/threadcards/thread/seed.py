"""Header-based thread membership.

A merged thread view can span several stored conversations that belong to
the same email thread. Membership is decided from a ThreadSeed built from
the messages already in the view:

1. Message-ID / In-Reply-To / References links (authoritative)
2. Normalized subject plus participant overlap (fallback for clients that
   drop threading headers)

Headers may arrive as a mapping, as a list of ``{"name", "value"}`` pairs, or
as raw header text with folded continuation lines.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from ..addresses import EmailAddress, canonicalize_email, header_value
from ..models import RawMessageRecord

logger = logging.getLogger(__name__)

_SUBJECT_PREFIX_RE = re.compile(r"^(?:re|fwd?|aw|sv|vs)(?:\[\d+\])?\s*:\s*", re.IGNORECASE)
_REFERENCE_SPLIT_RE = re.compile(r"[,\s]+")
_RAW_HEADER_RE = re.compile(r"^([A-Za-z0-9-]+)\s*:(.*)$")


class MessageThreadInfo(BaseModel):
    """Threading headers of one message, angle brackets stripped."""

    message_id: Optional[str] = Field(default=None, description="Message-ID")
    in_reply_to: Optional[str] = Field(default=None, description="In-Reply-To")
    references: List[str] = Field(default_factory=list, description="References, in order")

    model_config = {"frozen": True}


class ThreadSeed(BaseModel):
    """What is known about a thread from the messages already in view."""

    message_ids: frozenset = Field(default_factory=frozenset, description="Known Message-IDs")
    references: frozenset = Field(
        default_factory=frozenset, description="In-Reply-To and References values"
    )
    normalized_subject: str = Field(default="", description="First non-empty subject, normalized")
    participants: frozenset = Field(
        default_factory=frozenset, description="Canonical participant addresses"
    )

    model_config = {"frozen": True}


def normalize_subject(subject: Optional[str]) -> str:
    """Remove Re:/Fwd: style prefixes, collapse whitespace and lower-case.

    Handles various formats:
    - Re: Subject / RE: Subject
    - Fwd: Subject / Fw: Subject
    - Aw: / Sv: / Vs: (German and Scandinavian clients)
    - Re: Re: Subject (multiple prefixes)
    - Re[2]: Subject (counter style)
    """
    if not subject:
        return ""

    subject = subject.strip()
    while _SUBJECT_PREFIX_RE.match(subject):
        subject = _SUBJECT_PREFIX_RE.sub("", subject, count=1).strip()

    return " ".join(subject.split()).lower()


def _clean_message_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip().strip("<>").strip()
    return cleaned or None


def _parse_references(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        value = " ".join(str(item) for item in value)
    references = []
    for item in _REFERENCE_SPLIT_RE.split(str(value)):
        cleaned = _clean_message_id(item)
        if cleaned:
            references.append(cleaned)
    return references


def _parse_raw_headers(raw: str) -> dict:
    """Parse raw header text, unfolding continuation lines."""
    fields: dict = {}
    current = None
    for line in raw.splitlines():
        match = _RAW_HEADER_RE.match(line)
        if match and not line[:1].isspace():
            current = match.group(1).lower()
            fields[current] = match.group(2).strip()
        elif current and line.strip():
            fields[current] = f"{fields[current]} {line.strip()}"
    return fields


def extract_message_ids(headers: Any) -> MessageThreadInfo:
    """Extract Message-ID, In-Reply-To and References from headers.

    Args:
        headers: Mapping, list of ``{"name", "value"}`` pairs, raw header text,
            or a mapping with the raw text under ``"raw"``

    Returns:
        MessageThreadInfo (empty when nothing is present)
    """
    if not headers:
        return MessageThreadInfo()

    if isinstance(headers, str):
        fields: Mapping[str, Any] = _parse_raw_headers(headers)
    elif isinstance(headers, (list, tuple)):
        fields = {}
        for header in headers:
            if not isinstance(header, Mapping) or not header.get("name"):
                continue
            fields.setdefault(str(header["name"]).lower(), header.get("value"))
    elif isinstance(headers, Mapping):
        fields = headers
        raw = headers.get("raw")
        if isinstance(raw, str) and header_value(headers, "Message-ID") is None:
            fields = _parse_raw_headers(raw)
    else:
        logger.debug(f"Unsupported header container: {type(headers).__name__}")
        return MessageThreadInfo()

    return MessageThreadInfo(
        message_id=_clean_message_id(header_value(fields, "Message-ID")),
        in_reply_to=_clean_message_id(header_value(fields, "In-Reply-To")),
        references=_parse_references(header_value(fields, "References")),
    )


def _record_participants(record: RawMessageRecord, inbox_email: Optional[str]) -> set:
    participants = set()
    for name in ("From", "To", "Cc"):
        for address in EmailAddress.from_header(header_value(record.headers, name)):
            participants.add(address.address)
    inbox = canonicalize_email(inbox_email)
    if inbox:
        participants.add(inbox)
    return participants


def build_thread_seed(
    records: Iterable[RawMessageRecord], inbox_email: Optional[str] = None
) -> ThreadSeed:
    """Build a thread seed from the messages already in a view.

    Args:
        records: Raw rows of the initial conversation(s)
        inbox_email: Address of the inbox the thread was received on

    Returns:
        ThreadSeed with ids, references, subject and participants
    """
    message_ids = set()
    references = set()
    participants = set()
    subject = ""

    for record in records:
        info = extract_message_ids(record.headers)
        if info.message_id:
            message_ids.add(info.message_id)
        if info.in_reply_to:
            references.add(info.in_reply_to)
        references.update(info.references)

        if not subject and record.subject:
            subject = normalize_subject(record.subject)

        participants.update(_record_participants(record, inbox_email))

    return ThreadSeed(
        message_ids=frozenset(message_ids),
        references=frozenset(references),
        normalized_subject=subject,
        participants=frozenset(participants),
    )


def message_matches_thread(
    record: RawMessageRecord, seed: ThreadSeed, inbox_email: Optional[str] = None
) -> bool:
    """Check if a record belongs to the thread described by a seed.

    Args:
        record: Candidate raw row
        seed: Thread seed
        inbox_email: Address of the inbox the candidate was received on

    Returns:
        True if headers link the record to the thread, or the subject
        matches and participants overlap
    """
    info = extract_message_ids(record.headers)

    if info.message_id and (
        info.message_id in seed.references or info.message_id in seed.message_ids
    ):
        return True
    if info.in_reply_to and info.in_reply_to in seed.message_ids:
        return True
    if any(reference in seed.message_ids for reference in info.references):
        return True

    if seed.normalized_subject and record.subject:
        if normalize_subject(record.subject) == seed.normalized_subject:
            return bool(_record_participants(record, inbox_email) & seed.participants)

    return False


__all__ = [
    "MessageThreadInfo",
    "ThreadSeed",
    "normalize_subject",
    "extract_message_ids",
    "build_thread_seed",
    "message_matches_thread",
]
