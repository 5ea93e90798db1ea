"""Data models for message normalization and thread assembly.

Models:
- SenderKind / AuthorType / Direction / QuoteKind / Confidence: enums
- AttachmentMetadata: attachment passthrough (no content)
- RawMessageRecord: immutable row handed over by the persistence layer
- NormalizationContext: per-conversation "who is an agent" context
- QuotedBlock / QuoteSplit: output of quote boundary detection
- NormalizedMessage: display-ready message with attributed authorship
- SyntheticCard: message-shaped card, optionally derived from a quoted turn
- CompletenessEstimate: how many cards remain unloaded, and how sure we are
- MessagePage: one page returned by the paginated fetch collaborator

Every derived model is frozen: normalization is a pure transformation and
presentation memoizes on ``dedup_key``, so nothing downstream may mutate
these values in place.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .addresses import (
    EmailAddress,
    canonical_set,
    canonicalize_domain,
    canonicalize_email,
    canonicalize_phone,
)


class SenderKind(str, Enum):
    """Stored sender classification of a raw row."""

    AGENT = "agent"
    CUSTOMER = "customer"
    SYSTEM = "system"


class AuthorType(str, Enum):
    """Resolved author of a normalized message."""

    AGENT = "agent"
    CUSTOMER = "customer"
    SYSTEM = "system"


class Direction(str, Enum):
    """Whether a message was sent by the organization or received by it."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class QuoteKind(str, Enum):
    """Client convention a quoted block was detected with."""

    HTML_GMAIL_CONTAINER = "html-gmail-container"
    HTML_OUTLOOK_BORDERED = "html-outlook-bordered"
    HEADER_BLOCK = "header-block"
    ANGLE_BRACKET_PLAIN = "angle-bracket-plain"


class Confidence(str, Enum):
    """Whether an estimated remaining count may be shown to a user."""

    HIGH = "high"
    LOW = "low"


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AttachmentMetadata(BaseModel):
    """Metadata for a message attachment (content lives in file storage)."""

    filename: str = Field(..., description="Attachment filename")
    content_type: Optional[str] = Field(default=None, description="MIME content type")
    size_bytes: Optional[int] = Field(default=None, ge=0, description="Attachment size in bytes")
    content_id: Optional[str] = Field(
        default=None, description="Content-ID for inline images"
    )
    is_inline: bool = Field(default=False, description="True if inline attachment")
    url: Optional[str] = Field(default=None, description="Storage location, if known")

    model_config = {"frozen": True}


class RawMessageRecord(BaseModel):
    """Stored message row as returned by the persistence collaborator.

    Field aliases accept the storage column names (``content``,
    ``sender_type``, ``email_headers``...) so rows can be validated directly
    with ``RawMessageRecord.model_validate(row)``.
    """

    id: str = Field(..., description="Storage id")
    body: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("body", "content"),
        description="Body content (HTML or plain text)",
    )
    content_type: str = Field(default="text/plain", description="Body content type")
    sender_kind: Optional[SenderKind] = Field(
        default=None,
        validation_alias=AliasChoices("sender_kind", "sender_type"),
        description="Stored sender classification",
    )
    sender_id: Optional[str] = Field(default=None, description="Sender storage id")
    sender_phone: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sender_phone", "customer_phone", "phone"),
        description="Sender phone number for SMS/voice channels",
    )
    is_internal: bool = Field(default=False, description="Internal note, never sent")
    created_at: datetime = Field(..., description="Creation timestamp")
    headers: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("headers", "email_headers"),
        description="Header bag (From, To, Message-ID, ...)",
    )
    external_id: Optional[str] = Field(
        default=None, description="Explicit external message identifier"
    )
    channel: Optional[str] = Field(default=None, description="Channel tag (email, sms, widget)")
    subject: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("subject", "email_subject"),
        description="Subject line, if any",
    )
    conversation_id: Optional[str] = Field(default=None, description="Owning conversation")
    attachments: List[AttachmentMetadata] = Field(
        default_factory=list, description="Attachment metadata"
    )

    model_config = {"frozen": True}

    @field_validator("id", "sender_id", "external_id", "conversation_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:  # type: ignore[override]
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("sender_kind", mode="before")
    @classmethod
    def _coerce_sender_kind(cls, value: Any) -> Any:  # type: ignore[override]
        if value is None or isinstance(value, SenderKind):
            return value
        value = str(value).strip().lower()
        if value not in {kind.value for kind in SenderKind}:
            return None
        return value

    @field_validator("content_type", mode="before")
    @classmethod
    def _default_content_type(cls, value: Any) -> Any:  # type: ignore[override]
        return value or "text/plain"

    @field_validator("headers", mode="before")
    @classmethod
    def _default_headers(cls, value: Any) -> Any:  # type: ignore[override]
        return value or {}

    @field_validator("attachments", mode="before")
    @classmethod
    def _default_attachments(cls, value: Any) -> Any:  # type: ignore[override]
        return value or []

    @field_validator("created_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:  # type: ignore[override]
        return _ensure_utc(value)

    @property
    def is_html(self) -> bool:
        """Check if the body is HTML."""
        return "html" in self.content_type.lower()


class NormalizationContext(BaseModel):
    """Organizational context for one conversation view.

    Built once per view and used identically for every record of a batch so
    authorship decisions stay consistent within a conversation. Addresses,
    domains and phone numbers are canonicalized on construction.
    """

    viewer_email: Optional[str] = Field(
        default=None, description="Email of the user viewing the conversation"
    )
    agent_emails: frozenset = Field(
        default_factory=frozenset, description="Addresses considered agents"
    )
    agent_domains: frozenset = Field(
        default_factory=frozenset, description="Domains considered agents"
    )
    agent_phones: frozenset = Field(
        default_factory=frozenset, description="Phone numbers considered agents"
    )
    customer_email: Optional[str] = Field(
        default=None, description="Known customer address for the conversation"
    )
    customer_name: Optional[str] = Field(
        default=None, description="Known customer display name"
    )
    debug_trace: bool = Field(
        default=False, description="Log authorship and detection decisions at debug level"
    )

    model_config = {"frozen": True}

    @field_validator("viewer_email", "customer_email", mode="before")
    @classmethod
    def _canonical_email(cls, value: Any) -> Any:  # type: ignore[override]
        return canonicalize_email(value) if isinstance(value, str) else value

    @field_validator("customer_name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:  # type: ignore[override]
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("agent_emails", mode="before")
    @classmethod
    def _canonical_emails(cls, value: Any) -> frozenset:  # type: ignore[override]
        return canonical_set(value, canonicalize_email)

    @field_validator("agent_domains", mode="before")
    @classmethod
    def _canonical_domains(cls, value: Any) -> frozenset:  # type: ignore[override]
        return canonical_set(value, canonicalize_domain)

    @field_validator("agent_phones", mode="before")
    @classmethod
    def _canonical_phones(cls, value: Any) -> frozenset:  # type: ignore[override]
        return canonical_set(value, canonicalize_phone)

    @property
    def has_agent_identities(self) -> bool:
        """True when any agent address, domain or phone is known."""
        return bool(
            self.agent_emails or self.agent_domains or self.agent_phones or self.viewer_email
        )


class QuotedBlock(BaseModel):
    """One piece of re-included history, verbatim."""

    kind: QuoteKind = Field(..., description="Detected client convention")
    raw: str = Field(..., description="Captured text or markup, trimmed")

    model_config = {"frozen": True}


class QuoteSplit(BaseModel):
    """Result of quote boundary detection on one body."""

    visible_body: str = Field(..., description="Content before the first boundary")
    quoted_blocks: Tuple[QuotedBlock, ...] = Field(
        default=(), description="Quoted blocks, top of body first"
    )
    detector: Optional[str] = Field(
        default=None, description="Name of the strategy that matched"
    )

    model_config = {"frozen": True}

    @property
    def has_quoted_content(self) -> bool:
        """Check if any quoted block was found."""
        return len(self.quoted_blocks) > 0


class NormalizedMessage(BaseModel):
    """Display-ready message with resolved authorship and split quotes."""

    # Identity
    id: str = Field(..., description="Storage id of the source record")
    dedup_key: str = Field(..., description="Stable identity for deduplication")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    channel: str = Field(default="email", description="Channel tag")
    content_type: str = Field(default="text/plain", description="Body content type")

    # Participants
    from_address: Optional[EmailAddress] = Field(default=None, description="Resolved sender")
    from_phone: Optional[str] = Field(default=None, description="Sender phone number")
    to_addresses: List[EmailAddress] = Field(default_factory=list, description="To recipients")
    cc_addresses: List[EmailAddress] = Field(default_factory=list, description="Cc recipients")

    # Authorship
    direction: Direction = Field(..., description="Inbound or outbound")
    author_type: AuthorType = Field(..., description="Resolved author type")
    author_label: str = Field(..., description="Human-readable author label")
    author_conflict: bool = Field(
        default=False, description="Stored sender kind and address matching disagreed"
    )

    # Content
    visible_body: str = Field(..., description="Body without quoted history")
    quoted_blocks: Tuple[QuotedBlock, ...] = Field(
        default=(), description="Quoted history blocks, top of body first"
    )
    preview: str = Field(default="", description="Plain-text snippet of the visible body")
    is_internal: bool = Field(default=False, description="Internal note")
    attachments: List[AttachmentMetadata] = Field(
        default_factory=list, description="Attachment metadata"
    )

    # Provenance
    source: RawMessageRecord = Field(..., description="Originating raw record")

    model_config = {"frozen": True}

    @property
    def has_quoted_content(self) -> bool:
        """Check if the message carries quoted history."""
        return len(self.quoted_blocks) > 0

    @property
    def is_html(self) -> bool:
        """Check if the visible body is HTML."""
        return "html" in self.content_type.lower()


class SyntheticCard(NormalizedMessage):
    """Message-shaped card in a linearized thread view.

    Card 0 of a segmentation is the original message re-typed as a card;
    later cards are synthetic and built from one quoted block each. Their
    timestamps may be inferred solely to keep ordering strict and must never
    be shown as a real time when ``timestamp_inferred`` is set.
    """

    is_synthetic: bool = Field(default=False, description="Derived from a quoted block")
    quote_index: Optional[int] = Field(
        default=None, ge=0, description="Index of the source quoted block"
    )
    parent_id: Optional[str] = Field(default=None, description="Id of the parent message")
    timestamp_inferred: bool = Field(
        default=False, description="Timestamp derived for ordering only"
    )
    author_inferred: bool = Field(
        default=False, description="Author inferred by alternation, not by address"
    )

    @property
    def source_record_id(self) -> str:
        """Storage id of the raw record this card ultimately comes from."""
        return self.source.id

    @property
    def position(self) -> int:
        """0 for the original card, ``quote_index + 1`` for synthetic ones."""
        return 0 if self.quote_index is None else self.quote_index + 1

    @classmethod
    def from_message(cls, message: NormalizedMessage, **overrides: Any) -> SyntheticCard:
        """Re-type a normalized message as a card, applying overrides."""
        values = {name: getattr(message, name) for name in NormalizedMessage.model_fields}
        if isinstance(message, SyntheticCard):
            values.update(
                {name: getattr(message, name) for name in cls.model_fields if name not in values}
            )
        values.update(overrides)
        return cls(**values)


class CompletenessEstimate(BaseModel):
    """Estimate of how many normalized cards remain to be loaded."""

    total_raw_count: int = Field(..., ge=0, description="Raw rows in the conversation")
    loaded_normalized_count: int = Field(..., ge=0, description="Cards produced so far")
    raw_loaded_count: int = Field(..., ge=0, description="Raw rows received so far")
    ratio: float = Field(..., ge=0.0, description="Observed cards per raw row")
    estimated_total_normalized: int = Field(..., ge=0, description="Extrapolated card total")
    remaining: int = Field(..., ge=0, description="Estimated cards still unloaded")
    confidence: Confidence = Field(..., description="Whether remaining may be displayed")

    model_config = {"frozen": True}

    @property
    def display_remaining(self) -> Optional[int]:
        """Remaining count for presentation, or None when it must not be shown."""
        if self.confidence == Confidence.HIGH:
            return self.remaining
        return None

    @property
    def is_complete(self) -> bool:
        """True when nothing is estimated to remain."""
        return self.remaining == 0


class MessagePage(BaseModel):
    """One page returned by the paginated fetch collaborator."""

    records: List[RawMessageRecord] = Field(default_factory=list, description="Raw rows")
    total_raw_count: int = Field(..., ge=0, description="Raw rows in the whole conversation")
    has_more: bool = Field(default=False, description="More pages are available")
    next_cursor: Optional[Any] = Field(default=None, description="Cursor for the next page")

    model_config = {"frozen": True}


__all__ = [
    "SenderKind",
    "AuthorType",
    "Direction",
    "QuoteKind",
    "Confidence",
    "EmailAddress",
    "AttachmentMetadata",
    "RawMessageRecord",
    "NormalizationContext",
    "QuotedBlock",
    "QuoteSplit",
    "NormalizedMessage",
    "SyntheticCard",
    "CompletenessEstimate",
    "MessagePage",
]
