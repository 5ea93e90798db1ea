"""Address/identity resolution for message authorship.

Decides whether the effective author of a message is an agent, the
customer, or the system, computes the label shown on the card and the
sent/received direction.

Precedence:
- A stored ``system`` sender kind always wins.
- A stored ``agent`` / ``customer`` sender kind wins over address matching
  for author type and direction; the address is still used for the label.
  Disagreement is flagged as a conflict and traced, never raised.
- Without a stored sender kind (quoted turns, legacy rows) the address
  decides: a known agent address makes an agent, anything else a customer.

Phone numbers are best-effort identities. They only count as agent
identities when ``NormalizationSettings.phone_agent_detection`` is enabled.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, Field

from ..addresses import EmailAddress, canonicalize_phone, header_value
from ..config import DEFAULT_SETTINGS, NormalizationSettings
from ..models import (
    AuthorType,
    Direction,
    NormalizationContext,
    RawMessageRecord,
    SenderKind,
)

logger = logging.getLogger(__name__)


class SenderIdentity(BaseModel):
    """Everything known about who sent a message, before resolution."""

    sender_kind: Optional[SenderKind] = Field(default=None, description="Stored sender kind")
    address: Optional[EmailAddress] = Field(default=None, description="Sender address")
    name: Optional[str] = Field(default=None, description="Sender display name")
    phone: Optional[str] = Field(default=None, description="Sender phone number")

    model_config = {"frozen": True}

    @classmethod
    def from_record(cls, record: RawMessageRecord) -> SenderIdentity:
        """Collect sender candidates from a raw record.

        The ``From`` header may be an RFC 5322 string, a ``{"email", "name"}``
        mapping, or (for SMS rows) a bare phone number.
        """
        from_value = header_value(record.headers, "From")
        addresses = EmailAddress.from_header(from_value)
        address = addresses[0] if addresses else None

        phone = record.sender_phone
        if not phone and address is None and isinstance(from_value, str):
            phone = canonicalize_phone(from_value) if "@" not in from_value else None

        return cls(
            sender_kind=record.sender_kind,
            address=address,
            name=address.display_name if address else None,
            phone=canonicalize_phone(phone),
        )


class AuthorResolution(BaseModel):
    """Outcome of identity resolution for one message."""

    author_type: AuthorType = Field(..., description="Resolved author type")
    direction: Direction = Field(..., description="Inbound or outbound")
    author_label: str = Field(..., description="Label shown on the card")
    address: Optional[str] = Field(default=None, description="Address used for the decision")
    name: Optional[str] = Field(default=None, description="Display name, if any")
    phone: Optional[str] = Field(default=None, description="Phone used for the decision")
    conflict: bool = Field(
        default=False, description="Stored sender kind and address matching disagreed"
    )
    reason: str = Field(..., description="Which rule decided")

    model_config = {"frozen": True}


def is_agent_address(address: Optional[str], context: NormalizationContext) -> bool:
    """Check an address against known agent addresses and domains."""
    if not address:
        return False

    address = address.strip().lower()
    if address in context.agent_emails:
        return True
    if context.viewer_email and address == context.viewer_email:
        return True
    if "@" in address and address.rsplit("@", 1)[1] in context.agent_domains:
        return True
    return False


def is_agent_phone(
    phone: Optional[str],
    context: NormalizationContext,
    settings: NormalizationSettings = DEFAULT_SETTINGS,
) -> bool:
    """Check a phone number against known agent numbers, when enabled."""
    if not settings.phone_agent_detection:
        return False
    phone = canonicalize_phone(phone)
    return bool(phone) and phone in context.agent_phones


def resolve_identity(
    identity: SenderIdentity,
    context: NormalizationContext,
    settings: Optional[NormalizationSettings] = None,
) -> AuthorResolution:
    """Resolve author type, label and direction for a sender identity.

    Args:
        identity: Sender candidates (stored kind, address, name, phone)
        context: Organizational context for the conversation
        settings: Labels and phone policy (defaults if omitted)

    Returns:
        AuthorResolution with the decision and whether it was contested
    """
    settings = settings or DEFAULT_SETTINGS
    address = identity.address.address if identity.address else None
    name = identity.name or (identity.address.display_name if identity.address else None)
    phone = canonicalize_phone(identity.phone)

    if identity.sender_kind == SenderKind.SYSTEM:
        return AuthorResolution(
            author_type=AuthorType.SYSTEM,
            direction=Direction.OUTBOUND,
            author_label=settings.system_label,
            address=address,
            name=name,
            phone=phone,
            reason="stored_system",
        )

    agent_match = is_agent_address(address, context) or is_agent_phone(
        phone, context, settings
    )

    if identity.sender_kind == SenderKind.AGENT:
        # Missing organization context is not a disagreement
        conflict = (
            context.has_agent_identities and bool(address or phone) and not agent_match
        )
        resolution = AuthorResolution(
            author_type=AuthorType.AGENT,
            direction=Direction.OUTBOUND,
            author_label=_agent_label(address or phone, settings),
            address=address,
            name=name,
            phone=phone,
            conflict=conflict,
            reason="stored_agent_unmatched_address" if conflict else "stored_agent",
        )
    elif identity.sender_kind == SenderKind.CUSTOMER:
        resolution = AuthorResolution(
            author_type=AuthorType.CUSTOMER,
            direction=Direction.INBOUND,
            author_label=_customer_label(address, name, phone, context, settings),
            address=address,
            name=name,
            phone=phone,
            conflict=agent_match,
            reason="stored_customer_agent_address" if agent_match else "stored_customer",
        )
    elif agent_match:
        resolution = AuthorResolution(
            author_type=AuthorType.AGENT,
            direction=Direction.OUTBOUND,
            author_label=_agent_label(address or phone, settings),
            address=address,
            name=name,
            phone=phone,
            reason="agent_address",
        )
    else:
        resolution = AuthorResolution(
            author_type=AuthorType.CUSTOMER,
            direction=Direction.INBOUND,
            author_label=_customer_label(address, name, phone, context, settings),
            address=address,
            name=name,
            phone=phone,
            reason="no_agent_address",
        )

    if resolution.conflict and context.debug_trace:
        logger.debug(
            f"Authorship conflict resolved by stored sender kind: {resolution.reason}",
            extra={
                "sender_kind": identity.sender_kind.value if identity.sender_kind else None,
                "author_type": resolution.author_type.value,
            },
        )

    return resolution


def resolve_author(
    record: RawMessageRecord,
    context: NormalizationContext,
    settings: Optional[NormalizationSettings] = None,
) -> AuthorResolution:
    """Resolve authorship of a raw record.

    Args:
        record: Raw message row
        context: Organizational context for the conversation
        settings: Labels and phone policy (defaults if omitted)

    Returns:
        AuthorResolution for the record's sender
    """
    return resolve_identity(SenderIdentity.from_record(record), context, settings)


def _agent_label(address: Optional[str], settings: NormalizationSettings) -> str:
    if address:
        return f"{settings.agent_label} ({address})"
    return settings.agent_label


def _customer_label(
    address: Optional[str],
    name: Optional[str],
    phone: Optional[str],
    context: NormalizationContext,
    settings: NormalizationSettings,
) -> str:
    # The context name only describes the conversation's customer
    is_conversation_customer = (
        address is None or context.customer_email is None or address == context.customer_email
    )
    if context.customer_name and is_conversation_customer:
        return context.customer_name
    if name:
        return name
    if address:
        return address
    if phone:
        return phone
    return settings.customer_placeholder


__all__ = [
    "SenderIdentity",
    "AuthorResolution",
    "is_agent_address",
    "is_agent_phone",
    "resolve_identity",
    "resolve_author",
]
