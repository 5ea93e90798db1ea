"""Address parsing and canonicalization helpers.

Raw rows carry sender metadata in several shapes: RFC 5322 header strings
(``"John Doe <john@example.com>"``), ``{"email": ..., "name": ...}`` mappings
written by ingestion webhooks, bare addresses, and phone numbers for SMS.
These helpers turn all of them into :class:`EmailAddress` values with
case-insensitive comparison semantics.
"""

from __future__ import annotations

import re
from email.utils import getaddresses
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

_PHONE_STRIP_RE = re.compile(r"[^\d+]")
_BARE_ADDRESS_RE = re.compile(r"[\w.+'-]+@[\w-]+(?:\.[\w-]+)+")


class EmailAddress(BaseModel):
    """Parsed email address with display name.

    Represents a single email participant with optional display name,
    following RFC 5322 address format.
    """

    address: str = Field(..., description="Email address (user@domain.com)")
    display_name: Optional[str] = Field(
        default=None, description="Display name (e.g., 'John Doe')"
    )

    model_config = {"frozen": True}

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str) -> str:  # type: ignore[override]
        """Validate email address has @ symbol."""
        value = value.strip()
        if "@" not in value or value.count("@") != 1:
            raise ValueError(f"Invalid email address: {value}")
        return value.lower()

    @property
    def domain(self) -> str:
        """Domain part of the address."""
        return self.address.rsplit("@", 1)[1]

    @classmethod
    def from_header(cls, header_value: Any) -> List[EmailAddress]:
        """Parse email addresses from a header value.

        Args:
            header_value: Raw header value (e.g., "John Doe <john@example.com>, jane@example.com"),
                a ``{"email", "name"}`` mapping, or a list of either

        Returns:
            List of parsed EmailAddress objects
        """
        if header_value is None:
            return []

        if isinstance(header_value, Mapping):
            address = header_value.get("email") or header_value.get("address")
            if not address or str(address).strip().count("@") != 1:
                return []
            name = header_value.get("name") or header_value.get("display_name")
            return [
                cls(
                    address=str(address),
                    display_name=(str(name).strip() or None) if name else None,
                )
            ]

        if isinstance(header_value, (list, tuple)):
            result: List[EmailAddress] = []
            for item in header_value:
                result.extend(cls.from_header(item))
            return result

        header_value = str(header_value)
        if not header_value.strip():
            return []

        result = []
        for display_name, addr in getaddresses([header_value]):
            if not addr or addr.count("@") != 1:
                continue
            display_name = display_name.strip().strip('"').strip() if display_name else ""
            result.append(
                cls(
                    address=addr.strip(),
                    display_name=display_name or None,
                )
            )
        return result


def header_value(headers: Optional[Mapping[str, Any]], *names: str) -> Any:
    """Look up the first present header among ``names``, ignoring case."""
    if not headers:
        return None

    lowered = {str(key).lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def canonicalize_email(email: Optional[str]) -> Optional[str]:
    """Canonicalize email address for comparison (lowercase, trimmed)."""
    if not email:
        return None
    email = email.strip().strip("<>").strip().lower()
    return email or None


def canonicalize_domain(domain: Optional[str]) -> Optional[str]:
    """Canonicalize a domain, accepting ``@example.com`` as well."""
    if not domain:
        return None
    domain = domain.strip().lstrip("@").strip().lower()
    return domain or None


def canonicalize_phone(phone: Optional[str]) -> Optional[str]:
    """Reduce a phone number to digits and an optional leading ``+``."""
    if not phone:
        return None
    cleaned = _PHONE_STRIP_RE.sub("", str(phone))
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
    if cleaned:
        cleaned = cleaned[0] + cleaned[1:].replace("+", "")
    return cleaned if any(ch.isdigit() for ch in cleaned) else None


def find_bare_address(text: str) -> Optional[str]:
    """Return the last bare email address in free text, lower-cased."""
    matches = _BARE_ADDRESS_RE.findall(text or "")
    if not matches:
        return None
    return matches[-1].lower()


def canonical_set(values: Optional[Iterable[str]], canonicalize) -> frozenset:
    """Apply a canonicalizer to every value, dropping empties."""
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    result = set()
    for value in values:
        canonical = canonicalize(value)
        if canonical:
            result.add(canonical)
    return frozenset(result)


__all__ = [
    "EmailAddress",
    "header_value",
    "canonicalize_email",
    "canonicalize_domain",
    "canonicalize_phone",
    "find_bare_address",
    "canonical_set",
]
