"""Shared fixtures and record factories for threadcards tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest

from threadcards.models import NormalizationContext, RawMessageRecord

BASE_TIME = datetime(2024, 1, 4, 16, 30, tzinfo=timezone.utc)


def create_record(
    record_id: str = "msg-1",
    body: Optional[str] = "Hello",
    *,
    content_type: str = "text/plain",
    sender_kind: Optional[str] = "customer",
    created_at: Optional[datetime] = None,
    headers: Optional[Dict[str, Any]] = None,
    **fields: Any,
) -> RawMessageRecord:
    """Create a RawMessageRecord with test defaults."""
    return RawMessageRecord(
        id=record_id,
        body=body,
        content_type=content_type,
        sender_kind=sender_kind,
        created_at=created_at or BASE_TIME,
        headers=headers or {},
        **fields,
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def make_record():
    """Factory for raw message records."""
    return create_record


@pytest.fixture
def context() -> NormalizationContext:
    """Context with one agent address, an agent domain and a known customer."""
    return NormalizationContext(
        viewer_email="agent@test.com",
        agent_emails=["agent@test.com"],
        agent_domains=["acme.com"],
        customer_email="customer@example.com",
        customer_name="Test Customer",
    )


@pytest.fixture
def empty_context() -> NormalizationContext:
    """Context without any organization information."""
    return NormalizationContext()
