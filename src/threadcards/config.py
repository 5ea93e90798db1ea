"""Tunable settings for message normalization and thread assembly.

The organizational context (who counts as an agent) is supplied per
conversation through :class:`threadcards.models.NormalizationContext`. The
settings here are the knobs that stay fixed for a deployment: sampling
thresholds for the completeness estimate, synthetic timestamp spacing and
the fixed author labels.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field, field_validator


class NormalizationSettings(BaseModel):
    """Runtime configuration for normalization, segmentation and estimation."""

    min_sample_size: int = Field(
        default=10,
        ge=1,
        le=10_000,
        description="Raw records that must be loaded before the ratio is trusted",
    )
    confident_remaining_limit: int = Field(
        default=500,
        ge=0,
        description="Largest remaining count that may be reported with high confidence",
    )
    synthetic_offset: timedelta = Field(
        default=timedelta(seconds=1),
        description="Spacing subtracted per synthetic card to keep strict ordering",
    )
    body_hash_length: int = Field(
        default=16,
        ge=8,
        le=64,
        description="Hex digits of the body hash kept in content fingerprints",
    )
    preview_length: int = Field(
        default=200,
        ge=0,
        le=5000,
        description="Maximum characters of the plain-text preview",
    )
    phone_agent_detection: bool = Field(
        default=False,
        description="Treat numbers in NormalizationContext.agent_phones as agent identities",
    )
    system_label: str = Field(default="System", description="Label for system messages")
    agent_label: str = Field(default="Agent", description="Label prefix for agent messages")
    customer_placeholder: str = Field(
        default="Customer", description="Label when nothing is known about the customer"
    )

    model_config = {"frozen": True}

    @field_validator("synthetic_offset")
    @classmethod
    def _ensure_positive_offset(cls, value: timedelta) -> timedelta:  # type: ignore[override]
        if value <= timedelta(0):
            raise ValueError("synthetic_offset must be positive to keep timestamps strictly ordered")
        return value


DEFAULT_SETTINGS = NormalizationSettings()


__all__ = ["NormalizationSettings", "DEFAULT_SETTINGS"]
