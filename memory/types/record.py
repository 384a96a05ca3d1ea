"""Typed memory record parsed at the storage boundary."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class MemoryType(StrEnum):
    FACT = "fact"
    PREFERENCE = "preference"
    CORRECTION = "correction"
    SKILL = "skill"
    EPISODIC = "episodic"
    PATTERN = "pattern"
    CONTEXT = "context"


class MemorySource(StrEnum):
    """Provenance of a memory, used as its confidence prior."""

    TRAINED = "trained"
    TOLD = "told"
    CORRECTED = "corrected"
    OBSERVED = "observed"
    IMPORTED = "imported"
    INFERRED = "inferred"


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_source(source: str) -> str:
    """Lower-case a source tag. Unknown tags are kept and scored with the default weight."""
    return str(source).lower().strip()


class MemoryRecord(BaseModel):
    """A single memory unit with its scoring inputs."""

    id: str
    tenant_id: str
    agent_id: str
    memory_type: MemoryType
    content: str
    subject: str | None = None
    embedding: list[float] | None = None
    source: str = MemorySource.OBSERVED.value
    confidence: float = Field(ge=0.0, le=1.0)
    times_reinforced: int = Field(default=0, ge=0)
    times_contradicted: int = Field(default=0, ge=0)
    last_used_at: datetime | None = None
    decay_applied: float = Field(default=0.0, ge=0.0)
    is_active: bool = True
    superseded_by: str | None = None
    expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("last_used_at", "expires_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    @field_validator("source")
    @classmethod
    def _normalize_source(cls, value: str) -> str:
        return normalize_source(value)
