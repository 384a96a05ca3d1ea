"""Retrieval and consolidation result models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from memory.types.record import MemoryRecord


class RankedMemory(BaseModel):
    """A memory with the scores that ranked it."""

    memory: MemoryRecord
    similarity: float
    lexical: float = 0.0
    score: float


class MemoryContext(BaseModel):
    """Bounded block of memories assembled for prompt injection."""

    text: str
    memory_ids: list[str] = Field(default_factory=list)
    truncated: bool = False


class SimilarMemory(BaseModel):
    memory: MemoryRecord
    similarity: float


class ConsolidationCandidate(BaseModel):
    """Pair of near-duplicate memories with the suggested survivor first."""

    keep: MemoryRecord
    merge: MemoryRecord
    similarity: float
    exact_match: bool = False
