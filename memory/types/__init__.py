"""Typed memory payload models."""

from memory.types.factors import ConfidenceFactors
from memory.types.record import MemoryRecord, MemorySource, MemoryType, ensure_utc
from memory.types.retrieval import (
    ConsolidationCandidate,
    MemoryContext,
    RankedMemory,
    SimilarMemory,
)

__all__ = [
    "ConfidenceFactors",
    "ConsolidationCandidate",
    "MemoryContext",
    "MemoryRecord",
    "MemorySource",
    "MemoryType",
    "RankedMemory",
    "SimilarMemory",
    "ensure_utc",
]
