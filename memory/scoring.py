"""Scoring helpers for memory retrieval."""

from __future__ import annotations

from memory.config import RetrievalConfig


def lexical_overlap(query: str, text: str) -> float:
    """Compute simple token overlap ratio."""
    q_tokens = {token.lower() for token in query.split() if token.strip()}
    t_tokens = {token.lower() for token in text.split() if token.strip()}
    if not q_tokens or not t_tokens:
        return 0.0
    return len(q_tokens & t_tokens) / len(q_tokens)


def composite_score(
    similarity: float,
    confidence: float,
    lexical: float,
    config: RetrievalConfig | None = None,
) -> float:
    """Weighted retrieval score. Negative cosine counts as no similarity."""
    cfg = config or RetrievalConfig()
    return (
        cfg.similarity_weight * max(0.0, similarity)
        + cfg.confidence_weight * confidence
        + cfg.lexical_weight * lexical
    )
