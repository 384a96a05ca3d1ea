"""Confidence breakdown models."""

from __future__ import annotations

from pydantic import BaseModel


class ConfidenceFactors(BaseModel):
    """Per-factor breakdown of a memory's confidence. Never persisted."""

    source_weight: float
    reinforcement_bonus: float
    contradiction_penalty: float
    age_decay: float
    final_confidence: float
