"""Multi-factor confidence calculator for agent memories.

Confidence is derived from four inputs:

- the prior weight of the memory's source (``trained`` highest, ``inferred`` lowest),
- a linear, capped bonus per reinforcement,
- a linear, capped penalty per contradiction,
- a linear, capped decay per week since the memory was last used.

A memory that has never been used does not decay here; the batch scheduler in
``memory.consolidation.forgetting`` handles staleness of unused memories.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol

from memory.config import ConfidenceConfig
from memory.types.factors import ConfidenceFactors
from memory.types.record import ensure_utc, normalize_source

SECONDS_PER_WEEK = 7 * 24 * 3600.0


class ScoringInputs(Protocol):
    source: str
    times_reinforced: int
    times_contradicted: int
    last_used_at: datetime | None


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def weeks_between(start: datetime, end: datetime) -> float:
    """Continuous week count from start to end, never negative."""
    start_utc = ensure_utc(start) or start
    end_utc = ensure_utc(end) or end
    return max(0.0, (end_utc - start_utc).total_seconds() / SECONDS_PER_WEEK)


def source_weight(source: str | None, config: ConfidenceConfig | None = None) -> float:
    """Prior weight for a source tag, falling back to the default for unknown tags."""
    cfg = config or ConfidenceConfig()
    if source is None:
        return cfg.default_source_weight
    return cfg.source_weights.get(normalize_source(source), cfg.default_source_weight)


def reinforcement_bonus(times_reinforced: int, config: ConfidenceConfig | None = None) -> float:
    cfg = config or ConfidenceConfig()
    if times_reinforced < 0:
        raise ValueError(f"times_reinforced must be non-negative, got {times_reinforced}.")
    return min(cfg.max_reinforcement_bonus, times_reinforced * cfg.reinforcement_bonus)


def contradiction_penalty(times_contradicted: int, config: ConfidenceConfig | None = None) -> float:
    cfg = config or ConfidenceConfig()
    if times_contradicted < 0:
        raise ValueError(f"times_contradicted must be non-negative, got {times_contradicted}.")
    return min(cfg.max_contradiction_penalty, times_contradicted * cfg.contradiction_penalty)


def age_decay(
    last_used_at: datetime | None,
    config: ConfidenceConfig | None = None,
    now: datetime | None = None,
) -> float:
    """Capped decay for time since last use. Never-used memories do not decay."""
    cfg = config or ConfidenceConfig()
    if last_used_at is None:
        return 0.0
    current = now or datetime.now(UTC)
    return min(cfg.max_age_decay, weeks_between(last_used_at, current) * cfg.decay_per_week)


def preview_confidence(
    source: str,
    times_reinforced: int = 0,
    times_contradicted: int = 0,
    last_used_at: datetime | None = None,
    config: ConfidenceConfig | None = None,
    now: datetime | None = None,
) -> ConfidenceFactors:
    """Score a hypothetical memory without needing a stored record."""
    weight = source_weight(source, config)
    bonus = reinforcement_bonus(times_reinforced, config)
    penalty = contradiction_penalty(times_contradicted, config)
    decay = age_decay(last_used_at, config, now)
    return ConfidenceFactors(
        source_weight=weight,
        reinforcement_bonus=bonus,
        contradiction_penalty=penalty,
        age_decay=decay,
        final_confidence=clamp(weight + bonus - penalty - decay),
    )


def calculate_confidence(
    record: ScoringInputs,
    config: ConfidenceConfig | None = None,
    now: datetime | None = None,
) -> ConfidenceFactors:
    """Compute the confidence breakdown for a memory record. Pure and deterministic for a fixed now."""
    return preview_confidence(
        source=record.source,
        times_reinforced=record.times_reinforced,
        times_contradicted=record.times_contradicted,
        last_used_at=record.last_used_at,
        config=config,
        now=now,
    )
