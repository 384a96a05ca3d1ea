"""Injectable tuning configuration for the memory engine."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_SOURCE_WEIGHTS: dict[str, float] = {
    "trained": 1.0,
    "told": 0.9,
    "corrected": 0.8,
    "observed": 0.7,
    "imported": 0.6,
    "inferred": 0.5,
}

class ConfidenceConfig(BaseModel):
    """Source priors and per-signal weights used to score memories."""

    source_weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_SOURCE_WEIGHTS))
    default_source_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    reinforcement_bonus: float = Field(default=0.05, ge=0.0, le=1.0)
    max_reinforcement_bonus: float = Field(default=0.2, ge=0.0, le=1.0)
    contradiction_penalty: float = Field(default=0.1, ge=0.0, le=1.0)
    max_contradiction_penalty: float = Field(default=0.3, ge=0.0, le=1.0)
    decay_per_week: float = Field(default=0.01, ge=0.0, le=1.0)
    max_age_decay: float = Field(default=0.2, ge=0.0, le=1.0)
    confidence_floor: float = Field(default=0.1, ge=0.0, le=1.0)

    @field_validator("source_weights")
    @classmethod
    def _weights_in_range(cls, value: dict[str, float]) -> dict[str, float]:
        normalized: dict[str, float] = {}
        for source, weight in value.items():
            weight = float(weight)
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"Source weight for '{source}' must be within [0, 1], got {weight}.")
            normalized[source.lower().strip()] = weight
        return normalized


class ConsolidationConfig(BaseModel):
    """Thresholds for duplicate detection, review and pruning."""

    duplicate_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    candidate_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    review_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    review_limit: int = Field(default=50, ge=1)
    prune_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    candidate_limit: int = Field(default=20, ge=1)
    scan_limit: int = Field(default=500, ge=1)


class RetrievalConfig(BaseModel):
    """Composite ranking weights and context bounds."""

    similarity_weight: float = Field(default=0.6, ge=0.0)
    confidence_weight: float = Field(default=0.3, ge=0.0)
    lexical_weight: float = Field(default=0.1, ge=0.0)
    default_limit: int = Field(default=10, ge=1)
    max_context_chars: int = Field(default=4000, ge=1)
    min_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    candidate_pool: int = Field(default=500, ge=1)


class ScheduledTaskConfig(BaseModel):
    enabled: bool = True
    interval_hours: float = Field(default=24.0, gt=0.0)


def _default_tasks() -> dict[str, ScheduledTaskConfig]:
    return {
        "age_decay": ScheduledTaskConfig(interval_hours=24),
        "expired_cleanup": ScheduledTaskConfig(interval_hours=24),
        "low_confidence_prune": ScheduledTaskConfig(interval_hours=168),
        "consolidation": ScheduledTaskConfig(interval_hours=168),
        "confidence_recalculation": ScheduledTaskConfig(enabled=False, interval_hours=720),
    }


class SchedulerConfig(BaseModel):
    tasks: dict[str, ScheduledTaskConfig] = Field(default_factory=_default_tasks)

    @field_validator("tasks", mode="before")
    @classmethod
    def _merge_with_defaults(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        merged: dict[str, Any] = {name: task.model_dump() for name, task in _default_tasks().items()}
        for name, task_cfg in value.items():
            if isinstance(task_cfg, dict):
                merged[name] = {**merged.get(name, {}), **task_cfg}
            else:
                merged[name] = task_cfg
        return merged


class EmbeddingConfig(BaseModel):
    provider: str = "hashing"
    model: str = "text-embedding-3-small"
    dimension: int = Field(default=256, ge=8)


class EngineConfig(BaseModel):
    """Top-level engine configuration parsed from the merged YAML mapping."""

    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    consolidation: ConsolidationConfig = Field(default_factory=ConsolidationConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    embeddings: EmbeddingConfig = Field(default_factory=EmbeddingConfig)

    @classmethod
    def from_mapping(cls, config: dict[str, Any] | None) -> EngineConfig:
        """Build engine config from a loaded configuration mapping, ignoring unrelated keys."""
        cfg = config or {}
        sections = ("confidence", "consolidation", "retrieval", "scheduler", "embeddings")
        return cls.model_validate({key: cfg[key] for key in sections if cfg.get(key) is not None})
