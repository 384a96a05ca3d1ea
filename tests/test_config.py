"""Configuration loading tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from core.policy_runtime import (
    DATABASE_URL_ENV,
    database_url,
    load_effective_config,
    load_yaml,
    merge_dicts,
)
from memory.config import EngineConfig

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_repository_defaults_match_model_defaults() -> None:
    config = EngineConfig.from_mapping(load_yaml(REPO_ROOT / "config" / "default.yaml"))
    assert config == EngineConfig()


def test_partial_sections_keep_defaults() -> None:
    config = EngineConfig.from_mapping(
        {
            "paths": {"db_path": "elsewhere.db"},
            "confidence": {"decay_per_week": 0.02, "source_weights": {"TOLD": 0.95}},
            "scheduler": {"tasks": {"age_decay": {"interval_hours": 12}}},
        }
    )
    assert config.confidence.decay_per_week == 0.02
    assert config.confidence.max_age_decay == 0.2
    assert config.confidence.source_weights == {"told": 0.95}
    assert config.scheduler.tasks["age_decay"].interval_hours == 12
    assert config.scheduler.tasks["age_decay"].enabled is True
    assert config.scheduler.tasks["confidence_recalculation"].enabled is False
    assert config.retrieval.default_limit == 10


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        EngineConfig.from_mapping({"confidence": {"source_weights": {"told": 1.5}}})
    with pytest.raises(ValidationError):
        EngineConfig.from_mapping({"confidence": {"confidence_floor": -0.1}})
    with pytest.raises(ValidationError):
        EngineConfig.from_mapping({"scheduler": {"tasks": {"age_decay": {"interval_hours": 0}}}})


def test_load_yaml_requires_mapping(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("- one\n- two\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_yaml(path)
    assert load_yaml(tmp_path / "missing.yaml") == {}


def test_merge_dicts_is_recursive() -> None:
    merged = merge_dicts({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"c": 20}, "e": 5})
    assert merged == {"a": {"b": 1, "c": 20}, "d": 3, "e": 5}


def test_local_overrides_are_merged(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.yaml").write_text(
        "confidence:\n  decay_per_week: 0.01\n  confidence_floor: 0.1\n", encoding="utf-8"
    )
    (config_dir / "local.yaml").write_text("confidence:\n  decay_per_week: 0.03\n", encoding="utf-8")
    extra = tmp_path / "extra.yaml"
    extra.write_text("retrieval:\n  default_limit: 3\n", encoding="utf-8")

    merged = load_effective_config(tmp_path, extra_path=extra)

    assert merged["confidence"] == {"decay_per_week": 0.03, "confidence_floor": 0.1}
    assert merged["retrieval"] == {"default_limit": 3}


def test_database_url_environment_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
    assert database_url({"database": {"url": ""}}) is None
    assert database_url({"database": {"url": "sqlite:///x.db"}}) == "sqlite:///x.db"

    monkeypatch.setenv(DATABASE_URL_ENV, "postgresql+psycopg://u:p@db/memory")
    assert database_url({"database": {"url": "sqlite:///x.db"}}) == "postgresql+psycopg://u:p@db/memory"
