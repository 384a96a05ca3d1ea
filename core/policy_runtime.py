"""Configuration and runtime bootstrapping."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

DATABASE_URL_ENV = "AGENT_MEMORY_DATABASE_URL"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure the workspace directory exists and return resolved paths."""
    paths_cfg = config.get("paths", {})
    workspace_dir = (root / paths_cfg.get("workspace_dir", "workspace")).resolve()
    db_path = (root / paths_cfg.get("db_path", "workspace/agent_memory.db")).resolve()

    workspace_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    return {
        "workspace_dir": workspace_dir,
        "db_path": db_path,
    }


def load_effective_config(root: Path, extra_path: Path | None = None) -> dict[str, Any]:
    """Load the default config and optional local overrides, merged in that order."""
    config_dir = root / "config"
    merged = load_yaml(config_dir / "default.yaml")
    merged = merge_dicts(merged, load_yaml(config_dir / "local.yaml"))
    if extra_path is not None:
        merged = merge_dicts(merged, load_yaml(extra_path))
    return merged


def database_url(config: dict[str, Any]) -> str | None:
    """Resolve the storage URL: environment first, then ``database.url``.

    Returns None when neither is set, meaning the local SQLite file is used.
    """
    env_url = os.environ.get(DATABASE_URL_ENV, "").strip()
    if env_url:
        return env_url
    url = str(config.get("database", {}).get("url") or "").strip()
    return url or None
