"""Operator CLI tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from core.policy_runtime import DATABASE_URL_ENV
from ui.cli.cli import app

runner = CliRunner()


def build_config(tmp_path: Path) -> Path:
    config_path = tmp_path / "override.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "paths": {
                    "workspace_dir": str(tmp_path / "workspace"),
                    "db_path": str(tmp_path / "workspace" / "cli.db"),
                },
                "consolidation": {"prune_threshold": 0.25},
            }
        ),
        encoding="utf-8",
    )
    return config_path


def test_config_option_reaches_every_command(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
    config_path = build_config(tmp_path)

    shown = runner.invoke(app, ["--config", str(config_path), "config", "show"])
    assert shown.exit_code == 0, shown.output
    assert json.loads(shown.output)["engine"]["consolidation"]["prune_threshold"] == 0.25

    added = runner.invoke(
        app,
        ["--config", str(config_path), "memory", "add", "Ships on Tuesdays.", "--agent", "a", "--tenant", "acme"],
    )
    assert added.exit_code == 0, added.output
    memory_id = json.loads(added.output)["id"]

    listed = runner.invoke(app, ["--config", str(config_path), "memory", "list", "--tenant", "acme"])
    assert listed.exit_code == 0, listed.output
    assert [item["id"] for item in json.loads(listed.output)] == [memory_id]
    assert (tmp_path / "workspace" / "cli.db").exists()


def test_unknown_memory_exits_with_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
    config_path = build_config(tmp_path)

    result = runner.invoke(app, ["--config", str(config_path), "memory", "show", "missing"])
    assert result.exit_code == 1
