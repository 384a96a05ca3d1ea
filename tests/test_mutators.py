"""Reinforcement and contradiction tests."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from memory.memory_manager import MemoryManager
from memory.stores.sql_store import SQLStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def build_memory(tmp_path: Path) -> MemoryManager:
    store = SQLStore(db_path=tmp_path / "memory.db")
    store.create_all()
    return MemoryManager(sql_store=store, tenant_id="acme")


def test_reinforce_adds_bonus_and_counts(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Deploys happen on Tuesday.", confidence=0.6, now=NOW)

    assert memory.reinforce_memory(record.id, now=NOW) is True
    updated = memory.get_memory(record.id)
    assert updated is not None
    assert updated.times_reinforced == 1
    assert updated.confidence == pytest.approx(0.65)


def test_reinforce_never_exceeds_one(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Sky is blue.", source="trained", now=NOW)

    for _ in range(30):
        memory.reinforce_memory(record.id, now=NOW)

    updated = memory.get_memory(record.id)
    assert updated is not None
    assert updated.times_reinforced == 30
    assert updated.confidence == 1.0


def test_contradict_never_goes_below_floor(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Office is in Berlin.", source="told", now=NOW)

    for _ in range(25):
        assert memory.contradict_memory(record.id, now=NOW) is True
        current = memory.get_memory(record.id)
        assert current is not None
        assert current.confidence >= 0.1 - 1e-9

    updated = memory.get_memory(record.id)
    assert updated is not None
    assert updated.times_contradicted == 25
    assert updated.confidence == pytest.approx(0.1)


def test_contradict_does_not_raise_confidence_under_floor(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Weak hunch.", confidence=0.05, now=NOW)

    memory.contradict_memory(record.id, now=NOW)

    updated = memory.get_memory(record.id)
    assert updated is not None
    assert updated.confidence == pytest.approx(0.05)


def test_missing_memory_returns_false(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    assert memory.reinforce_memory("does-not-exist", now=NOW) is False
    assert memory.contradict_memory("does-not-exist", now=NOW) is False


def test_agent_scope_is_respected(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="owner", content="Belongs to owner.", now=NOW)

    assert memory.reinforce_memory(record.id, agent_id="intruder", now=NOW) is False
    assert memory.reinforce_memory(record.id, agent_id="owner", now=NOW) is True


def test_signals_apply_to_inactive_memories(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    old = memory.create_memory(agent_id="a", content="Old fact.", now=NOW)
    new = memory.create_memory(agent_id="a", content="New fact.", now=NOW)
    memory.supersede_memory(old.id, new.id, now=NOW)

    assert memory.contradict_memory(old.id, now=NOW) is True
    retired = memory.get_memory(old.id)
    assert retired is not None
    assert retired.times_contradicted == 1
    assert retired.is_active is False
