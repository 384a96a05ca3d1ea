"""Low-confidence review, pruning, expiry and supersession tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from memory.consolidation.pruning import PruningPolicy
from memory.memory_manager import MemoryManager, SupersessionError
from memory.stores.sql_store import SQLStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def build_pruning(tmp_path: Path) -> tuple[MemoryManager, PruningPolicy]:
    store = SQLStore(db_path=tmp_path / "memory.db")
    store.create_all()
    memory = MemoryManager(sql_store=store, tenant_id="acme")
    return memory, PruningPolicy(memory_manager=memory)


def test_review_lists_weakest_first(tmp_path: Path) -> None:
    memory, pruning = build_pruning(tmp_path)
    for value in (0.25, 0.12, 0.5, 0.29):
        memory.create_memory(agent_id="a", content=f"Memory at {value}.", confidence=value, now=NOW)
    memory.create_memory(agent_id="b", content="Other agent.", confidence=0.11, now=NOW)

    review = pruning.get_low_confidence_memories(agent_id="a", threshold=0.3)
    assert [round(m.confidence, 2) for m in review] == [0.12, 0.25, 0.29]


def test_review_is_capped(tmp_path: Path) -> None:
    memory, pruning = build_pruning(tmp_path)
    for index in range(55):
        memory.create_memory(agent_id="a", content=f"Weak memory {index}.", confidence=0.15, now=NOW)

    assert len(pruning.get_low_confidence_memories(agent_id="a", threshold=0.3, limit=500)) == 50
    assert len(pruning.get_low_confidence_memories(agent_id="a", threshold=0.3, limit=5)) == 5


def test_deactivate_at_or_below_threshold(tmp_path: Path) -> None:
    memory, pruning = build_pruning(tmp_path)
    weak = memory.create_memory(agent_id="a", content="Weak.", confidence=0.15, now=NOW)
    edge = memory.create_memory(agent_id="a", content="Edge.", confidence=0.2, now=NOW)
    kept = memory.create_memory(agent_id="a", content="Kept.", confidence=0.25, now=NOW)

    assert pruning.deactivate_low_confidence_memories(threshold=0.2, now=NOW) == 2

    active = memory.list_memories()
    assert [m.id for m in active] == [kept.id]
    assert all(m.confidence >= 0.2 for m in active)
    for memory_id in (weak.id, edge.id):
        record = memory.get_memory(memory_id)
        assert record is not None
        assert record.is_active is False
        assert record.superseded_by is None


def test_cleanup_expired_memories(tmp_path: Path) -> None:
    memory, pruning = build_pruning(tmp_path)
    expired = memory.create_memory(
        agent_id="a", content="Promo ends.", expires_at=NOW - timedelta(days=1), now=NOW
    )
    future = memory.create_memory(
        agent_id="a", content="Contract renews.", expires_at=NOW + timedelta(days=30), now=NOW
    )
    forever = memory.create_memory(agent_id="a", content="Name is Ada.", now=NOW)

    assert pruning.cleanup_expired_memories(now=NOW) == 1
    assert {m.id for m in memory.list_memories()} == {future.id, forever.id}
    record = memory.get_memory(expired.id)
    assert record is not None and record.is_active is False


def test_supersede_marks_old_inactive(tmp_path: Path) -> None:
    memory, _ = build_pruning(tmp_path)
    old = memory.create_memory(agent_id="a", content="Lives in Paris.", now=NOW)
    new = memory.create_memory(agent_id="a", content="Lives in Lyon.", now=NOW)

    assert memory.supersede_memory(old.id, new.id, now=NOW) is True

    retired = memory.get_memory(old.id)
    replacement = memory.get_memory(new.id)
    assert retired is not None and replacement is not None
    assert retired.is_active is False
    assert retired.superseded_by == new.id
    assert replacement.is_active is True
    assert replacement.superseded_by is None


def test_supersede_requires_active_target_in_tenant(tmp_path: Path) -> None:
    memory, pruning = build_pruning(tmp_path)
    other_tenant = MemoryManager(sql_store=memory.sql_store, tenant_id="globex")
    old = memory.create_memory(agent_id="a", content="Old.", now=NOW)
    inactive = memory.create_memory(agent_id="a", content="Inactive.", confidence=0.1, now=NOW)
    foreign = other_tenant.create_memory(agent_id="a", content="Foreign.", now=NOW)
    pruning.deactivate_low_confidence_memories(threshold=0.1, now=NOW)

    with pytest.raises(SupersessionError):
        memory.supersede_memory(old.id, inactive.id, now=NOW)
    with pytest.raises(SupersessionError):
        memory.supersede_memory(old.id, foreign.id, now=NOW)
    with pytest.raises(SupersessionError):
        memory.supersede_memory(old.id, "missing", now=NOW)
    with pytest.raises(SupersessionError):
        memory.supersede_memory(old.id, old.id, now=NOW)

    unchanged = memory.get_memory(old.id)
    assert unchanged is not None
    assert unchanged.is_active is True
    assert unchanged.superseded_by is None


def test_supersede_missing_old_returns_false(tmp_path: Path) -> None:
    memory, _ = build_pruning(tmp_path)
    new = memory.create_memory(agent_id="a", content="New.", now=NOW)
    assert memory.supersede_memory("missing", new.id, now=NOW) is False


def test_supersession_chain_is_repointed(tmp_path: Path) -> None:
    memory, _ = build_pruning(tmp_path)
    first = memory.create_memory(agent_id="a", content="v1.", now=NOW)
    second = memory.create_memory(agent_id="a", content="v2.", now=NOW)
    third = memory.create_memory(agent_id="a", content="v3.", now=NOW)

    memory.supersede_memory(first.id, second.id, now=NOW)
    memory.supersede_memory(second.id, third.id, now=NOW)

    for memory_id in (first.id, second.id):
        record = memory.get_memory(memory_id)
        assert record is not None
        assert record.superseded_by == third.id
        assert record.is_active is False
    latest = memory.get_memory(third.id)
    assert latest is not None and latest.is_active is True


def test_pruned_replacement_keeps_supersession_history(tmp_path: Path) -> None:
    memory, pruning = build_pruning(tmp_path)
    old = memory.create_memory(agent_id="a", content="Deploys on Fridays.", now=NOW)
    weak = memory.create_memory(agent_id="a", content="Deploys on Mondays.", confidence=0.15, now=NOW)

    memory.supersede_memory(old.id, weak.id, now=NOW)
    assert pruning.deactivate_low_confidence_memories(threshold=0.2, now=NOW) == 1

    retired = memory.get_memory(old.id)
    replacement = memory.get_memory(weak.id)
    assert retired is not None and replacement is not None
    assert retired.superseded_by == weak.id
    assert replacement.is_active is False
    assert replacement.superseded_by is None
