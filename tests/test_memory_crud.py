"""Memory CRUD and tenant isolation tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from memory.memory_manager import MemoryManager
from memory.stores.sql_store import SQLStore
from memory.types.record import MemoryType

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def build_store(tmp_path: Path) -> SQLStore:
    store = SQLStore(db_path=tmp_path / "memory.db")
    store.create_all()
    return store


def build_memory(tmp_path: Path, tenant_id: str = "acme") -> MemoryManager:
    return MemoryManager(sql_store=build_store(tmp_path), tenant_id=tenant_id)


def test_create_and_fetch_memory(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)

    created = memory.create_memory(
        agent_id="support-bot",
        content="  Customer prefers email over phone.  ",
        memory_type="preference",
        source="Told",
        subject="contact channel",
        now=NOW,
    )
    assert created.content == "Customer prefers email over phone."
    assert created.source == "told"
    assert created.memory_type == MemoryType.PREFERENCE
    assert created.confidence == pytest.approx(0.9)
    assert created.is_active
    assert created.created_at == NOW

    fetched = memory.get_memory(created.id)
    assert fetched is not None
    assert fetched.id == created.id
    assert fetched.subject == "contact channel"
    assert fetched.created_at == NOW
    assert fetched.last_used_at is None


def test_explicit_confidence_is_clamped(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Too sure.", confidence=1.7, now=NOW)
    assert record.confidence == 1.0


def test_create_rejects_empty_content(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    with pytest.raises(ValueError):
        memory.create_memory(agent_id="a", content="   ")
    with pytest.raises(ValueError):
        memory.create_memory(agent_id="a", content="x", memory_type="rumour")


def test_list_memories_filters(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    fact = memory.create_memory(agent_id="a", content="Office opens at 9.", now=NOW)
    memory.create_memory(agent_id="a", content="Likes short answers.", memory_type="preference", now=NOW)
    memory.create_memory(agent_id="b", content="Other agent fact.", now=NOW)

    assert {m.agent_id for m in memory.list_memories()} == {"a", "b"}
    assert len(memory.list_memories(agent_id="a")) == 2
    only_facts = memory.list_memories(agent_id="a", memory_type=MemoryType.FACT)
    assert [m.id for m in only_facts] == [fact.id]


def test_tenants_are_isolated(tmp_path: Path) -> None:
    store = build_store(tmp_path)
    acme = MemoryManager(sql_store=store, tenant_id="acme")
    globex = MemoryManager(sql_store=store, tenant_id="globex")

    record = acme.create_memory(agent_id="bot", content="Acme ships on Fridays.", now=NOW)

    assert globex.get_memory(record.id) is None
    assert globex.list_memories() == []
    assert globex.reinforce_memory(record.id, now=NOW) is False
    assert globex.contradict_memory(record.id, now=NOW) is False
    assert globex.mark_memories_used([record.id], now=NOW) == 0
    assert globex.get_memory_stats()["active_count"] == 0

    untouched = acme.get_memory(record.id)
    assert untouched is not None
    assert untouched.times_reinforced == 0
    assert untouched.confidence == record.confidence


def test_stats_report_counts_and_average(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    memory.create_memory(agent_id="a", content="One.", confidence=0.8, now=NOW)
    memory.create_memory(agent_id="a", content="Two.", confidence=0.4, memory_type="skill", now=NOW)
    memory.create_memory(agent_id="b", content="Three.", confidence=0.6, source="inferred", now=NOW)

    stats = memory.get_memory_stats(agent_id="a")
    assert stats["active_count"] == 2
    assert stats["inactive_count"] == 0
    assert stats["avg_confidence"] == pytest.approx(0.6)
    assert stats["by_type"] == {"fact": 1, "skill": 1}

    overall = memory.get_memory_stats()
    assert overall["active_count"] == 3
    assert overall["by_source"] == {"observed": 2, "inferred": 1}


def test_mark_used_sets_last_used(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Used fact.", now=NOW)
    used_at = NOW + timedelta(hours=2)

    assert memory.mark_memories_used([record.id, record.id], now=used_at) == 1
    refreshed = memory.get_memory(record.id)
    assert refreshed is not None
    assert refreshed.last_used_at == used_at
    assert refreshed.decay_applied == 0.0


def test_naive_timestamps_are_stored_as_utc(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Naive clock.", now=NOW.replace(tzinfo=None))

    memory.mark_memories_used([record.id], now=NOW.replace(tzinfo=None))
    refreshed = memory.get_memory(record.id)
    assert refreshed is not None
    assert refreshed.created_at == NOW
    assert refreshed.last_used_at == NOW


def test_lifecycle_events_are_recorded(tmp_path: Path) -> None:
    memory = build_memory(tmp_path)
    record = memory.create_memory(agent_id="a", content="Audited fact.", now=NOW)
    memory.reinforce_memory(record.id, now=NOW + timedelta(minutes=1))

    events = memory.list_events(memory_id=record.id)
    assert [event["event_type"] for event in events] == ["reinforced", "created"]
    assert events[1]["details"]["agent_id"] == "a"
    assert events[0]["timestamp"] == NOW + timedelta(minutes=1)


def test_tenant_is_required(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        MemoryManager(sql_store=build_store(tmp_path), tenant_id="")
