"""Confidence calculator tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from memory.confidence import (
    age_decay,
    calculate_confidence,
    contradiction_penalty,
    preview_confidence,
    reinforcement_bonus,
    source_weight,
    weeks_between,
)
from memory.config import ConfidenceConfig
from memory.types.record import MemoryRecord

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def build_record(**overrides: object) -> MemoryRecord:
    data: dict[str, object] = {
        "id": "m1",
        "tenant_id": "t1",
        "agent_id": "agent",
        "memory_type": "fact",
        "content": "The build uses Python 3.12.",
        "source": "observed",
        "confidence": 0.7,
        "created_at": NOW - timedelta(weeks=52),
        "updated_at": NOW,
    }
    data.update(overrides)
    return MemoryRecord.model_validate(data)


def test_trained_memory_used_now_is_fully_confident() -> None:
    factors = calculate_confidence(build_record(source="trained", last_used_at=NOW), now=NOW)
    assert factors.final_confidence == pytest.approx(1.0)
    assert factors.age_decay == 0.0


def test_inferred_memory_bonus_is_capped() -> None:
    factors = calculate_confidence(build_record(source="inferred", times_reinforced=10), now=NOW)
    assert factors.reinforcement_bonus == pytest.approx(0.2)
    assert factors.final_confidence == pytest.approx(0.7)


def test_observed_memory_penalty_is_capped() -> None:
    factors = calculate_confidence(
        build_record(source="observed", times_contradicted=5, last_used_at=NOW),
        now=NOW,
    )
    assert factors.contradiction_penalty == pytest.approx(0.3)
    assert factors.final_confidence == pytest.approx(0.4)


def test_age_decay_is_capped_after_thirty_weeks() -> None:
    factors = calculate_confidence(
        build_record(source="told", last_used_at=NOW - timedelta(weeks=30)),
        now=NOW,
    )
    assert factors.age_decay == pytest.approx(0.2)
    assert factors.final_confidence == pytest.approx(0.7)


def test_never_used_memory_does_not_decay() -> None:
    record = build_record(source="told", created_at=NOW - timedelta(weeks=500))
    assert calculate_confidence(record, now=NOW).age_decay == 0.0
    assert age_decay(None, now=NOW) == 0.0


def test_final_confidence_stays_within_unit_interval() -> None:
    high = preview_confidence("trained", times_reinforced=10_000, last_used_at=NOW, now=NOW)
    low = preview_confidence(
        "inferred",
        times_contradicted=10_000,
        last_used_at=NOW - timedelta(weeks=10_000),
        now=NOW,
    )
    assert 0.0 <= high.final_confidence <= 1.0
    assert 0.0 <= low.final_confidence <= 1.0
    assert high.final_confidence == pytest.approx(1.0)


def test_caps_do_not_depend_on_count_beyond_saturation() -> None:
    assert reinforcement_bonus(100) == reinforcement_bonus(4)
    assert contradiction_penalty(100) == contradiction_penalty(3)


def test_monotonic_in_each_signal() -> None:
    previous = None
    for count in range(0, 8):
        value = preview_confidence("observed", times_reinforced=count, now=NOW).final_confidence
        if previous is not None:
            assert value >= previous
        previous = value

    previous = None
    for count in range(0, 8):
        value = preview_confidence("observed", times_contradicted=count, now=NOW).final_confidence
        if previous is not None:
            assert value <= previous
        previous = value

    previous = None
    for weeks in range(0, 40, 3):
        value = preview_confidence(
            "observed", last_used_at=NOW - timedelta(weeks=weeks), now=NOW
        ).final_confidence
        if previous is not None:
            assert value <= previous
        previous = value


def test_unknown_source_uses_default_weight() -> None:
    assert source_weight("rumour") == 0.5
    assert source_weight("TOLD") == 0.9
    factors = calculate_confidence(build_record(source="rumour"), now=NOW)
    assert factors.source_weight == 0.5


def test_future_last_use_does_not_add_confidence() -> None:
    factors = calculate_confidence(build_record(source="told", last_used_at=NOW + timedelta(days=3)), now=NOW)
    assert factors.age_decay == 0.0
    assert factors.final_confidence == pytest.approx(0.9)


def test_negative_counters_are_rejected() -> None:
    with pytest.raises(ValueError):
        reinforcement_bonus(-1)
    with pytest.raises(ValueError):
        contradiction_penalty(-2)
    with pytest.raises(ValueError):
        build_record(times_reinforced=-1)


def test_custom_weights_are_injectable() -> None:
    config = ConfidenceConfig(
        source_weights={"Observed": 0.4},
        reinforcement_bonus=0.1,
        max_reinforcement_bonus=0.5,
    )
    factors = calculate_confidence(build_record(source="observed", times_reinforced=3), config=config, now=NOW)
    assert factors.source_weight == pytest.approx(0.4)
    assert factors.reinforcement_bonus == pytest.approx(0.3)
    assert factors.final_confidence == pytest.approx(0.7)


def test_weeks_between_treats_naive_datetimes_as_utc() -> None:
    naive_start = (NOW - timedelta(weeks=3)).replace(tzinfo=None)

    assert weeks_between(naive_start, NOW) == pytest.approx(3.0)
    assert weeks_between(NOW, naive_start) == 0.0
