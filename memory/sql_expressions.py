"""Server-side scoring expressions.

Every confidence mutation is issued as a single UPDATE whose arithmetic runs
inside the database, so concurrent reinforcement, contradiction and decay of
the same row cannot lose updates. Elapsed time is computed per dialect.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Float, case, func, literal
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.functions import FunctionElement

from memory.config import ConfidenceConfig
from memory.schemas import AgentMemoryRecord
from memory.types.record import ensure_utc

DECAY_EPSILON = 1e-12


class weeks_since(FunctionElement):  # noqa: N801 - SQL function naming
    """``weeks_since(start, end)``: continuous weeks from start to end."""

    type = Float()
    name = "weeks_since"
    inherit_cache = True


@compiles(weeks_since)
def _weeks_since_default(element: weeks_since, compiler: Any, **kw: Any) -> str:
    start, end = list(element.clauses)
    return "(EXTRACT(EPOCH FROM (%s - %s)) / 604800.0)" % (
        compiler.process(end, **kw),
        compiler.process(start, **kw),
    )


@compiles(weeks_since, "sqlite")
def _weeks_since_sqlite(element: weeks_since, compiler: Any, **kw: Any) -> str:
    start, end = list(element.clauses)
    return "((julianday(%s) - julianday(%s)) / 7.0)" % (
        compiler.process(end, **kw),
        compiler.process(start, **kw),
    )


def number(value: float) -> ColumnElement[float]:
    return literal(float(value), Float())


def timestamp(value: datetime) -> ColumnElement[datetime]:
    return literal(ensure_utc(value), DateTime(timezone=True))


def at_most(expr: ColumnElement[Any], cap: float) -> ColumnElement[Any]:
    return case((expr > number(cap), number(cap)), else_=expr)


def at_least(expr: ColumnElement[Any], floor: float) -> ColumnElement[Any]:
    return case((expr < number(floor), number(floor)), else_=expr)


def clamp_unit(expr: ColumnElement[Any]) -> ColumnElement[Any]:
    return at_least(at_most(expr, 1.0), 0.0)


def elapsed_weeks(start: ColumnElement[Any], now: datetime) -> ColumnElement[float]:
    """Weeks from start to now, clamped at zero for timestamps in the future."""
    return at_least(weeks_since(start, timestamp(now)), 0.0)


def decay_target(config: ConfidenceConfig, now: datetime) -> ColumnElement[float]:
    """Uncapped decay earned since the memory was last used (or created, if never used)."""
    start = func.coalesce(AgentMemoryRecord.last_used_at, AgentMemoryRecord.created_at)
    return elapsed_weeks(start, now) * number(config.decay_per_week)


def reinforced_confidence(config: ConfidenceConfig) -> ColumnElement[float]:
    return at_most(AgentMemoryRecord.confidence + number(config.reinforcement_bonus), 1.0)


def contradicted_confidence(config: ConfidenceConfig) -> ColumnElement[float]:
    """Confidence lowered by one penalty, floored. Rows already under the floor stay where they are."""
    lowered = AgentMemoryRecord.confidence - number(config.contradiction_penalty)
    floor = number(config.confidence_floor)
    return case(
        (lowered >= floor, lowered),
        (AgentMemoryRecord.confidence < floor, AgentMemoryRecord.confidence),
        else_=floor,
    )


def decayed_confidence(config: ConfidenceConfig, now: datetime) -> ColumnElement[float]:
    pending = decay_target(config, now) - AgentMemoryRecord.decay_applied
    return at_least(AgentMemoryRecord.confidence - pending, config.confidence_floor)


def source_weight_expr(config: ConfidenceConfig) -> ColumnElement[float]:
    if not config.source_weights:
        return number(config.default_source_weight)
    whens = {source: number(weight) for source, weight in config.source_weights.items()}
    return case(whens, value=AgentMemoryRecord.source, else_=number(config.default_source_weight))


def recalculated_confidence(config: ConfidenceConfig, now: datetime) -> ColumnElement[float]:
    """The full confidence formula evaluated in SQL."""
    bonus = at_most(
        AgentMemoryRecord.times_reinforced * number(config.reinforcement_bonus),
        config.max_reinforcement_bonus,
    )
    penalty = at_most(
        AgentMemoryRecord.times_contradicted * number(config.contradiction_penalty),
        config.max_contradiction_penalty,
    )
    decay = case(
        (AgentMemoryRecord.last_used_at.is_(None), number(0.0)),
        else_=at_most(
            elapsed_weeks(AgentMemoryRecord.last_used_at, now) * number(config.decay_per_week),
            config.max_age_decay,
        ),
    )
    return clamp_unit(source_weight_expr(config) + bonus - penalty - decay)
