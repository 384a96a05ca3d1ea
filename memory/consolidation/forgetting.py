"""Age decay and full confidence recalculation."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import update

from memory.config import ConfidenceConfig
from memory.memory_manager import MemoryManager
from memory.schemas import AgentMemoryRecord
from memory.sql_expressions import (
    DECAY_EPSILON,
    decay_target,
    decayed_confidence,
    number,
    recalculated_confidence,
)
from memory.types.record import ensure_utc

logger = logging.getLogger("ame.forgetting")


class ForgettingPolicy:
    """Lowers confidence of memories that go unused, in single batch statements."""

    def __init__(self, memory_manager: MemoryManager) -> None:
        self.memory_manager = memory_manager

    @property
    def config(self) -> ConfidenceConfig:
        return self.memory_manager.config

    def apply_age_decay(self, agent_id: str | None = None, now: datetime | None = None) -> int:
        """Decay active memories by the weeks elapsed since last use (or creation).

        Decay is uncapped but never takes confidence below the floor. The
        amount already applied is tracked per row, so running twice with the
        same ``now`` leaves the second run with nothing to do.
        """
        current = ensure_utc(now) or datetime.now(UTC)
        cfg = self.config
        target = decay_target(cfg, current)
        stmt = (
            update(AgentMemoryRecord)
            .where(
                *self.memory_manager.scope_filters(agent_id),
                AgentMemoryRecord.confidence > number(cfg.confidence_floor),
                target > AgentMemoryRecord.decay_applied + number(DECAY_EPSILON),
            )
            .values(
                confidence=decayed_confidence(cfg, current),
                decay_applied=target,
                updated_at=current,
            )
            .execution_options(synchronize_session=False)
        )
        with self.memory_manager.sql_store.session() as sess:
            count = sess.execute(stmt).rowcount
            self.memory_manager.log_event(
                sess, "decayed", details={"agent_id": agent_id, "count": count}, now=current
            )
        logger.info(
            "Age decay touched %d memories (tenant=%s, agent=%s).",
            count,
            self.memory_manager.tenant_id,
            agent_id,
        )
        return count

    def recalculate_all_confidence(
        self,
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """Re-derive confidence of every active memory in scope from its scoring inputs.

        Used after changing weights. Also resets the decay bookkeeping to the
        current elapsed time so scheduled decay continues from here.
        """
        current = ensure_utc(now) or datetime.now(UTC)
        cfg = self.config
        stmt = (
            update(AgentMemoryRecord)
            .where(*self.memory_manager.scope_filters(agent_id))
            .values(
                confidence=recalculated_confidence(cfg, current),
                decay_applied=decay_target(cfg, current),
                updated_at=current,
            )
            .execution_options(synchronize_session=False)
        )
        with self.memory_manager.sql_store.session() as sess:
            count = sess.execute(stmt).rowcount
            self.memory_manager.log_event(
                sess, "recalculated", details={"agent_id": agent_id, "count": count}, now=current
            )
        logger.info(
            "Recalculated confidence for %d memories (tenant=%s, agent=%s).",
            count,
            self.memory_manager.tenant_id,
            agent_id,
        )
        return count
