"""Low-confidence review, deactivation and expiry."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import select, update

from memory.memory_manager import MemoryManager
from memory.schemas import AgentMemoryRecord
from memory.sql_expressions import number, timestamp
from memory.types.record import MemoryRecord, ensure_utc

logger = logging.getLogger("ame.pruning")

REVIEW_LIMIT = 50


class PruningPolicy:
    """Removes weak or expired memories from retrieval without deleting them."""

    def __init__(self, memory_manager: MemoryManager) -> None:
        self.memory_manager = memory_manager

    def get_low_confidence_memories(
        self,
        agent_id: str,
        threshold: float = 0.3,
        limit: int = REVIEW_LIMIT,
    ) -> list[MemoryRecord]:
        """Active memories below threshold, weakest first, for human review."""
        query = (
            select(AgentMemoryRecord)
            .where(
                *self.memory_manager.scope_filters(agent_id),
                AgentMemoryRecord.confidence < number(threshold),
            )
            .order_by(AgentMemoryRecord.confidence.asc(), AgentMemoryRecord.id)
            .limit(min(limit, REVIEW_LIMIT))
        )
        with self.memory_manager.sql_store.session() as sess:
            rows = sess.scalars(query).all()
            return [self.memory_manager.to_record(row) for row in rows]

    def deactivate_low_confidence_memories(
        self,
        threshold: float = 0.2,
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """Deactivate every active memory at or below threshold. Returns the count."""
        current = ensure_utc(now) or datetime.now(UTC)
        stmt = (
            update(AgentMemoryRecord)
            .where(
                *self.memory_manager.scope_filters(agent_id),
                AgentMemoryRecord.confidence <= number(threshold),
            )
            .values(is_active=False, updated_at=current)
            .execution_options(synchronize_session=False)
        )
        with self.memory_manager.sql_store.session() as sess:
            count = sess.execute(stmt).rowcount
            self.memory_manager.log_event(
                sess,
                "pruned",
                details={"agent_id": agent_id, "threshold": threshold, "count": count},
                now=current,
            )
        logger.info("Deactivated %d memories at or below %.2f confidence.", count, threshold)
        return count

    def cleanup_expired_memories(
        self,
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """Deactivate active memories whose expiry has passed."""
        current = ensure_utc(now) or datetime.now(UTC)
        stmt = (
            update(AgentMemoryRecord)
            .where(
                *self.memory_manager.scope_filters(agent_id),
                AgentMemoryRecord.expires_at.is_not(None),
                AgentMemoryRecord.expires_at <= timestamp(current),
            )
            .values(is_active=False, updated_at=current)
            .execution_options(synchronize_session=False)
        )
        with self.memory_manager.sql_store.session() as sess:
            count = sess.execute(stmt).rowcount
            self.memory_manager.log_event(
                sess, "expired", details={"agent_id": agent_id, "count": count}, now=current
            )
        logger.info("Expired %d memories.", count)
        return count
