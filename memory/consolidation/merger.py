"""Merging of near-duplicate memories into one surviving record."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime

from sqlalchemy import case, or_, select, update

from memory.memory_manager import MemoryManager
from memory.schemas import AgentMemoryRecord
from memory.sql_expressions import number, timestamp
from memory.types.record import MemoryRecord, ensure_utc

logger = logging.getLogger("ame.consolidation")


def normalize_content(text: str) -> str:
    return re.sub(r"\s+", " ", text.strip().lower().rstrip("."))


def choose_survivor(a: MemoryRecord, b: MemoryRecord) -> tuple[MemoryRecord, MemoryRecord]:
    """Order a pair as (keep, merge).

    Higher confidence wins, then more reinforcement, then the older record.
    """
    def rank(record: MemoryRecord) -> tuple[float, int, float, str]:
        return (-record.confidence, -record.times_reinforced, record.created_at.timestamp(), record.id)

    return (a, b) if rank(a) <= rank(b) else (b, a)


class MemoryMerger:
    """Folds one memory into another and supersedes it.

    Policy: the survivor keeps its content and appends the other content
    when it is not already contained; subject and embedding fall back to the
    other record when missing; reinforcement takes the larger count,
    contradictions are summed, confidence takes the larger value and
    last use takes the latest timestamp.
    """

    def __init__(self, memory_manager: MemoryManager) -> None:
        self.memory_manager = memory_manager

    def merge_memories(
        self,
        keep_id: str,
        merge_id: str,
        now: datetime | None = None,
    ) -> MemoryRecord | None:
        """Merge ``merge_id`` into ``keep_id``. Returns the survivor, or None if either is missing."""
        if keep_id == merge_id:
            raise ValueError("Cannot merge a memory into itself.")
        current = ensure_utc(now) or datetime.now(UTC)
        manager = self.memory_manager
        with manager.sql_store.session() as sess:
            rows = {
                row.id: row
                for row in sess.scalars(
                    select(AgentMemoryRecord)
                    .where(
                        AgentMemoryRecord.id.in_([keep_id, merge_id]),
                        *manager.scope_filters(),
                    )
                    .with_for_update()
                ).all()
            }
            keep, other = rows.get(keep_id), rows.get(merge_id)
            if keep is None or other is None:
                logger.info("Merge skipped: %s or %s missing or inactive.", keep_id, merge_id)
                return None
            if keep.agent_id != other.agent_id:
                raise ValueError("Memories owned by different agents cannot be merged.")

            values: dict[str, object] = {
                "times_reinforced": case(
                    (AgentMemoryRecord.times_reinforced < other.times_reinforced, other.times_reinforced),
                    else_=AgentMemoryRecord.times_reinforced,
                ),
                "times_contradicted": AgentMemoryRecord.times_contradicted + other.times_contradicted,
                "confidence": case(
                    (AgentMemoryRecord.confidence < number(other.confidence), number(other.confidence)),
                    else_=AgentMemoryRecord.confidence,
                ),
                "updated_at": current,
            }
            if other.last_used_at is not None:
                other_used = timestamp(other.last_used_at)
                used_later = or_(
                    AgentMemoryRecord.last_used_at.is_(None),
                    AgentMemoryRecord.last_used_at < other_used,
                )
                values["last_used_at"] = case((used_later, other_used), else_=AgentMemoryRecord.last_used_at)
                # A later use restarts the decay clock, as mark_memories_used does.
                values["decay_applied"] = case((used_later, 0.0), else_=AgentMemoryRecord.decay_applied)
            if normalize_content(other.content) not in normalize_content(keep.content):
                values["content"] = f"{keep.content}\n{other.content}"
                # Stale once content changes; regenerated on next similarity pass.
                values["embedding"] = None
            elif not keep.embedding and other.embedding:
                values["embedding"] = list(other.embedding)
            if not keep.subject and other.subject:
                values["subject"] = other.subject

            sess.execute(
                update(AgentMemoryRecord)
                .where(AgentMemoryRecord.id == keep_id, *manager.scope_filters())
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            manager.supersede_in_session(sess, merge_id, keep_id, current, event_type="merged")
            manager.log_event(
                sess,
                "merged",
                memory_id=keep_id,
                details={
                    "absorbed": merge_id,
                    "times_contradicted_added": other.times_contradicted,
                },
                now=current,
            )
        logger.info("Merged memory %s into %s.", merge_id, keep_id)
        return manager.get_memory(keep_id)
