"""Tenant-scoped memory store and atomic confidence mutators."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from memory.config import ConfidenceConfig
from memory.confidence import clamp, preview_confidence
from memory.schemas import AgentMemoryRecord, MemoryEventRecord
from memory.sql_expressions import contradicted_confidence, reinforced_confidence
from memory.stores.sql_store import SQLStore
from memory.types.record import MemoryRecord, MemorySource, MemoryType, ensure_utc, normalize_source

logger = logging.getLogger("ame.memory")


class SupersessionError(ValueError):
    """Raised when a supersession would point at a missing or inactive memory."""


def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    return ensure_utc(now) or now


class MemoryManager:
    """Reads and writes agent memories for exactly one tenant.

    Every statement issued here carries the tenant predicate, and the agent
    predicate whenever an ``agent_id`` is given, so callers cannot reach
    another tenant's rows by id.
    """

    def __init__(
        self,
        sql_store: SQLStore,
        tenant_id: str,
        config: ConfidenceConfig | None = None,
    ) -> None:
        if not tenant_id:
            raise ValueError("tenant_id is required.")
        self.sql_store = sql_store
        self.tenant_id = tenant_id
        self.config = config or ConfidenceConfig()

    def scope_filters(
        self,
        agent_id: str | None = None,
        active_only: bool = True,
    ) -> list[ColumnElement[bool]]:
        """Predicates restricting a statement to this tenant (and agent)."""
        filters: list[ColumnElement[bool]] = [AgentMemoryRecord.tenant_id == self.tenant_id]
        if agent_id is not None:
            filters.append(AgentMemoryRecord.agent_id == agent_id)
        if active_only:
            filters.append(AgentMemoryRecord.is_active.is_(True))
        return filters

    def create_memory(
        self,
        agent_id: str,
        content: str,
        memory_type: MemoryType | str = MemoryType.FACT,
        source: MemorySource | str = MemorySource.OBSERVED,
        subject: str | None = None,
        confidence: float | None = None,
        embedding: list[float] | None = None,
        times_reinforced: int = 0,
        times_contradicted: int = 0,
        last_used_at: datetime | None = None,
        expires_at: datetime | None = None,
        created_at: datetime | None = None,
        now: datetime | None = None,
    ) -> MemoryRecord:
        """Insert a memory. Confidence defaults to the calculated score for its inputs."""
        if not agent_id:
            raise ValueError("agent_id is required.")
        if not content or not content.strip():
            raise ValueError("Memory content must not be empty.")
        kind = MemoryType(str(memory_type).lower().strip())
        source_tag = normalize_source(source)
        if source_tag not in {item.value for item in MemorySource}:
            logger.warning("Unrecognized memory source '%s'; default weight applies.", source_tag)
        current = _now(now)
        created = ensure_utc(created_at) or current
        if confidence is None:
            confidence = preview_confidence(
                source=source_tag,
                times_reinforced=times_reinforced,
                times_contradicted=times_contradicted,
                last_used_at=last_used_at,
                config=self.config,
                now=current,
            ).final_confidence

        row = AgentMemoryRecord(
            id=uuid.uuid4().hex,
            tenant_id=self.tenant_id,
            agent_id=agent_id,
            memory_type=kind.value,
            content=content.strip(),
            subject=subject,
            embedding=list(embedding) if embedding is not None else None,
            source=source_tag,
            confidence=clamp(float(confidence)),
            times_reinforced=times_reinforced,
            times_contradicted=times_contradicted,
            last_used_at=ensure_utc(last_used_at),
            decay_applied=0.0,
            is_active=True,
            superseded_by=None,
            expires_at=ensure_utc(expires_at),
            created_at=created,
            updated_at=current,
        )
        record = MemoryRecord.model_validate(self._memory_to_dict(row))
        with self.sql_store.session() as sess:
            sess.add(row)
            self.log_event(
                sess,
                "created",
                memory_id=row.id,
                details={"agent_id": agent_id, "memory_type": kind.value, "source": source_tag},
                now=current,
            )
        return record

    def get_memory(self, memory_id: str, agent_id: str | None = None) -> MemoryRecord | None:
        """Fetch one memory in scope, active or not."""
        with self.sql_store.session() as sess:
            row = sess.scalars(
                select(AgentMemoryRecord).where(
                    AgentMemoryRecord.id == memory_id,
                    *self.scope_filters(agent_id, active_only=False),
                )
            ).first()
            return self.to_record(row) if row is not None else None

    def get_memories(self, memory_ids: Sequence[str]) -> list[MemoryRecord]:
        if not memory_ids:
            return []
        with self.sql_store.session() as sess:
            rows = sess.scalars(
                select(AgentMemoryRecord).where(
                    AgentMemoryRecord.id.in_(list(memory_ids)),
                    *self.scope_filters(active_only=False),
                )
            ).all()
            by_id = {row.id: self.to_record(row) for row in rows}
        return [by_id[memory_id] for memory_id in memory_ids if memory_id in by_id]

    def list_memories(
        self,
        agent_id: str | None = None,
        include_inactive: bool = False,
        memory_type: MemoryType | str | None = None,
        limit: int = 100,
        order_by_confidence: bool = False,
    ) -> list[MemoryRecord]:
        """List memories in scope, newest first unless ordered by confidence."""
        query = select(AgentMemoryRecord).where(
            *self.scope_filters(agent_id, active_only=not include_inactive)
        )
        if memory_type is not None:
            query = query.where(AgentMemoryRecord.memory_type == MemoryType(str(memory_type)).value)
        if order_by_confidence:
            query = query.order_by(AgentMemoryRecord.confidence.desc(), AgentMemoryRecord.id)
        else:
            query = query.order_by(AgentMemoryRecord.created_at.desc(), AgentMemoryRecord.id)
        with self.sql_store.session() as sess:
            rows = sess.scalars(query.limit(limit)).all()
            return [self.to_record(row) for row in rows]

    def set_embedding(self, memory_id: str, embedding: list[float]) -> bool:
        """Store the vector produced by the embedding generator."""
        stmt = (
            update(AgentMemoryRecord)
            .where(AgentMemoryRecord.id == memory_id, *self.scope_filters(active_only=False))
            .values(embedding=[float(value) for value in embedding])
            .execution_options(synchronize_session=False)
        )
        with self.sql_store.session() as sess:
            return sess.execute(stmt).rowcount > 0

    def mark_memories_used(
        self,
        memory_ids: Iterable[str],
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        """Record a retrieval/use. Restarts age decay from this moment."""
        ids = list(dict.fromkeys(memory_ids))
        if not ids:
            return 0
        current = _now(now)
        stmt = (
            update(AgentMemoryRecord)
            .where(AgentMemoryRecord.id.in_(ids), *self.scope_filters(agent_id))
            .values(last_used_at=current, decay_applied=0.0, updated_at=current)
            .execution_options(synchronize_session=False)
        )
        with self.sql_store.session() as sess:
            count = sess.execute(stmt).rowcount
            if count:
                self.log_event(sess, "used", now=current, details={"memory_ids": ids, "count": count})
        return count

    def reinforce_memory(
        self,
        memory_id: str,
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Count one reinforcement and nudge confidence up by the bonus, capped at 1.0."""
        return self._apply_signal(
            memory_id,
            agent_id,
            event_type="reinforced",
            values={
                "times_reinforced": AgentMemoryRecord.times_reinforced + 1,
                "confidence": reinforced_confidence(self.config),
            },
            now=now,
        )

    def contradict_memory(
        self,
        memory_id: str,
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Count one contradiction and lower confidence by the penalty, floored at the confidence floor."""
        return self._apply_signal(
            memory_id,
            agent_id,
            event_type="contradicted",
            values={
                "times_contradicted": AgentMemoryRecord.times_contradicted + 1,
                "confidence": contradicted_confidence(self.config),
            },
            now=now,
        )

    def _apply_signal(
        self,
        memory_id: str,
        agent_id: str | None,
        event_type: str,
        values: dict[str, Any],
        now: datetime | None,
    ) -> bool:
        current = _now(now)
        stmt = (
            update(AgentMemoryRecord)
            .where(AgentMemoryRecord.id == memory_id, *self.scope_filters(agent_id, active_only=False))
            .values(**values, updated_at=current)
            .execution_options(synchronize_session=False)
        )
        with self.sql_store.session() as sess:
            affected = sess.execute(stmt).rowcount > 0
            if affected:
                self.log_event(sess, event_type, memory_id=memory_id, now=current)
        if not affected:
            logger.info("No memory %s in tenant %s to mark %s.", memory_id, self.tenant_id, event_type)
        return affected

    def supersede_memory(
        self,
        old_id: str,
        new_id: str,
        now: datetime | None = None,
    ) -> bool:
        """Retire ``old_id`` in favour of ``new_id``.

        The replacement must exist in this tenant and be active. Memories that
        already pointed at ``old_id`` are re-pointed to ``new_id``, so at
        supersession time every chain ends on an active record. Later pruning
        or expiry may retire the replacement too; the pointers are left in
        place as history. Returns False when ``old_id`` is not found.
        """
        current = _now(now)
        with self.sql_store.session() as sess:
            retired = self.supersede_in_session(sess, old_id, new_id, current)
        if retired:
            logger.info("Memory %s superseded by %s.", old_id, new_id)
        return retired

    def supersede_in_session(
        self,
        sess: Session,
        old_id: str,
        new_id: str,
        now: datetime,
        event_type: str = "superseded",
    ) -> bool:
        """Supersession inside the caller's transaction."""
        if old_id == new_id:
            raise SupersessionError("A memory cannot supersede itself.")
        target = sess.scalars(
            select(AgentMemoryRecord)
            .where(AgentMemoryRecord.id == new_id, *self.scope_filters(active_only=False))
            .with_for_update()
        ).first()
        if target is None:
            raise SupersessionError(f"Replacement memory {new_id} does not exist in this tenant.")
        if not target.is_active:
            raise SupersessionError(f"Replacement memory {new_id} is not active.")

        retired = sess.execute(
            update(AgentMemoryRecord)
            .where(AgentMemoryRecord.id == old_id, *self.scope_filters(active_only=False))
            .values(is_active=False, superseded_by=new_id, updated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        if not retired:
            return False
        repointed = sess.execute(
            update(AgentMemoryRecord)
            .where(
                AgentMemoryRecord.superseded_by == old_id,
                AgentMemoryRecord.id != new_id,
                *self.scope_filters(active_only=False),
            )
            .values(superseded_by=new_id, updated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        self.log_event(
            sess,
            event_type,
            memory_id=old_id,
            details={"superseded_by": new_id, "repointed": repointed},
            now=now,
        )
        return True

    def get_memory_stats(self, agent_id: str | None = None) -> dict[str, Any]:
        """Counts and average confidence for dashboards and review."""
        scope = self.scope_filters(agent_id, active_only=False)
        with self.sql_store.session() as sess:
            totals = sess.execute(
                select(AgentMemoryRecord.is_active, func.count(), func.avg(AgentMemoryRecord.confidence))
                .where(*scope)
                .group_by(AgentMemoryRecord.is_active)
            ).all()
            by_type = sess.execute(
                select(AgentMemoryRecord.memory_type, func.count())
                .where(*scope, AgentMemoryRecord.is_active.is_(True))
                .group_by(AgentMemoryRecord.memory_type)
            ).all()
            by_source = sess.execute(
                select(AgentMemoryRecord.source, func.count())
                .where(*scope, AgentMemoryRecord.is_active.is_(True))
                .group_by(AgentMemoryRecord.source)
            ).all()

        stats: dict[str, Any] = {
            "active_count": 0,
            "inactive_count": 0,
            "avg_confidence": None,
            "by_type": {str(kind): int(count) for kind, count in by_type},
            "by_source": {str(source): int(count) for source, count in by_source},
        }
        for is_active, count, avg_conf in totals:
            if is_active:
                stats["active_count"] = int(count)
                stats["avg_confidence"] = float(avg_conf) if avg_conf is not None else None
            else:
                stats["inactive_count"] = int(count)
        return stats

    def log_event(
        self,
        sess: Session,
        event_type: str,
        memory_id: str | None = None,
        details: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> None:
        """Append a lifecycle event inside the caller's transaction."""
        sess.add(
            MemoryEventRecord(
                tenant_id=self.tenant_id,
                memory_id=memory_id,
                event_type=event_type,
                timestamp=_now(now),
                details=details or {},
            )
        )

    def list_events(
        self,
        memory_id: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        query = select(MemoryEventRecord).where(MemoryEventRecord.tenant_id == self.tenant_id)
        if memory_id is not None:
            query = query.where(MemoryEventRecord.memory_id == memory_id)
        if event_type is not None:
            query = query.where(MemoryEventRecord.event_type == event_type)
        query = query.order_by(MemoryEventRecord.timestamp.desc(), MemoryEventRecord.id.desc())
        with self.sql_store.session() as sess:
            rows = sess.scalars(query.limit(limit)).all()
            return [self._event_to_dict(row) for row in rows]

    def to_record(self, row: AgentMemoryRecord) -> MemoryRecord:
        return MemoryRecord.model_validate(self._memory_to_dict(row))

    @staticmethod
    def _memory_to_dict(row: AgentMemoryRecord) -> dict[str, Any]:
        return {
            "id": row.id,
            "tenant_id": row.tenant_id,
            "agent_id": row.agent_id,
            "memory_type": row.memory_type,
            "content": row.content,
            "subject": row.subject,
            "embedding": list(row.embedding) if row.embedding else None,
            "source": row.source,
            "confidence": row.confidence,
            "times_reinforced": row.times_reinforced,
            "times_contradicted": row.times_contradicted,
            "last_used_at": row.last_used_at,
            "decay_applied": row.decay_applied or 0.0,
            "is_active": row.is_active,
            "superseded_by": row.superseded_by,
            "expires_at": row.expires_at,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }

    @staticmethod
    def _event_to_dict(row: MemoryEventRecord) -> dict[str, Any]:
        return {
            "id": row.id,
            "memory_id": row.memory_id,
            "event_type": row.event_type,
            "timestamp": ensure_utc(row.timestamp),
            "details": dict(row.details or {}),
        }
