"""Tenant-bound facade over the confidence engine components."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from core.event_bus import (
    MEMORY_CONTRADICTED,
    MEMORY_CREATED,
    MEMORY_DECAYED,
    MEMORY_EXPIRED,
    MEMORY_MERGED,
    MEMORY_PRUNED,
    MEMORY_RECALCULATED,
    MEMORY_REINFORCED,
    MEMORY_SUPERSEDED,
    MEMORY_USED,
    EventBus,
)
from embeddings.base_embedder import BaseEmbedder
from embeddings.embedder_factory import build_embedder
from memory.confidence import calculate_confidence
from memory.config import EngineConfig
from memory.consolidation.consolidator import Consolidator
from memory.consolidation.duplicate_finder import DuplicateFinder
from memory.consolidation.forgetting import ForgettingPolicy
from memory.consolidation.merger import MemoryMerger
from memory.consolidation.pruning import PruningPolicy
from memory.memory_manager import MemoryManager
from memory.retrieval import MemoryRetriever
from memory.stores.sql_store import SQLStore
from memory.types import (
    ConfidenceFactors,
    ConsolidationCandidate,
    MemoryContext,
    MemoryRecord,
    MemoryType,
    RankedMemory,
    SimilarMemory,
)

logger = logging.getLogger("ame.memory")


class MemoryEngine:
    """Single entry point for one tenant's memory lifecycle.

    Every mutating call publishes a lifecycle event on the event bus after
    its transaction commits.
    """

    def __init__(
        self,
        sql_store: SQLStore,
        tenant_id: str,
        config: EngineConfig | None = None,
        embedder: BaseEmbedder | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.tenant_id = tenant_id
        self.event_bus = event_bus or EventBus()
        self.embedder = embedder or build_embedder(self.config.embeddings)
        self.manager = MemoryManager(sql_store=sql_store, tenant_id=tenant_id, config=self.config.confidence)
        self.forgetting = ForgettingPolicy(memory_manager=self.manager)
        self.pruning = PruningPolicy(memory_manager=self.manager)
        self.merger = MemoryMerger(memory_manager=self.manager)
        self.duplicates = DuplicateFinder(
            memory_manager=self.manager,
            embedder=self.embedder,
            config=self.config.consolidation,
        )
        self.retriever = MemoryRetriever(
            memory_manager=self.manager,
            embedder=self.embedder,
            config=self.config.retrieval,
        )
        self.consolidator = Consolidator(memory_manager=self.manager, embedder=self.embedder, config=self.config)

    def _emit(self, event_name: str, **payload: Any) -> None:
        self.event_bus.emit(event_name, {"tenant_id": self.tenant_id, **payload})

    # Records

    def create_memory(self, agent_id: str, content: str, **kwargs: Any) -> MemoryRecord:
        """Store a memory; see ``MemoryManager.create_memory`` for the accepted fields."""
        record = self.manager.create_memory(agent_id=agent_id, content=content, **kwargs)
        self._emit(MEMORY_CREATED, memory_id=record.id, agent_id=agent_id, confidence=record.confidence)
        return record

    def get_memory(self, memory_id: str, agent_id: str | None = None) -> MemoryRecord | None:
        return self.manager.get_memory(memory_id, agent_id=agent_id)

    def list_memories(self, agent_id: str | None = None, **kwargs: Any) -> list[MemoryRecord]:
        return self.manager.list_memories(agent_id=agent_id, **kwargs)

    def mark_memories_used(
        self,
        memory_ids: Iterable[str],
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        ids = list(memory_ids)
        count = self.manager.mark_memories_used(ids, agent_id=agent_id, now=now)
        if count:
            self._emit(MEMORY_USED, memory_ids=ids, count=count)
        return count

    def get_memory_stats(self, agent_id: str | None = None) -> dict[str, Any]:
        return self.manager.get_memory_stats(agent_id=agent_id)

    def list_events(self, memory_id: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        return self.manager.list_events(memory_id=memory_id, limit=limit)

    # Confidence

    def calculate_confidence(
        self,
        memory: MemoryRecord | str,
        now: datetime | None = None,
    ) -> ConfidenceFactors | None:
        """Confidence breakdown for a record or a stored memory id. None if the id is unknown."""
        record = self.manager.get_memory(memory) if isinstance(memory, str) else memory
        if record is None:
            return None
        return calculate_confidence(record, config=self.config.confidence, now=now)

    def reinforce_memory(self, memory_id: str, agent_id: str | None = None, now: datetime | None = None) -> bool:
        applied = self.manager.reinforce_memory(memory_id, agent_id=agent_id, now=now)
        if applied:
            self._emit(MEMORY_REINFORCED, memory_id=memory_id)
        return applied

    def contradict_memory(self, memory_id: str, agent_id: str | None = None, now: datetime | None = None) -> bool:
        applied = self.manager.contradict_memory(memory_id, agent_id=agent_id, now=now)
        if applied:
            self._emit(MEMORY_CONTRADICTED, memory_id=memory_id)
        return applied

    def apply_age_decay(self, agent_id: str | None = None, now: datetime | None = None) -> int:
        count = self.forgetting.apply_age_decay(agent_id=agent_id, now=now)
        self._emit(MEMORY_DECAYED, agent_id=agent_id, count=count)
        return count

    def recalculate_all_confidence(self, agent_id: str | None = None, now: datetime | None = None) -> int:
        count = self.forgetting.recalculate_all_confidence(agent_id=agent_id, now=now)
        self._emit(MEMORY_RECALCULATED, agent_id=agent_id, count=count)
        return count

    # Review and pruning

    def get_low_confidence_memories(
        self,
        agent_id: str,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        cfg = self.config.consolidation
        return self.pruning.get_low_confidence_memories(
            agent_id=agent_id,
            threshold=cfg.review_threshold if threshold is None else threshold,
            limit=cfg.review_limit if limit is None else limit,
        )

    def deactivate_low_confidence_memories(
        self,
        threshold: float | None = None,
        agent_id: str | None = None,
        now: datetime | None = None,
    ) -> int:
        value = self.config.consolidation.prune_threshold if threshold is None else threshold
        count = self.pruning.deactivate_low_confidence_memories(threshold=value, agent_id=agent_id, now=now)
        self._emit(MEMORY_PRUNED, agent_id=agent_id, threshold=value, count=count)
        return count

    def cleanup_expired_memories(self, agent_id: str | None = None, now: datetime | None = None) -> int:
        count = self.pruning.cleanup_expired_memories(agent_id=agent_id, now=now)
        self._emit(MEMORY_EXPIRED, agent_id=agent_id, count=count)
        return count

    def supersede_memory(self, old_id: str, new_id: str, now: datetime | None = None) -> bool:
        retired = self.manager.supersede_memory(old_id, new_id, now=now)
        if retired:
            self._emit(MEMORY_SUPERSEDED, memory_id=old_id, superseded_by=new_id)
        return retired

    # Consolidation

    def find_duplicate_memories(
        self,
        agent_id: str | None = None,
        threshold: float | None = None,
    ) -> list[ConsolidationCandidate]:
        return self.duplicates.find_duplicate_memories(agent_id=agent_id, threshold=threshold)

    def find_similar_memories(
        self,
        query: str | None = None,
        memory_id: str | None = None,
        agent_id: str | None = None,
        threshold: float | None = None,
        limit: int = 10,
    ) -> list[SimilarMemory]:
        return self.duplicates.find_similar_memories(
            query=query,
            memory_id=memory_id,
            agent_id=agent_id,
            threshold=threshold,
            limit=limit,
        )

    def get_consolidation_candidates(
        self,
        agent_id: str | None = None,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[ConsolidationCandidate]:
        return self.duplicates.get_consolidation_candidates(agent_id=agent_id, threshold=threshold, limit=limit)

    def merge_memories(self, keep_id: str, merge_id: str, now: datetime | None = None) -> MemoryRecord | None:
        survivor = self.merger.merge_memories(keep_id, merge_id, now=now)
        if survivor is not None:
            self._emit(MEMORY_MERGED, memory_id=keep_id, absorbed=merge_id)
        return survivor

    def consolidate(
        self,
        mode: str = "light",
        agent_id: str | None = None,
        now: datetime | None = None,
        recalculate: bool | None = None,
    ) -> dict[str, Any]:
        return self.consolidator.run(mode=mode, agent_id=agent_id, now=now, recalculate=recalculate)

    # Retrieval

    def retrieve(
        self,
        query: str,
        agent_id: str | None = None,
        limit: int | None = None,
        memory_types: Iterable[MemoryType | str] | None = None,
        min_confidence: float | None = None,
    ) -> list[RankedMemory]:
        return self.retriever.retrieve(
            query,
            agent_id=agent_id,
            limit=limit,
            memory_types=memory_types,
            min_confidence=min_confidence,
        )

    def build_context(
        self,
        query: str,
        agent_id: str | None = None,
        max_chars: int | None = None,
        limit: int | None = None,
        record_usage: bool = True,
        now: datetime | None = None,
    ) -> MemoryContext:
        context = self.retriever.build_context(
            query,
            agent_id=agent_id,
            max_chars=max_chars,
            limit=limit,
            record_usage=record_usage,
            now=now,
        )
        if record_usage and context.memory_ids:
            self._emit(MEMORY_USED, memory_ids=list(context.memory_ids), count=len(context.memory_ids))
        return context
