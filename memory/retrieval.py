"""Confidence-aware memory retrieval and context assembly."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from embeddings.base_embedder import BaseEmbedder
from memory.config import RetrievalConfig
from memory.embedding_sync import ensure_embeddings
from memory.memory_manager import MemoryManager
from memory.scoring import composite_score, lexical_overlap
from memory.stores.vector_store import VectorStore
from memory.types.record import MemoryType
from memory.types.retrieval import MemoryContext, RankedMemory

logger = logging.getLogger("ame.retrieval")


class MemoryRetriever:
    """Ranks active memories by semantic similarity and stored confidence.

    Confidence is read as stored. Keeping it fresh is the job of the decay
    scheduler, so retrieval never recomputes or decays anything.
    """

    def __init__(
        self,
        memory_manager: MemoryManager,
        embedder: BaseEmbedder,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.memory_manager = memory_manager
        self.embedder = embedder
        self.config = config or RetrievalConfig()
        self.vector_store = VectorStore()

    def _ensure_index(self, agent_id: str | None) -> None:
        records = self.memory_manager.list_memories(
            agent_id=agent_id,
            limit=self.config.candidate_pool,
            order_by_confidence=True,
        )
        vectors = ensure_embeddings(self.memory_manager, self.embedder, records)
        self.vector_store.clear()
        self.vector_store.bulk_add((record.id, vectors[record.id], {"record": record}) for record in records)

    def retrieve(
        self,
        query: str,
        agent_id: str | None = None,
        limit: int | None = None,
        memory_types: Iterable[MemoryType | str] | None = None,
        min_confidence: float | None = None,
    ) -> list[RankedMemory]:
        """Return active memories ranked by the composite score, best first."""
        k = limit or self.config.default_limit
        floor = self.config.min_confidence if min_confidence is None else min_confidence
        allowed = {MemoryType(str(kind)) for kind in memory_types} if memory_types else None

        self._ensure_index(agent_id)
        query_vector = self.embedder.embed(query)
        hits = self.vector_store.search(query_vector, limit=len(self.vector_store))

        ranked: list[RankedMemory] = []
        for hit in hits:
            record = hit["payload"]["record"]
            if not record.is_active or record.confidence < floor:
                continue
            if allowed is not None and record.memory_type not in allowed:
                continue
            similarity = float(hit["score"])
            lexical = lexical_overlap(query, record.content)
            ranked.append(
                RankedMemory(
                    memory=record,
                    similarity=similarity,
                    lexical=lexical,
                    score=composite_score(similarity, record.confidence, lexical, self.config),
                )
            )
        ranked.sort(key=lambda item: (item.score, item.memory.confidence), reverse=True)
        return ranked[:k]

    def build_context(
        self,
        query: str,
        agent_id: str | None = None,
        max_chars: int | None = None,
        limit: int | None = None,
        record_usage: bool = True,
        now: datetime | None = None,
    ) -> MemoryContext:
        """Pack the best memories into a bounded text block for prompt assembly."""
        char_limit = max_chars or self.config.max_context_chars
        ranked = self.retrieve(query, agent_id=agent_id, limit=limit)

        lines: list[str] = []
        used = 0
        included: list[str] = []
        truncated = False
        for item in ranked:
            line = f"- [{item.memory.memory_type.value}] {item.memory.content} (confidence {item.memory.confidence:.2f})"
            cost = len(line) + (1 if lines else 0)
            if used + cost > char_limit:
                truncated = True
                continue
            lines.append(line)
            included.append(item.memory.id)
            used += cost

        if record_usage and included:
            self.memory_manager.mark_memories_used(included, agent_id=agent_id, now=now)
        logger.debug("Built context with %d of %d ranked memories (%d chars).", len(included), len(ranked), used)
        return MemoryContext(text="\n".join(lines), memory_ids=included, truncated=truncated)
