"""Duplicate and similarity detection over memory embeddings."""

from __future__ import annotations

from collections import defaultdict

from embeddings.base_embedder import BaseEmbedder
from embeddings.similarity import cosine_similarity
from memory.config import ConsolidationConfig
from memory.consolidation.merger import choose_survivor, normalize_content
from memory.embedding_sync import ensure_embeddings
from memory.memory_manager import MemoryManager
from memory.stores.vector_store import VectorStore
from memory.types.record import MemoryRecord
from memory.types.retrieval import ConsolidationCandidate, SimilarMemory


class DuplicateFinder:
    """Find memories that say the same thing."""

    def __init__(
        self,
        memory_manager: MemoryManager,
        embedder: BaseEmbedder,
        config: ConsolidationConfig | None = None,
    ) -> None:
        self.memory_manager = memory_manager
        self.embedder = embedder
        self.config = config or ConsolidationConfig()

    def _active(self, agent_id: str | None) -> list[MemoryRecord]:
        return self.memory_manager.list_memories(
            agent_id=agent_id,
            limit=self.config.scan_limit,
            order_by_confidence=True,
        )

    def _pairs(self, agent_id: str | None, threshold: float) -> list[ConsolidationCandidate]:
        records = self._active(agent_id)
        vectors = ensure_embeddings(self.memory_manager, self.embedder, records)
        groups: dict[tuple[str, str], list[MemoryRecord]] = defaultdict(list)
        for record in records:
            groups[(record.agent_id, record.memory_type.value)].append(record)

        candidates: list[ConsolidationCandidate] = []
        for members in groups.values():
            for i, first in enumerate(members):
                first_text = normalize_content(first.content)
                for second in members[i + 1 :]:
                    exact = first_text == normalize_content(second.content)
                    similarity = 1.0 if exact else cosine_similarity(vectors[first.id], vectors[second.id])
                    if not exact and similarity < threshold:
                        continue
                    keep, merge = choose_survivor(first, second)
                    candidates.append(
                        ConsolidationCandidate(
                            keep=keep, merge=merge, similarity=similarity, exact_match=exact
                        )
                    )
        candidates.sort(key=lambda c: (not c.exact_match, -c.similarity, c.keep.id, c.merge.id))
        return candidates

    def find_duplicate_memories(
        self,
        agent_id: str | None = None,
        threshold: float | None = None,
    ) -> list[ConsolidationCandidate]:
        """Pairs of same-agent, same-type active memories that are identical or nearly so."""
        return self._pairs(agent_id, self.config.duplicate_threshold if threshold is None else threshold)

    def get_consolidation_candidates(
        self,
        agent_id: str | None = None,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[ConsolidationCandidate]:
        """Non-overlapping merge proposals, strongest first.

        Each memory appears in at most one candidate so the whole list can be
        merged in one pass.
        """
        pairs = self._pairs(agent_id, self.config.candidate_threshold if threshold is None else threshold)
        max_items = self.config.candidate_limit if limit is None else limit
        claimed: set[str] = set()
        selected: list[ConsolidationCandidate] = []
        for candidate in pairs:
            if candidate.keep.id in claimed or candidate.merge.id in claimed:
                continue
            claimed.update((candidate.keep.id, candidate.merge.id))
            selected.append(candidate)
            if len(selected) >= max_items:
                break
        return selected

    def find_similar_memories(
        self,
        query: str | None = None,
        memory_id: str | None = None,
        agent_id: str | None = None,
        threshold: float | None = None,
        limit: int = 10,
    ) -> list[SimilarMemory]:
        """Active memories similar to a text query or to an existing memory."""
        if (query is None) == (memory_id is None):
            raise ValueError("Provide exactly one of query or memory_id.")
        min_score = self.config.similarity_threshold if threshold is None else threshold

        records = self._active(agent_id)
        exclude: set[str] = set()
        if memory_id is not None:
            anchor = self.memory_manager.get_memory(memory_id, agent_id=agent_id)
            if anchor is None:
                return []
            anchor_vector = ensure_embeddings(self.memory_manager, self.embedder, [anchor])[anchor.id]
            exclude.add(anchor.id)
        else:
            anchor_vector = self.embedder.embed(query or "")

        vectors = ensure_embeddings(self.memory_manager, self.embedder, records)
        index = VectorStore()
        index.bulk_add((record.id, vectors[record.id], {"record": record}) for record in records)
        hits = index.search(anchor_vector, limit=limit, min_score=min_score, exclude=exclude)
        return [SimilarMemory(memory=hit["payload"]["record"], similarity=hit["score"]) for hit in hits]
