"""Memory consolidation orchestrator."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from embeddings.base_embedder import BaseEmbedder
from memory.config import EngineConfig
from memory.consolidation.duplicate_finder import DuplicateFinder
from memory.consolidation.forgetting import ForgettingPolicy
from memory.consolidation.merger import MemoryMerger
from memory.consolidation.pruning import PruningPolicy
from memory.memory_manager import MemoryManager
from memory.types.record import ensure_utc

logger = logging.getLogger("ame.consolidation")


class Consolidator:
    """Runs a full maintenance cycle: decay, expiry, duplicate merging and pruning."""

    def __init__(
        self,
        memory_manager: MemoryManager,
        embedder: BaseEmbedder,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.memory_manager = memory_manager
        self.forgetting = ForgettingPolicy(memory_manager=memory_manager)
        self.pruning = PruningPolicy(memory_manager=memory_manager)
        self.duplicate_finder = DuplicateFinder(
            memory_manager=memory_manager,
            embedder=embedder,
            config=self.config.consolidation,
        )
        self.merger = MemoryMerger(memory_manager=memory_manager)

    def run(
        self,
        mode: str = "light",
        agent_id: str | None = None,
        now: datetime | None = None,
        recalculate: bool | None = None,
    ) -> dict[str, Any]:
        """Run consolidation cycle.

        Light mode:
        - Apply age decay.
        - Deactivate expired memories.

        Deep mode adds:
        - Full confidence recalculation, when requested or when the
          recalculation task is enabled in the scheduler config.
        - Merge duplicate memories at or above the duplicate threshold.
        - Deactivate memories at or below the prune threshold.
        """
        if mode not in {"light", "deep"}:
            raise ValueError(f"Unknown consolidation mode: {mode}")
        current = ensure_utc(now) or datetime.now(UTC)
        cfg = self.config.consolidation
        results: dict[str, Any] = {"mode": mode, "agent_id": agent_id}

        if recalculate is None:
            task = self.config.scheduler.tasks.get("confidence_recalculation")
            recalculate = bool(task and task.enabled)
        if mode == "deep" and recalculate:
            results["recalculated"] = self.forgetting.recalculate_all_confidence(agent_id=agent_id, now=current)

        results["decayed"] = self.forgetting.apply_age_decay(agent_id=agent_id, now=current)
        results["expired"] = self.pruning.cleanup_expired_memories(agent_id=agent_id, now=current)

        if mode == "deep":
            candidates = self.duplicate_finder.get_consolidation_candidates(
                agent_id=agent_id,
                threshold=cfg.duplicate_threshold,
            )
            merged = 0
            for candidate in candidates:
                if self.merger.merge_memories(candidate.keep.id, candidate.merge.id, now=current):
                    merged += 1
            results["merged"] = merged
            results["pruned"] = self.pruning.deactivate_low_confidence_memories(
                threshold=cfg.prune_threshold,
                agent_id=agent_id,
                now=current,
            )

        logger.info("Consolidation (%s) finished for tenant %s: %s", mode, self.memory_manager.tenant_id, results)
        return results
