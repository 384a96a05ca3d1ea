"""Keeps stored memory embeddings in step with the active embedder."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from embeddings.base_embedder import BaseEmbedder
from memory.memory_manager import MemoryManager
from memory.types.record import MemoryRecord

logger = logging.getLogger("ame.embeddings")


def memory_text(record: MemoryRecord) -> str:
    if record.subject:
        return f"{record.subject}: {record.content}"
    return record.content


def ensure_embeddings(
    memory_manager: MemoryManager,
    embedder: BaseEmbedder,
    records: Sequence[MemoryRecord],
) -> dict[str, list[float]]:
    """Return an embedding per record, generating and storing missing or stale-dimension ones."""
    vectors: dict[str, list[float]] = {}
    missing: list[MemoryRecord] = []
    for record in records:
        if record.embedding and len(record.embedding) == embedder.dimension:
            vectors[record.id] = list(record.embedding)
        else:
            missing.append(record)
    if not missing:
        return vectors

    generated = embedder.embed_many([memory_text(record) for record in missing])
    for record, vector in zip(missing, generated):
        memory_manager.set_embedding(record.id, vector)
        vectors[record.id] = vector
    logger.debug("Generated %d embeddings for tenant %s", len(missing), memory_manager.tenant_id)
    return vectors
