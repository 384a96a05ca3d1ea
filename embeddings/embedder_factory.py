"""Embedding provider factory."""

from __future__ import annotations

import logging

from embeddings.base_embedder import BaseEmbedder
from embeddings.providers.hashing_embedder import HashingEmbedder
from embeddings.providers.openai_embedder import OpenAIEmbedder
from memory.config import EmbeddingConfig

logger = logging.getLogger("ame.embeddings")


def build_embedder(config: EmbeddingConfig | None = None) -> BaseEmbedder:
    """Build an embedder from configuration, defaulting safely to local hashing."""
    cfg = config or EmbeddingConfig()
    provider = cfg.provider.lower().strip()
    if provider == "openai":
        if OpenAIEmbedder.available():
            return OpenAIEmbedder(model=cfg.model)
        logger.warning("OpenAI embeddings unavailable (package or OPENAI_API_KEY missing); using hashing embedder.")
    elif provider != "hashing":
        logger.warning("Unknown embedding provider '%s'; using hashing embedder.", provider)
    return HashingEmbedder(dimension=cfg.dimension)
