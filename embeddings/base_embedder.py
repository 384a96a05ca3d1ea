"""Base embedding interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """Abstract text embedding provider. Vectors have a fixed dimension."""

    dimension: int

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return the embedding vector for one text."""

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts. Providers with batch endpoints override this."""
        return [self.embed(text) for text in texts]
