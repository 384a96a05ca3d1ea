"""OpenAI embeddings adapter."""

from __future__ import annotations

import logging
import os
from typing import Any

from embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger("ame.embeddings.openai")

_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedder(BaseEmbedder):
    """OpenAI API adapter. Requires the `openai` package and OPENAI_API_KEY."""

    def __init__(self, model: str = "text-embedding-3-small", client: Any | None = None) -> None:
        self.model = model
        self.dimension = _DIMENSIONS.get(model, 1536)
        self._client = client

    @staticmethod
    def available() -> bool:
        if not os.getenv("OPENAI_API_KEY"):
            return False
        try:
            import openai  # noqa: F401
        except ImportError:
            return False
        return True

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise RuntimeError("OPENAI_API_KEY not set; cannot use OpenAI embeddings.")
            from openai import OpenAI

            self._client = OpenAI(api_key=api_key)
        return self._client

    def embed(self, text: str) -> list[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        response = self._get_client().embeddings.create(model=self.model, input=texts)
        vectors = [list(item.embedding) for item in sorted(response.data, key=lambda d: d.index)]
        logger.debug("Embedded %d texts with %s", len(vectors), self.model)
        return vectors
