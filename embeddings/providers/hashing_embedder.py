"""Deterministic local embedder for offline usage."""

from __future__ import annotations

import hashlib
import math
import re
from collections import Counter

from embeddings.base_embedder import BaseEmbedder


def _tokenize(text: str) -> list[str]:
    return [token for token in re.split(r"[^a-zA-Z0-9]+", text.lower()) if token]


class HashingEmbedder(BaseEmbedder):
    """Bag-of-words feature hashing into a fixed number of buckets.

    Texts with the same tokens map to the same unit vector, so near-duplicate
    memories score close to 1.0 without any external service.
    """

    def __init__(self, dimension: int = 256) -> None:
        if dimension < 8:
            raise ValueError("HashingEmbedder dimension must be at least 8.")
        self.dimension = dimension

    def _bucket(self, token: str) -> int:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") % self.dimension

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token, count in Counter(_tokenize(text)).items():
            vector[self._bucket(token)] += float(count)
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]
