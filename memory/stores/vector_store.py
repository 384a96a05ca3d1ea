"""In-memory dense vector index over memory embeddings."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from embeddings.similarity import cosine_similarity


class VectorStore:
    """Brute-force cosine index. Rebuilt per query from the rows in scope."""

    def __init__(self) -> None:
        self._items: dict[str, tuple[dict[str, Any], list[float]]] = {}

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item_id: str, vector: Sequence[float], payload: dict[str, Any]) -> None:
        """Add or replace one item."""
        self._items[item_id] = (payload, list(vector))

    def bulk_add(self, rows: Iterable[tuple[str, Sequence[float], dict[str, Any]]]) -> None:
        """Add many rows."""
        for item_id, vector, payload in rows:
            self.add(item_id=item_id, vector=vector, payload=payload)

    def remove(self, item_id: str) -> None:
        self._items.pop(item_id, None)

    def clear(self) -> None:
        self._items.clear()

    def search(
        self,
        query: Sequence[float],
        limit: int = 5,
        min_score: float | None = None,
        exclude: Iterable[str] = (),
    ) -> list[dict[str, Any]]:
        """Return the items most similar to the query vector, best first."""
        skipped = set(exclude)
        scored: list[tuple[float, str, dict[str, Any]]] = []
        for item_id, (payload, vector) in self._items.items():
            if item_id in skipped or len(vector) != len(query):
                continue
            score = cosine_similarity(query, vector)
            if min_score is not None and score < min_score:
                continue
            scored.append((score, item_id, payload))
        scored.sort(key=lambda x: (-x[0], x[1]))
        return [{"id": item_id, "score": score, "payload": payload} for score, item_id, payload in scored[:limit]]
