"""Vector storage with cosine-similarity search, in memory or persisted as JSON files."""

from __future__ import annotations

import glob
import json
import math
import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


class VectorNotFoundError(LookupError):
    """Raised when a vector id is not in the store."""

    def __init__(self, vector_id: str) -> None:
        super().__init__(f"vector with ID {vector_id} not found")
        self.vector_id = vector_id


@dataclass
class Vector:
    """A stored embedding together with its text and metadata."""

    id: str
    embedding: list[float]
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "embedding": list(self.embedding),
            "content": self.content,
            "metadata": self.metadata,
        }


@dataclass
class SearchResult(Vector):
    """A vector found by a search, with its similarity to the query."""

    score: float = 0.0


def cosine_similarity(a: Iterable[float], b: Iterable[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 for mismatched or zero vectors."""
    a = list(a)
    b = list(b)
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a)
    norm_b = sum(y * y for y in b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class VectorStore(ABC):
    """Storage and similarity retrieval of embeddings."""

    @abstractmethod
    def add(
        self,
        id: str,
        embedding: Iterable[float],
        content: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Store a vector, replacing any with the same id."""

    @abstractmethod
    def get(self, id: str) -> Vector:
        """Return the vector with this id, or raise VectorNotFoundError."""

    @abstractmethod
    def delete(self, id: str) -> None:
        """Remove the vector with this id, or raise VectorNotFoundError."""

    @abstractmethod
    def search(
        self, query_embedding: Iterable[float], top_k: int, threshold: float
    ) -> list[SearchResult]:
        """Return up to ``top_k`` vectors at least ``threshold`` similar, best first."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored vectors."""

    @abstractmethod
    def ids(self) -> list[str]:
        """Return the ids of all stored vectors."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every vector."""

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return a summary of the store's contents."""


class MemoryStore(VectorStore):
    """A thread-safe vector store held in memory."""

    def __init__(self) -> None:
        self._vectors: dict[str, Vector] = {}
        self._lock = threading.RLock()

    def add(
        self,
        id: str,
        embedding: Iterable[float],
        content: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        vector = Vector(
            id=id,
            embedding=[float(x) for x in embedding],
            content=content,
            metadata=dict(metadata) if metadata is not None else {},
        )
        with self._lock:
            self._vectors[id] = vector

    def get(self, id: str) -> Vector:
        with self._lock:
            try:
                return self._vectors[id]
            except KeyError:
                raise VectorNotFoundError(id) from None

    def delete(self, id: str) -> None:
        with self._lock:
            if id not in self._vectors:
                raise VectorNotFoundError(id)
            del self._vectors[id]

    def search(
        self, query_embedding: Iterable[float], top_k: int, threshold: float
    ) -> list[SearchResult]:
        if top_k < 0:
            raise ValueError("top_k must not be negative")
        query = list(query_embedding)
        with self._lock:
            vectors = list(self._vectors.values())

        results = []
        for vector in vectors:
            score = cosine_similarity(query, vector.embedding)
            if score >= threshold:
                results.append(
                    SearchResult(
                        id=vector.id,
                        embedding=vector.embedding,
                        content=vector.content,
                        metadata=vector.metadata,
                        score=score,
                    )
                )
        results.sort(key=lambda result: result.score, reverse=True)
        return results[:top_k]

    def count(self) -> int:
        with self._lock:
            return len(self._vectors)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._vectors)

    def clear(self) -> None:
        with self._lock:
            self._vectors = {}

    def stats(self) -> dict[str, Any]:
        with self._lock:
            stats: dict[str, Any] = {"total_vectors": len(self._vectors)}
            first = next(iter(self._vectors.values()), None)
            if first is not None:
                stats["dimension"] = len(first.embedding)
            return stats

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, id: object) -> bool:
        with self._lock:
            return id in self._vectors


class PersistentStore(MemoryStore):
    """A memory store that keeps each vector as a JSON file in a directory."""

    def __init__(self, data_dir: str | os.PathLike[str]) -> None:
        super().__init__()
        self._data_dir = os.fspath(data_dir)
        os.makedirs(self._data_dir, mode=0o755, exist_ok=True)
        self._load()

    @property
    def data_dir(self) -> str:
        """The directory holding the vector files."""
        return self._data_dir

    def _path(self, id: str) -> str:
        return os.path.join(self._data_dir, id + ".json")

    def _files(self) -> list[str]:
        return sorted(glob.glob(os.path.join(glob.escape(self._data_dir), "*.json")))

    def add(
        self,
        id: str,
        embedding: Iterable[float],
        content: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        super().add(id, embedding, content, metadata)
        self._save(id)

    def delete(self, id: str) -> None:
        super().delete(id)
        try:
            os.remove(self._path(id))
        except FileNotFoundError:
            pass

    def clear(self) -> None:
        super().clear()
        for path in self._files():
            try:
                os.remove(path)
            except OSError:
                pass

    def _save(self, id: str) -> None:
        vector = self.get(id)
        try:
            data = json.dumps(vector.to_json(), indent=2)
        except (TypeError, ValueError) as err:
            raise ValueError(f"failed to marshal vector: {err}") from err
        with open(self._path(id), "w", encoding="utf-8") as handle:
            handle.write(data)

    def _load(self) -> None:
        for path in self._files():
            try:
                with open(path, encoding="utf-8") as handle:
                    data = json.load(handle)
                vector = _vector_from_json(data)
            except (OSError, ValueError, TypeError):
                continue
            with self._lock:
                self._vectors[vector.id] = vector


def _vector_from_json(data: Any) -> Vector:
    if not isinstance(data, dict):
        raise ValueError("vector file does not hold an object")
    vector_id = data.get("id") or ""
    content = data.get("content") or ""
    embedding = data.get("embedding") or []
    metadata = data.get("metadata") or {}
    if not isinstance(vector_id, str) or not isinstance(content, str):
        raise ValueError("vector id and content must be strings")
    if not isinstance(embedding, list) or not isinstance(metadata, dict):
        raise ValueError("malformed vector file")
    return Vector(
        id=vector_id,
        embedding=[float(x) for x in embedding],
        content=content,
        metadata=metadata,
    )