"""In-memory vector index ranked by cosine similarity."""

from __future__ import annotations

import logging
import weakref
from typing import Sequence

import numpy as np

from .embedder import Embedding, VectorSpace
from .splitter import ConfigurationError
from .types import Chunk, SearchResult
from .utils.locks import ReadWriteLock

logger = logging.getLogger(__name__)


class VectorStore:
    """In-memory store of (chunk, embedding) pairs with nearest-neighbour search.

    Embeddings are kept in a growable float32 matrix with their norms
    precomputed. Queries rank every stored entry by cosine similarity to the
    query embedding; ties keep insertion order.

    Inserts are applied under the write side of a readers/writer lock, and
    queries run under the read side on a snapshot of the entry count, so a
    query never observes an embedding without its chunk.

    Example:
        >>> space = VectorSpace("demo", dimension=4)
        >>> store = VectorStore(space)
        >>> store.insert(Chunk(text="Hello world"), Embedding([1, 0, 0, 0], space))
        0
        >>> results = store.query(Embedding([1, 0, 0, 0], space), k=5)
        >>> print(results[0].text, results[0].score)
        Hello world 1.0
    """

    def __init__(self, space: VectorSpace, initial_capacity: int = 64):
        """Initialize an empty vector store.

        Args:
            space: Vector space of every embedding stored here
            initial_capacity: Number of rows to preallocate
        """
        if initial_capacity <= 0:
            raise ValueError(f"initial_capacity must be positive, got {initial_capacity}")

        self.space = space
        self._vectors = np.zeros((initial_capacity, space.dimension), dtype=np.float32)
        self._norms = np.zeros(initial_capacity, dtype=np.float64)
        self._chunks: list[Chunk] = []
        self._lock = ReadWriteLock()
        self._owner: weakref.ref | None = None

    @property
    def dimension(self) -> int:
        return self.space.dimension

    def claim(self, owner: object) -> None:
        """Reserve this store for a single database.

        Each database numbers its own documents, so two databases filling
        one store would mix up their document ids. Claiming again with the same owner is a
        no-op.

        Args:
            owner: Database that will insert into this store

        Raises:
            ConfigurationError: If another database holds the store or it
                already has entries
        """
        with self._lock.write():
            current = self._owner() if self._owner is not None else None
            if current is owner:
                return
            if current is not None:
                raise ConfigurationError(
                    f"VectorStore is already used by {type(current).__name__}"
                )
            if self._chunks:
                raise ConfigurationError(
                    f"VectorStore must be empty to be claimed, has {len(self._chunks)} entries"
                )
            self._owner = weakref.ref(owner)

    def _grow(self) -> None:
        """Double the row capacity. Caller holds the write lock."""
        capacity = self._vectors.shape[0] * 2
        vectors = np.zeros((capacity, self.dimension), dtype=np.float32)
        vectors[: len(self._chunks)] = self._vectors[: len(self._chunks)]
        norms = np.zeros(capacity, dtype=np.float64)
        norms[: len(self._chunks)] = self._norms[: len(self._chunks)]
        self._vectors = vectors
        self._norms = norms
        logger.debug("Grew vector store to %d rows", capacity)

    def insert(self, chunk: Chunk, embedding: Embedding) -> int:
        """Store a chunk with its embedding.

        Args:
            chunk: Chunk the embedding was computed from
            embedding: Embedding in this store's vector space

        Returns:
            Id of the new entry (its insertion position)

        Raises:
            VectorSpaceError: If the embedding belongs to another space
        """
        self.space.check(embedding.space)
        norm = float(np.linalg.norm(embedding.vector.astype(np.float64)))

        with self._lock.write():
            id_ = len(self._chunks)
            if id_ == self._vectors.shape[0]:
                self._grow()
            self._vectors[id_] = embedding.vector
            self._norms[id_] = norm
            # Appending the chunk publishes the entry
            self._chunks.append(chunk)

        logger.debug("Inserted chunk %d of document %s", id_, chunk.document_id)
        return id_

    def add(self, chunks: Sequence[Chunk], embeddings: Sequence[Embedding]) -> list[int]:
        """Store several (chunk, embedding) pairs.

        Each pair is inserted atomically; the batch as a whole is not.

        Args:
            chunks: Chunks to store
            embeddings: Embeddings (must match chunks length)

        Returns:
            List of ids for the added entries
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings must have same length: "
                f"{len(chunks)} vs {len(embeddings)}"
            )
        return [self.insert(chunk, emb) for chunk, emb in zip(chunks, embeddings)]

    def query(
        self,
        embedding: Embedding,
        k: int = 5,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Find the k entries most similar to an embedding.

        Args:
            embedding: Query embedding, in this store's vector space
            k: Maximum number of results to return
            threshold: Minimum cosine similarity (results below are dropped)

        Returns:
            List of SearchResult ordered by descending similarity, ties in
            insertion order. Empty if the store is empty or k is 0.
        """
        if k < 0:
            raise ValueError(f"k must be non-negative, got {k}")
        self.space.check(embedding.space)
        if k == 0:
            return []

        query = embedding.vector.astype(np.float64)
        query_norm = float(np.linalg.norm(query))

        with self._lock.read():
            n = len(self._chunks)
            if n == 0:
                return []
            chunks = self._chunks[:n]
            dots = self._vectors[:n].astype(np.float64) @ query
            denom = self._norms[:n] * query_norm

        scores = np.zeros(n, dtype=np.float64)
        np.divide(dots, denom, out=scores, where=denom > 0)
        np.clip(scores, -1.0, 1.0, out=scores)

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")

        results = []
        for id_ in order:
            score = float(scores[id_])
            if threshold is not None and score < threshold:
                # Sorted descending, nothing further can pass
                break
            results.append(self._result(int(id_), chunks[id_], score, len(results)))
            if len(results) == k:
                break
        return results

    @staticmethod
    def _result(id_: int, chunk: Chunk, score: float, rank: int) -> SearchResult:
        return SearchResult(
            id=str(id_),
            text=chunk.text,
            score=score,
            rank=rank,
            chunk=chunk,
            metadata={
                **chunk.metadata,
                "document_id": chunk.document_id,
                "chunk_index": chunk.chunk_index,
            },
        )

    def get(self, id: str | int) -> SearchResult | None:
        """Get a single entry by id.

        Args:
            id: The entry id

        Returns:
            SearchResult or None if not found
        """
        id_ = int(id)
        with self._lock.read():
            if not 0 <= id_ < len(self._chunks):
                return None
            chunk = self._chunks[id_]
        return self._result(id_, chunk, score=1.0, rank=0)

    def get_vector(self, id: str | int) -> Embedding | None:
        """Get the stored embedding for an id.

        Args:
            id: The entry id

        Returns:
            Embedding or None if not found
        """
        id_ = int(id)
        with self._lock.read():
            if not 0 <= id_ < len(self._chunks):
                return None
            vector = self._vectors[id_].copy()
        return Embedding(vector=vector, space=self.space)

    def __len__(self) -> int:
        """Return number of stored embeddings."""
        with self._lock.read():
            return len(self._chunks)

    def __contains__(self, id: str | int) -> bool:
        """Check if an id exists in the store."""
        return 0 <= int(id) < len(self)

    def __repr__(self) -> str:
        return (
            f"VectorStore(space={self.space.name!r}, "
            f"dimension={self.dimension}, entries={len(self)})"
        )
