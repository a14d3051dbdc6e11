"""Embedding capability: vector spaces, embeddings and embedder backends."""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Exception raised when an embedder fails to produce an embedding.

    Covers network failures, remote API errors and malformed input. It is
    propagated unmodified through ``DocumentDatabase.extend`` and ``search``.
    """

    pass


class VectorSpaceError(TypeError):
    """Exception raised when embeddings from different vector spaces meet."""

    pass


@dataclass(frozen=True)
class VectorSpace:
    """Identity of an embedding model's output space.

    Two embeddings are only comparable when their spaces are equal.

    Attributes:
        name: Identifier of the model (e.g. "openai/text-embedding-ada-002")
        dimension: Length of every vector in this space
    """

    name: str
    dimension: int

    def __post_init__(self):
        if self.dimension <= 0:
            raise ValueError(f"dimension must be positive, got {self.dimension}")

    def check(self, other: "VectorSpace") -> None:
        """Raise ``VectorSpaceError`` unless ``other`` is this space."""
        if other != self:
            raise VectorSpaceError(
                f"Vector space mismatch: expected {self.name!r} "
                f"(dimension={self.dimension}), got {other.name!r} "
                f"(dimension={other.dimension})"
            )


@dataclass(frozen=True)
class Embedding:
    """Dense vector tagged with the space it belongs to.

    The vector is stored as a read-only float32 array.
    """

    vector: np.ndarray = field(repr=False)
    space: VectorSpace

    def __post_init__(self):
        vector = np.array(self.vector, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.space.dimension:
            raise VectorSpaceError(
                f"Vector dimension mismatch: {self.space.name!r} expects "
                f"{self.space.dimension}, got {vector.shape[0]}"
            )
        vector.setflags(write=False)
        object.__setattr__(self, "vector", vector)

    @classmethod
    def from_values(cls, values: Iterable[float], space: VectorSpace) -> "Embedding":
        return cls(vector=np.fromiter(values, dtype=np.float32), space=space)

    @property
    def dimension(self) -> int:
        return self.space.dimension

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self.vector))

    def cosine_similarity(self, other: "Embedding") -> float:
        """Cosine similarity to another embedding of the same space.

        Returns 0.0 when either vector has zero magnitude.
        """
        self.space.check(other.space)
        denom = self.norm * other.norm
        if denom == 0.0:
            return 0.0
        return float(np.dot(self.vector, other.vector) / denom)

    def tolist(self) -> list[float]:
        return self.vector.tolist()

    def __len__(self) -> int:
        return self.space.dimension

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Embedding):
            return NotImplemented
        return self.space == other.space and np.array_equal(self.vector, other.vector)

    def __hash__(self) -> int:
        return hash((self.space, self.vector.tobytes()))


class BaseEmbedder(ABC):
    """Abstract base class for embedding capabilities.

    An embedder turns a text into an ``Embedding`` of one fixed
    ``VectorSpace``. Implementations raise ``EmbeddingError`` on failure and
    must tolerate concurrent calls.
    """

    @property
    @abstractmethod
    def space(self) -> VectorSpace:
        """The vector space every embedding from this embedder belongs to."""

    @abstractmethod
    async def embed(self, text: str) -> Embedding:
        """Embed a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding in ``self.space``

        Raises:
            EmbeddingError: If the embedding could not be produced
        """

    @property
    def dimension(self) -> int:
        """Return embedding dimension."""
        return self.space.dimension

    async def embed_batch(self, texts: Sequence[str]) -> list[Embedding]:
        """Embed multiple texts in order.

        Args:
            texts: Texts to embed

        Returns:
            List of embeddings, one per text
        """
        return [await self.embed(text) for text in texts]


class SyncEmbedder(BaseEmbedder):
    """Base class for embedders backed by a blocking call.

    Subclasses implement ``embed_sync``; ``embed`` runs it in a worker thread
    so the event loop is not blocked.
    """

    @abstractmethod
    def embed_sync(self, text: str) -> Embedding:
        """Embed a text, blocking the calling thread."""

    async def embed(self, text: str) -> Embedding:
        return await asyncio.to_thread(self.embed_sync, text)


class CacheInfo(NamedTuple):
    """Cache statistics for CachedEmbedder."""

    hits: int
    misses: int
    maxsize: int
    currsize: int


class _LRUCache:
    """LRU cache of embeddings keyed by text.

    Uses OrderedDict to maintain recency order and evict the oldest entry.
    A lock makes it safe to share between concurrent embed calls.
    """

    def __init__(self, maxsize: int):
        self.maxsize = maxsize
        self._cache: OrderedDict[str, Embedding] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Embedding | None:
        with self._lock:
            if key in self._cache:
                self._hits += 1
                self._cache.move_to_end(key)
                return self._cache[key]
            self._misses += 1
            return None

    def put(self, key: str, value: Embedding) -> None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            else:
                if len(self._cache) >= self.maxsize:
                    self._cache.popitem(last=False)
                self._cache[key] = value

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(
                hits=self._hits,
                misses=self._misses,
                maxsize=self.maxsize,
                currsize=len(self._cache),
            )


class CachedEmbedder(BaseEmbedder):
    """Wrap an embedder with an LRU cache of embeddings.

    Repeated calls with the same text return the cached embedding without
    invoking the wrapped embedder. Failures are not cached.

    Example:
        >>> embedder = CachedEmbedder(OpenAIEmbedder(), maxsize=1000)
        >>> await embedder.embed("hello")
        >>> await embedder.embed("hello")  # Cache hit
        >>> info = embedder.cache_info()
        >>> print(f"Hits: {info.hits}, Misses: {info.misses}")
        Hits: 1, Misses: 1
    """

    def __init__(self, embedder: BaseEmbedder, maxsize: int = 1024):
        """Initialize the cache.

        Args:
            embedder: Embedder to delegate cache misses to
            maxsize: Maximum number of embeddings to keep
        """
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.embedder = embedder
        self._cache = _LRUCache(maxsize)

    @property
    def space(self) -> VectorSpace:
        return self.embedder.space

    async def embed(self, text: str) -> Embedding:
        cached = self._cache.get(text)
        if cached is not None:
            return cached
        embedding = await self.embedder.embed(text)
        self._cache.put(text, embedding)
        return embedding

    def cache_info(self) -> CacheInfo:
        """Return cache statistics."""
        return self._cache.info()

    def cache_clear(self) -> None:
        """Clear the cache and reset statistics."""
        self._cache.clear()

    def __repr__(self) -> str:
        info = self._cache.info()
        return f"CachedEmbedder({self.embedder!r}, maxsize={info.maxsize})"
