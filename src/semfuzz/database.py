"""Document databases: chunk, index and search a corpus of documents.

``DocumentDatabase`` embeds every chunk and answers semantic queries;
``FuzzySearchIndex`` stores raw chunk text and answers typo-tolerant lexical
queries. The two are independent; callers combine their results themselves.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import logging
from dataclasses import dataclass
from typing import Iterable

from .embedder import BaseEmbedder, EmbeddingError
from .fuzzy import FuzzyIndex
from .splitter import Chunker, ChunkStrategy, ConfigurationError, Sentence
from .store import VectorStore
from .types import Document, SearchResult

logger = logging.getLogger(__name__)


@dataclass
class SearchConfig:
    """Configuration shared by both databases.

    Attributes:
        top_k: Number of results returned when ``k`` is not given (default: 5)
        threshold: Minimum score for a result, or None to keep all (default: None)
        max_concurrency: Number of documents embedded concurrently during
                         ``DocumentDatabase.extend`` (default: 1)
    """

    top_k: int = 5
    threshold: float | None = None
    max_concurrency: int = 1

    def __post_init__(self):
        """Validate configuration values."""
        if self.top_k < 0:
            raise ConfigurationError(f"top_k must be >= 0, got {self.top_k}")
        if self.threshold is not None and not -1 <= self.threshold <= 1:
            raise ConfigurationError(
                f"threshold must be between -1 and 1, got {self.threshold}"
            )
        if self.max_concurrency < 1:
            raise ConfigurationError(
                f"max_concurrency must be >= 1, got {self.max_concurrency}"
            )


def _resolve_k(k: int | None, config: SearchConfig) -> int:
    k = config.top_k if k is None else k
    if k < 0:
        raise ValueError(f"k must be non-negative, got {k}")
    return k


class _DocumentIds:
    """Assigns ``doc-<n>`` ids to documents that come without one."""

    def __init__(self):
        self._counter = itertools.count()

    def ensure(self, document: Document | str) -> Document:
        if isinstance(document, str):
            document = Document(text=document)
        if document.id is None:
            document = dataclasses.replace(document, id=f"doc-{next(self._counter)}")
        return document


class DocumentDatabase:
    """Semantic search over documents using an embedding capability.

    Each document is chunked with the configured strategy; every chunk is
    embedded and stored in a ``VectorStore``. Queries are embedded with the
    same embedder and ranked by cosine similarity.

    The embedder's vector space is checked against the store when the
    database is built, so embeddings from different models are never
    compared.

    Example:
        >>> database = DocumentDatabase(
        ...     OpenAIEmbedder(),
        ...     Sentence(sentence_count=1, overlap=0),
        ... )
        >>> await database.extend([Document(text="The cat sat on the mat.")])
        >>> results = await database.search("cat", k=5)
        >>> print(results[0].text)
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        strategy: ChunkStrategy | None = None,
        store: VectorStore | None = None,
        config: SearchConfig | None = None,
    ):
        """Initialize the database.

        Args:
            embedder: Embedding capability used for chunks and queries
            strategy: Chunking strategy (default: one sentence per chunk)
            store: Empty vector store to fill (default: a new one in the
                   embedder's space). The database takes it over.
            config: Search configuration (uses defaults if None)

        Raises:
            VectorSpaceError: If ``store`` belongs to another vector space
            ConfigurationError: If ``store`` is used by another database or
                is not empty
        """
        if store is None:
            store = VectorStore(embedder.space)
        else:
            store.space.check(embedder.space)
        store.claim(self)

        self.embedder = embedder
        self.store = store
        self.chunker = Chunker(strategy)
        self.config = config or SearchConfig()
        self._ids = _DocumentIds()

    @property
    def strategy(self) -> ChunkStrategy:
        return self.chunker.strategy

    async def extend(self, documents: Iterable[Document | str]) -> list[int]:
        """Chunk, embed and index documents.

        Chunks of one document are embedded and inserted in document order.
        The first embedding failure aborts the call; chunks inserted before
        it stay in the store.

        With ``max_concurrency`` 1 the input is read one document at a time,
        so a generator is only advanced once the previous document is stored.

        Args:
            documents: Documents (or plain texts) to add

        Returns:
            Store ids of the inserted chunks, grouped by document

        Raises:
            EmbeddingError: If the embedder fails for any chunk
        """
        documents = (self._ids.ensure(document) for document in documents)

        if self.config.max_concurrency == 1:
            ids = []
            n_documents = 0
            for document in documents:
                n_documents += 1
                ids.extend(await self._extend_document(document))
        else:
            documents = list(documents)
            n_documents = len(documents)
            ids = await self._extend_concurrently(documents)

        logger.debug("Indexed %d chunks from %d documents", len(ids), n_documents)
        return ids

    async def _extend_document(self, document: Document) -> list[int]:
        ids = []
        for chunk in self.chunker.iter_chunks(document):
            try:
                embedding = await self.embedder.embed(chunk.text)
            except EmbeddingError as e:
                logger.warning(
                    "Embedding failed for chunk %d of document %s: %s",
                    chunk.chunk_index,
                    document.id,
                    e,
                )
                raise
            ids.append(self.store.insert(chunk, embedding))
        return ids

    async def _extend_concurrently(self, documents: list[Document]) -> list[int]:
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def worker(document: Document) -> list[int]:
            async with semaphore:
                return await self._extend_document(document)

        tasks = [asyncio.ensure_future(worker(document)) for document in documents]
        try:
            per_document = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [id_ for ids in per_document for id_ in ids]

    async def search(
        self,
        query: str,
        k: int | None = None,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Find the chunks most similar in meaning to a query.

        Args:
            query: Query text
            k: Number of results to return (default: config.top_k)
            threshold: Minimum cosine similarity (default: config.threshold)

        Returns:
            List of SearchResult ordered by descending similarity; empty when
            the database is empty or k is 0

        Raises:
            EmbeddingError: If the query cannot be embedded
        """
        k = _resolve_k(k, self.config)
        if k == 0 or len(self.store) == 0:
            return []
        threshold = threshold if threshold is not None else self.config.threshold
        embedding = await self.embedder.embed(query)
        return self.store.query(embedding, k=k, threshold=threshold)

    @property
    def count(self) -> int:
        """Return number of chunks in the database."""
        return len(self.store)

    def __len__(self) -> int:
        return self.count

    def __repr__(self) -> str:
        return (
            f"DocumentDatabase(embedder={self.embedder!r}, "
            f"strategy={self.strategy!r}, chunks={self.count})"
        )


class FuzzySearchIndex:
    """Typo-tolerant lexical search over documents.

    Documents are chunked exactly as in ``DocumentDatabase``, but chunk text
    goes straight into a ``FuzzyIndex`` with no embedding step, so every
    operation is synchronous.

    Example:
        >>> fuzzy = FuzzySearchIndex()
        >>> fuzzy.extend([Document(text="The cat sat on the mat. The dog ran.")])
        >>> fuzzy.search("caat", k=1)[0].text
        'The cat sat on the mat.'
    """

    def __init__(
        self,
        strategy: ChunkStrategy | None = None,
        index: FuzzyIndex | None = None,
        config: SearchConfig | None = None,
    ):
        """Initialize the fuzzy search index.

        Args:
            strategy: Chunking strategy (default: one sentence per chunk)
            index: Empty fuzzy index to fill (default: a new one). The
                   index is taken over by this object.
            config: Search configuration (uses defaults if None)

        Raises:
            ConfigurationError: If ``index`` is used elsewhere or is not empty
        """
        self.chunker = Chunker(strategy if strategy is not None else Sentence())
        self.index = index if index is not None else FuzzyIndex()
        self.index.claim(self)
        self.config = config or SearchConfig()
        self._ids = _DocumentIds()

    @property
    def strategy(self) -> ChunkStrategy:
        return self.chunker.strategy

    def extend(self, documents: Iterable[Document | str]) -> list[int]:
        """Chunk documents and index their raw text.

        Args:
            documents: Documents (or plain texts) to add

        Returns:
            Index ids of the inserted chunks
        """
        ids = []
        n_documents = 0
        for document in documents:
            document = self._ids.ensure(document)
            n_documents += 1
            for chunk in self.chunker.iter_chunks(document):
                ids.append(self.index.insert(chunk))
        logger.debug("Indexed %d chunks from %d documents", len(ids), n_documents)
        return ids

    def search(
        self,
        query: str,
        k: int | None = None,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Find the chunks that best match a query lexically.

        Args:
            query: Query text; misspellings and partial words are tolerated
            k: Number of results to return (default: config.top_k)
            threshold: Minimum score in [0, 1] (default: config.threshold)

        Returns:
            List of SearchResult ordered by descending score
        """
        k = _resolve_k(k, self.config)
        threshold = threshold if threshold is not None else self.config.threshold
        return self.index.query(query, k=k, threshold=threshold)

    @property
    def count(self) -> int:
        """Return number of chunks in the index."""
        return len(self.index)

    def __len__(self) -> int:
        return self.count

    def __repr__(self) -> str:
        return f"FuzzySearchIndex(strategy={self.strategy!r}, chunks={self.count})"
