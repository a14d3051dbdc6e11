"""Semantic and fuzzy search over chunked document collections.

Documents are split into overlapping windows of sentences or paragraphs,
then indexed two ways: by embedding (meaning) and by raw text (spelling).

Components:
    - Chunker / Sentence / Paragraph: Split documents into chunks
    - BaseEmbedder: Embedding capability, tagged with its VectorSpace
    - OpenAIEmbedder: Embeddings from an OpenAI-compatible HTTP endpoint
    - CachedEmbedder: LRU cache around any embedder
    - VectorStore: In-memory cosine-similarity index
    - FuzzyIndex: In-memory typo-tolerant lexical index
    - DocumentDatabase: Async chunk-embed-index pipeline with semantic search
    - FuzzySearchIndex: Chunk-index pipeline with fuzzy search
    - DocumentFolder / TextLoader: Load documents from disk

Example:
    >>> from semfuzz import (
    ...     DocumentDatabase, DocumentFolder, FuzzySearchIndex,
    ...     OpenAIEmbedder, Sentence,
    ... )
    >>>
    >>> documents = DocumentFolder("./documents")
    >>> database = DocumentDatabase(OpenAIEmbedder(), Sentence(1, 0))
    >>> await database.extend(documents)
    >>> fuzzy = FuzzySearchIndex()
    >>> fuzzy.extend(documents)
    >>>
    >>> for result in await database.search("What is the capital of France?", k=5):
    ...     print(result.score, result.text)
    >>> for result in fuzzy.search("capitol of frnace", k=5):
    ...     print(result.score, result.text)
"""

from .database import DocumentDatabase, FuzzySearchIndex, SearchConfig
from .embedder import (
    BaseEmbedder,
    CachedEmbedder,
    CacheInfo,
    Embedding,
    EmbeddingError,
    SyncEmbedder,
    VectorSpace,
    VectorSpaceError,
)
from .fuzzy import FuzzyIndex, fuzzy_score
from .loaders import BaseLoader, DocumentFolder, LoaderError, TextLoader
from .remote import OpenAIEmbedder
from .splitter import Chunker, ChunkStrategy, ConfigurationError, Paragraph, Sentence
from .store import VectorStore
from .types import Chunk, Document, SearchResult

__version__ = "0.1.0"

__all__ = [
    # Databases
    "DocumentDatabase",
    "FuzzySearchIndex",
    "SearchConfig",
    # Chunking
    "Chunker",
    "ChunkStrategy",
    "Sentence",
    "Paragraph",
    "ConfigurationError",
    # Embedding
    "BaseEmbedder",
    "SyncEmbedder",
    "CachedEmbedder",
    "CacheInfo",
    "Embedding",
    "EmbeddingError",
    "VectorSpace",
    "VectorSpaceError",
    "OpenAIEmbedder",
    # Indices
    "VectorStore",
    "FuzzyIndex",
    "fuzzy_score",
    # Loaders
    "BaseLoader",
    "TextLoader",
    "DocumentFolder",
    "LoaderError",
    # Types
    "Document",
    "Chunk",
    "SearchResult",
]
