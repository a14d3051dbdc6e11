"""Data types for semfuzz."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Document:
    """A document with text content and metadata."""

    text: str
    id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of a document.

    ``text`` is always ``document.text[start:end]``. ``unit_start`` and
    ``unit_end`` give the range of sentences (or paragraphs) covered by the
    chunk, end exclusive.
    """

    text: str
    document_id: str | None = None
    chunk_index: int = 0
    start: int = 0
    end: int = 0
    unit_start: int = 0
    unit_end: int = 0
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class SearchResult:
    """A ranked hit from a vector or fuzzy search."""

    id: str
    text: str
    score: float
    rank: int = 0
    chunk: Chunk | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
