"""Chunking strategies for splitting documents into overlapping windows."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Iterator

from .types import Chunk, Document

# A run of terminators, optionally closed by quotes or brackets, followed by
# whitespace or end of text. A blank line also ends a sentence.
SENTENCE_BOUNDARY = re.compile(
    r"(?P<term>[.!?…]+[\"')\]”’]*)(?=\s|$)|(?P<para>\n[ \t]*\n)"
)

PARAGRAPH_BOUNDARY = re.compile(r"\n[ \t]*\n\s*")


class ConfigurationError(ValueError):
    """Exception raised for invalid chunking or search configuration."""

    pass


def _trim(text: str, start: int, end: int) -> tuple[int, int] | None:
    """Shrink ``[start, end)`` to exclude surrounding whitespace."""
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start == end:
        return None
    return start, end


def sentence_spans(text: str) -> list[tuple[int, int]]:
    """Segment text into sentences.

    Args:
        text: Text to segment

    Returns:
        List of ``(start, end)`` character offsets, one per sentence, in
        document order. Offsets exclude surrounding whitespace.
    """
    spans = []
    pos = 0
    for match in SENTENCE_BOUNDARY.finditer(text):
        end = match.end() if match.group("term") else match.start()
        span = _trim(text, pos, end)
        if span is not None:
            spans.append(span)
        pos = match.end()
    span = _trim(text, pos, len(text))
    if span is not None:
        spans.append(span)
    return spans


def paragraph_spans(text: str) -> list[tuple[int, int]]:
    """Segment text into paragraphs separated by blank lines."""
    spans = []
    pos = 0
    for match in PARAGRAPH_BOUNDARY.finditer(text):
        span = _trim(text, pos, match.start())
        if span is not None:
            spans.append(span)
        pos = match.end()
    span = _trim(text, pos, len(text))
    if span is not None:
        spans.append(span)
    return spans


class ChunkStrategy(ABC):
    """Policy for splitting a document into windows of text units.

    Subclasses define how a text is segmented into units (sentences,
    paragraphs) and how many units go into each window. Consecutive windows
    share exactly ``overlap`` units.
    """

    @property
    @abstractmethod
    def count(self) -> int:
        """Number of units per window."""

    @property
    @abstractmethod
    def overlap(self) -> int:
        """Number of units shared by consecutive windows."""

    @abstractmethod
    def segment(self, text: str) -> list[tuple[int, int]]:
        """Return the ``(start, end)`` offsets of every unit in ``text``."""

    @property
    def stride(self) -> int:
        """Number of units the window start advances by each step."""
        return self.count - self.overlap

    def windows(self, n_units: int) -> Iterator[tuple[int, int]]:
        """Yield ``(first, last)`` unit ranges, end exclusive.

        The final window may hold fewer than ``count`` units; it is still
        emitted. Stops after the first window reaching the last unit.
        """
        start = 0
        while start < n_units:
            end = min(start + self.count, n_units)
            yield start, end
            if end == n_units:
                break
            start += self.stride

    def window_count(self, n_units: int) -> int:
        """Number of windows ``windows(n_units)`` will produce."""
        if n_units <= 0:
            return 0
        return max(1, math.ceil((n_units - self.overlap) / self.stride))

    def _validate(self, count: int, overlap: int, name: str) -> None:
        if count <= 0:
            raise ConfigurationError(f"{name} must be positive, got {count}")
        if overlap < 0:
            raise ConfigurationError(f"overlap must be non-negative, got {overlap}")
        if overlap >= count:
            raise ConfigurationError(
                f"overlap ({overlap}) must be less than {name} ({count})"
            )


@dataclass(frozen=True)
class Sentence(ChunkStrategy):
    """Windows of ``sentence_count`` consecutive sentences.

    Example:
        >>> strategy = Sentence(sentence_count=3, overlap=1)
        >>> Chunker(strategy).split("One. Two. Three. Four. Five.")
        ['One. Two. Three.', 'Three. Four. Five.']
    """

    sentence_count: int = 1
    overlap: int = 0

    def __post_init__(self):
        self._validate(self.sentence_count, self.overlap, "sentence_count")

    @property
    def count(self) -> int:
        return self.sentence_count

    def segment(self, text: str) -> list[tuple[int, int]]:
        return sentence_spans(text)


@dataclass(frozen=True)
class Paragraph(ChunkStrategy):
    """Windows of ``paragraph_count`` consecutive blank-line separated paragraphs."""

    paragraph_count: int = 1
    overlap: int = 0

    def __post_init__(self):
        self._validate(self.paragraph_count, self.overlap, "paragraph_count")

    @property
    def count(self) -> int:
        return self.paragraph_count

    def segment(self, text: str) -> list[tuple[int, int]]:
        return paragraph_spans(text)


class Chunker:
    """Split documents into chunks according to a ``ChunkStrategy``.

    Every chunk's text is a verbatim slice of its document, and chunks are
    produced in document order.

    Example:
        >>> chunker = Chunker(Sentence(sentence_count=1, overlap=0))
        >>> chunks = chunker.chunk(Document(text="The cat sat. The dog ran.", id="d1"))
        >>> [c.text for c in chunks]
        ['The cat sat.', 'The dog ran.']
    """

    def __init__(self, strategy: ChunkStrategy | None = None):
        """Initialize chunker.

        Args:
            strategy: Chunking strategy (default: one sentence per chunk)
        """
        self.strategy = strategy if strategy is not None else Sentence()

    def iter_chunks(self, document: Document | str) -> Iterator[Chunk]:
        """Lazily yield the chunks of a document.

        Each call starts a new pass over the document, so the sequence can be
        restarted by calling again.

        Args:
            document: Document (or plain text) to chunk

        Yields:
            Chunks in document order
        """
        if isinstance(document, str):
            document = Document(text=document)
        text = document.text
        spans = self.strategy.segment(text)
        for index, (first, last) in enumerate(self.strategy.windows(len(spans))):
            start = spans[first][0]
            end = spans[last - 1][1]
            yield Chunk(
                text=text[start:end],
                document_id=document.id,
                chunk_index=index,
                start=start,
                end=end,
                unit_start=first,
                unit_end=last,
                metadata=dict(document.metadata),
            )

    def chunk(self, document: Document | str) -> list[Chunk]:
        """Chunk a single document."""
        return list(self.iter_chunks(document))

    def split(self, text: str) -> list[str]:
        """Split text into chunk strings.

        Args:
            text: Text to split

        Returns:
            List of chunk texts
        """
        return [chunk.text for chunk in self.iter_chunks(text)]

    def split_documents(self, documents: Iterable[Document]) -> list[Chunk]:
        """Chunk several documents, preserving document order.

        Args:
            documents: Documents to split

        Returns:
            Flat list of chunks carrying each document's id and metadata
        """
        chunks = []
        for document in documents:
            chunks.extend(self.iter_chunks(document))
        return chunks

    def __repr__(self) -> str:
        return f"Chunker(strategy={self.strategy!r})"
