"""Approximate lexical search tolerant of typos and partial words.

Scoring works on word tokens. Each query token is matched against its closest
token in the stored text, where closeness averages two edit-distance ratios:

- ``ratio``: Levenshtein distance normalised by the longer token, which
  penalises substitutions, insertions and deletions anywhere;
- ``partial_ratio``: edits needed to turn the query token into *some
  substring* of the stored token, so "pyth" matches "python" well.

Averaged over the query tokens this gives the query coverage. The text
coverage is the same measure taken the other way round, over the stored
text's tokens, and weighs in with ``TEXT_COVERAGE_WEIGHT`` so that a longer
text containing every query word still ranks below an exact match.

The final score lies in ``[0, 1]``; a query identical to the stored text
scores 1.0.
"""

from __future__ import annotations

import logging
import re
import weakref
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from .splitter import ConfigurationError
from .types import Chunk, SearchResult
from .utils.locks import ReadWriteLock

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens of a text."""
    return TOKEN_PATTERN.findall(text.casefold())


def normalize(text: str) -> str:
    """Lower-case text with runs of whitespace collapsed."""
    return " ".join(text.casefold().split())


def levenshtein(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def substring_distance(pattern: str, text: str) -> int:
    """Minimum edits turning ``pattern`` into any substring of ``text``.

    Same recurrence as Levenshtein, except the match may start and end
    anywhere in ``text`` at no cost.
    """
    if not pattern:
        return 0
    if not text:
        return len(pattern)

    previous = [0] * (len(text) + 1)
    for i, cp in enumerate(pattern, 1):
        current = [i]
        for j, ct in enumerate(text, 1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (cp != ct),
                )
            )
        previous = current
    return min(previous)


def ratio(a: str, b: str) -> float:
    """Levenshtein similarity in ``[0, 1]``; 1.0 for identical strings."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def partial_ratio(a: str, b: str) -> float:
    """Similarity of ``a`` to the best matching substring of ``b``."""
    if not a:
        return 1.0
    return 1.0 - substring_distance(a, b) / len(a)


@lru_cache(maxsize=65536)
def token_similarity(a: str, b: str) -> float:
    """Similarity between a query token and a stored token."""
    if a == b:
        return 1.0
    return (ratio(a, b) + partial_ratio(a, b)) / 2.0


# Share of the score taken by how much of the stored text the query covers
TEXT_COVERAGE_WEIGHT = 0.1


def _coverage(tokens: Iterable[str], others: tuple[str, ...]) -> float:
    """Mean over ``tokens`` of each token's best similarity in ``others``."""
    total = 0.0
    count = 0
    for token in tokens:
        total += max(token_similarity(token, other) for other in others)
        count += 1
    return total / count


def _score_tokens(query_tokens: tuple[str, ...], text_tokens: tuple[str, ...]) -> float:
    query_side = _coverage(query_tokens, text_tokens)
    text_side = _coverage(text_tokens, query_tokens)
    # Equal sides return query_side unchanged, so an exact match stays 1.0
    return query_side - TEXT_COVERAGE_WEIGHT * (query_side - text_side)


def fuzzy_score(query: str, text: str) -> float:
    """Approximate-match score of a query against a text, in ``[0, 1]``.

    Falls back to comparing the whole normalised strings when either side
    has no word tokens.
    """
    query_tokens = tuple(dict.fromkeys(tokenize(query)))
    text_tokens = tuple(dict.fromkeys(tokenize(text)))
    if not query_tokens or not text_tokens:
        return ratio(normalize(query), normalize(text))
    return _score_tokens(query_tokens, text_tokens)


@dataclass(frozen=True)
class _Entry:
    chunk: Chunk
    text: str
    normalized: str
    tokens: tuple[str, ...]


class FuzzyIndex:
    """In-memory index answering approximate lexical queries.

    Every stored entry is scored against the query with ``fuzzy_score``;
    results are ordered by descending score with ties in insertion order.

    Example:
        >>> index = FuzzyIndex()
        >>> index.insert(Chunk(text="The cat sat on the mat."))
        0
        >>> index.insert(Chunk(text="The dog ran in the park."))
        1
        >>> index.query("caat", k=1)[0].text
        'The cat sat on the mat.'
    """

    def __init__(self):
        self._entries: list[_Entry] = []
        self._lock = ReadWriteLock()
        self._owner: weakref.ref | None = None

    def claim(self, owner: object) -> None:
        """Reserve this index for a single document index.

        Raises:
            ConfigurationError: If another owner holds the index or it
                already has entries
        """
        with self._lock.write():
            current = self._owner() if self._owner is not None else None
            if current is owner:
                return
            if current is not None:
                raise ConfigurationError(
                    f"FuzzyIndex is already used by {type(current).__name__}"
                )
            if self._entries:
                raise ConfigurationError(
                    f"FuzzyIndex must be empty to be claimed, has {len(self._entries)} entries"
                )
            self._owner = weakref.ref(owner)

    def insert(self, chunk: Chunk, text: str | None = None) -> int:
        """Store a chunk keyed for fuzzy matching.

        Args:
            chunk: Chunk to store
            text: Text to match against (default: the chunk's text)

        Returns:
            Id of the new entry (its insertion position)
        """
        text = chunk.text if text is None else text
        entry = _Entry(
            chunk=chunk,
            text=text,
            normalized=normalize(text),
            tokens=tuple(dict.fromkeys(tokenize(text))),
        )
        with self._lock.write():
            id_ = len(self._entries)
            self._entries.append(entry)
        logger.debug("Inserted chunk %d of document %s", id_, chunk.document_id)
        return id_

    def add(self, chunks: Iterable[Chunk]) -> list[int]:
        """Store several chunks using their own text."""
        return [self.insert(chunk) for chunk in chunks]

    def query(
        self,
        text: str,
        k: int = 5,
        threshold: float | None = None,
    ) -> list[SearchResult]:
        """Find the k entries that best match a query.

        Args:
            text: Query text (typos and partial words tolerated)
            k: Maximum number of results to return
            threshold: Minimum score in [0, 1] (results below are dropped)

        Returns:
            List of SearchResult ordered by descending score, ties in
            insertion order. Empty if the index is empty or k is 0.
        """
        if k < 0:
            raise ValueError(f"k must be non-negative, got {k}")
        if k == 0:
            return []

        with self._lock.read():
            entries = self._entries[:]
        if not entries:
            return []

        query_tokens = tuple(dict.fromkeys(tokenize(text)))
        query_normalized = normalize(text)
        scores = []
        for entry in entries:
            if query_tokens and entry.tokens:
                scores.append(_score_tokens(query_tokens, entry.tokens))
            else:
                scores.append(ratio(query_normalized, entry.normalized))

        # sorted() is stable, so equal scores keep insertion order
        order = sorted(range(len(entries)), key=lambda i: -scores[i])

        results = []
        for id_ in order:
            score = scores[id_]
            if threshold is not None and score < threshold:
                break
            chunk = entries[id_].chunk
            results.append(
                SearchResult(
                    id=str(id_),
                    text=entries[id_].text,
                    score=score,
                    rank=len(results),
                    chunk=chunk,
                    metadata={
                        **chunk.metadata,
                        "document_id": chunk.document_id,
                        "chunk_index": chunk.chunk_index,
                    },
                )
            )
            if len(results) == k:
                break
        return results

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __repr__(self) -> str:
        return f"FuzzyIndex(entries={len(self)})"
