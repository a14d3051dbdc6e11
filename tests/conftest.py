"""
Pytest configuration and shared fixtures for semfuzz tests.

This module provides:
- A deterministic bag-of-words embedder (no network, no model)
- Embedders that fail or stall on demand
- Sample documents
- Custom pytest markers
"""

import asyncio
import os
import re

import numpy as np
import pytest

from semfuzz import BaseEmbedder, Document, Embedding, EmbeddingError, VectorSpace

VOCABULARY = (
    "the", "cat", "sat", "on", "mat", "dog", "ran", "in", "park",
    "python", "language", "snake", "coffee", "tea", "morning",
)

CAT_DOG_TEXT = "The cat sat on the mat. The dog ran in the park."


class BagOfWordsEmbedder(BaseEmbedder):
    """Embed texts as word-count vectors over a fixed vocabulary.

    Unknown words are ignored. Texts listed in ``fail_on`` raise
    ``EmbeddingError``; ``delay`` makes every call yield to the event loop.
    """

    def __init__(
        self,
        vocabulary=VOCABULARY,
        name="test/bag-of-words",
        fail_on=(),
        delay=0.0,
    ):
        self.index = {word: i for i, word in enumerate(vocabulary)}
        self._space = VectorSpace(name, len(vocabulary))
        self.fail_on = set(fail_on)
        self.delay = delay
        self.calls = []

    @property
    def space(self):
        return self._space

    async def embed(self, text):
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if text in self.fail_on:
            raise EmbeddingError(f"cannot embed {text!r}")
        vector = np.zeros(self._space.dimension, dtype=np.float32)
        for token in re.findall(r"\w+", text.lower()):
            i = self.index.get(token)
            if i is not None:
                vector[i] += 1.0
        return Embedding(vector, self._space)


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def embedder_factory():
    """Provide the test embedder class for custom configurations."""
    return BagOfWordsEmbedder


@pytest.fixture
def embedder():
    """Provide a deterministic in-process embedder."""
    return BagOfWordsEmbedder()


@pytest.fixture
def space(embedder):
    """Vector space of the default test embedder."""
    return embedder.space


@pytest.fixture
def cat_dog_document():
    """Two-sentence document used by the end-to-end scenarios."""
    return Document(text=CAT_DOG_TEXT, id="cat-dog")


@pytest.fixture
def sample_documents():
    """A few small documents with metadata."""
    return [
        Document(
            text="Python is a language. A python is also a snake.",
            id="python",
            metadata={"topic": "programming"},
        ),
        Document(
            text="Coffee in the morning. Tea in the park.",
            id="drinks",
            metadata={"topic": "food"},
        ),
        Document(text=CAT_DOG_TEXT, id="cat-dog", metadata={"topic": "animals"}),
    ]


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that call a live embedding API"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip integration tests when no API key is configured."""
    if not os.getenv("OPENAI_API_KEY"):
        skip_no_key = pytest.mark.skip(reason="OPENAI_API_KEY not set")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_no_key)
