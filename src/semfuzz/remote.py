"""Remote embedding backends speaking the OpenAI-compatible embeddings API."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any

import requests

from .embedder import Embedding, EmbeddingError, SyncEmbedder, VectorSpace

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com"
DEFAULT_MODEL = "text-embedding-ada-002"

# Output dimension of well-known embedding models
MODEL_DIMENSIONS = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}


class OpenAIEmbedder(SyncEmbedder):
    """Embedder backed by an OpenAI-compatible ``/v1/embeddings`` endpoint.

    Works with the OpenAI API as well as local servers exposing the same
    interface (llama.cpp server, vLLM, Ollama). Every instance belongs to the
    vector space ``openai/<model>``.

    Example:
        >>> embedder = OpenAIEmbedder()  # reads OPENAI_API_KEY
        >>> embedding = await embedder.embed("Hello, world!")
        >>> len(embedding)
        1536

        >>> # Local server
        >>> embedder = OpenAIEmbedder(
        ...     model="bge-small",
        ...     dimension=384,
        ...     base_url="http://127.0.0.1:8080",
        ... )
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimension: int | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        """Initialize the remote embedder.

        Args:
            model: Embedding model name
            dimension: Output dimension; required for models not in
                       MODEL_DIMENSIONS
            api_key: API key (default: OPENAI_API_KEY environment variable)
            base_url: Server base URL (default: OPENAI_BASE_URL or the OpenAI API)
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session, shared by all
                     threads (default: one new session per thread)
        """
        if dimension is None:
            if model not in MODEL_DIMENSIONS:
                raise ValueError(
                    f"Unknown dimension for model {model!r}; pass dimension explicitly"
                )
            dimension = MODEL_DIMENSIONS[model]
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self.model = model
        self.timeout = timeout
        self.base_url = (
            base_url or os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL
        ).rstrip("/")
        self._space = VectorSpace(name=f"openai/{model}", dimension=dimension)

        api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY")
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

        # embed_sync runs in worker threads; each gets its own session
        # unless one was supplied
        self._shared_session = session
        if session is not None:
            session.headers.update(self.headers)
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """HTTP session for the calling thread.

        A session passed to the constructor is used by every thread as is.
        """
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self.headers)
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    @property
    def space(self) -> VectorSpace:
        return self._space

    @property
    def url(self) -> str:
        return f"{self.base_url}/v1/embeddings"

    def embed_sync(self, text: str) -> Embedding:
        """Embed a text with a blocking HTTP request.

        Raises:
            EmbeddingError: On network failure, an HTTP error status or a
                            malformed response body
        """
        data = {"model": self.model, "input": [text]}
        try:
            response = self.session.post(self.url, json=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Embedding request to %s failed: %s", self.url, e)
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if response.status_code >= 400:
            raise EmbeddingError(
                f"Embedding API returned {response.status_code}: "
                f"{self._error_message(response)}"
            )

        try:
            values = response.json()["data"][0]["embedding"]
            return Embedding.from_values(values, self._space)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body: Any = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return str(body["error"].get("message", body["error"]))
        return str(body)[:200]

    def close(self) -> None:
        """Close every HTTP session this embedder has used."""
        if self._shared_session is not None:
            self._shared_session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def __enter__(self) -> "OpenAIEmbedder":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"OpenAIEmbedder(model={self.model!r}, "
            f"dimension={self.dimension}, base_url={self.base_url!r})"
        )
