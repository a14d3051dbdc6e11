"""Tests for the OpenAI-compatible remote embedder."""

import asyncio
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from semfuzz.embedder import EmbeddingError, VectorSpace
from semfuzz.remote import DEFAULT_MODEL, OpenAIEmbedder


def _response(status_code=200, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    response.text = text
    return response


@pytest.fixture
def session():
    """Mock requests session."""
    s = MagicMock()
    s.headers = {}
    return s


@pytest.fixture
def remote(session):
    """Embedder for a 4-dimensional local model using the mock session."""
    return OpenAIEmbedder(
        model="local-model",
        dimension=4,
        api_key="sk-test",
        base_url="http://127.0.0.1:8080/",
        session=session,
    )


class TestOpenAIEmbedderInit:
    """Test OpenAIEmbedder configuration."""

    def test_default_model(self, session, monkeypatch):
        """Test that the default model has a known dimension."""
        monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
        embedder = OpenAIEmbedder(session=session)
        assert embedder.model == DEFAULT_MODEL
        assert embedder.space == VectorSpace("openai/text-embedding-ada-002", 1536)
        assert embedder.url == "https://api.openai.com/v1/embeddings"

    def test_unknown_model_requires_dimension(self, session):
        """Test that an unknown model without a dimension raises."""
        with pytest.raises(ValueError, match="pass dimension explicitly"):
            OpenAIEmbedder(model="mystery", session=session)

    def test_invalid_timeout(self, session):
        """Test that timeout must be positive."""
        with pytest.raises(ValueError, match="timeout must be positive"):
            OpenAIEmbedder(timeout=0, session=session)

    def test_headers(self, remote, session):
        """Test authorization and content-type headers."""
        assert session.headers["Authorization"] == "Bearer sk-test"
        assert session.headers["Content-Type"] == "application/json"

    def test_environment(self, session, monkeypatch):
        """Test API key and base URL from the environment."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_BASE_URL", "http://proxy:9000/")
        embedder = OpenAIEmbedder(session=session)
        assert session.headers["Authorization"] == "Bearer sk-env"
        assert embedder.url == "http://proxy:9000/v1/embeddings"

    def test_url_strips_trailing_slash(self, remote):
        """Test URL construction."""
        assert remote.url == "http://127.0.0.1:8080/v1/embeddings"

    def test_repr(self, remote):
        """Test string representation."""
        text = repr(remote)
        assert "OpenAIEmbedder" in text
        assert "local-model" in text
        assert "dimension=4" in text


class TestOpenAIEmbedderEmbed:
    """Test embedding requests and error mapping."""

    def test_success(self, remote, session):
        """Test a successful request."""
        session.post.return_value = _response(
            body={"data": [{"embedding": [0.1, 0.2, 0.3, 0.4]}]}
        )
        emb = remote.embed_sync("hello")

        assert emb.space == remote.space
        assert emb.tolist() == pytest.approx([0.1, 0.2, 0.3, 0.4])
        session.post.assert_called_once_with(
            "http://127.0.0.1:8080/v1/embeddings",
            json={"model": "local-model", "input": ["hello"]},
            timeout=30.0,
        )

    @pytest.mark.asyncio
    async def test_async_embed(self, remote, session):
        """Test that embed runs the request without blocking the loop."""
        session.post.return_value = _response(
            body={"data": [{"embedding": [1.0, 0.0, 0.0, 0.0]}]}
        )
        emb = await remote.embed("hello")
        assert emb.tolist() == [1.0, 0.0, 0.0, 0.0]

    def test_network_error(self, remote, session):
        """Test that connection failures become EmbeddingError."""
        session.post.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(EmbeddingError, match="request failed"):
            remote.embed_sync("hello")

    def test_http_error_with_json_body(self, remote, session):
        """Test that API error messages are surfaced."""
        session.post.return_value = _response(
            status_code=401,
            body={"error": {"message": "Invalid API key", "type": "auth"}},
        )
        with pytest.raises(EmbeddingError, match="401: Invalid API key"):
            remote.embed_sync("hello")

    def test_http_error_with_text_body(self, remote, session):
        """Test error bodies that are not JSON."""
        session.post.return_value = _response(
            status_code=502, body=ValueError("not json"), text="Bad Gateway"
        )
        with pytest.raises(EmbeddingError, match="502: Bad Gateway"):
            remote.embed_sync("hello")

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"data": []},
            {"data": [{"index": 0}]},
            {"data": [{"embedding": None}]},
            {"data": [{"embedding": [0.1, 0.2]}]},
            ValueError("not json"),
        ],
    )
    def test_malformed_response(self, remote, session, body):
        """Test that malformed bodies, including wrong dimensions, raise."""
        session.post.return_value = _response(body=body)
        with pytest.raises(EmbeddingError, match="Malformed embedding response"):
            remote.embed_sync("hello")

    def test_context_manager_closes_session(self, remote, session):
        """Test that exiting the context closes the session."""
        with remote:
            pass
        session.close.assert_called_once()


class TestOpenAIEmbedderSessions:
    """Test HTTP session handling across worker threads."""

    @pytest.fixture
    def created(self):
        """Patch requests.Session and collect every session it makes."""
        sessions = []

        def make_session():
            s = MagicMock()
            s.headers = {}
            s.post.return_value = _response(
                body={"data": [{"embedding": [1.0, 0.0, 0.0, 0.0]}]}
            )
            sessions.append(s)
            return s

        with patch("semfuzz.remote.requests.Session", side_effect=make_session):
            yield sessions

    @pytest.fixture
    def threaded(self, created):
        """Embedder that creates its own sessions."""
        return OpenAIEmbedder(model="local-model", dimension=4, api_key="sk-test")

    def _session_in_thread(self, embedder):
        seen = []
        thread = threading.Thread(target=lambda: seen.append(embedder.session))
        thread.start()
        thread.join()
        return seen[0]

    def test_one_session_per_thread(self, threaded, created):
        """Test that each thread gets its own configured session."""
        main = threaded.session
        assert threaded.session is main
        other = self._session_in_thread(threaded)

        assert other is not main
        assert created == [main, other]
        assert other.headers["Authorization"] == "Bearer sk-test"
        assert other.headers["Content-Type"] == "application/json"

    def test_supplied_session_is_shared(self, remote, session):
        """Test that a supplied session is used from every thread."""
        assert remote.session is session
        assert self._session_in_thread(remote) is session

    def test_close_closes_every_session(self, threaded, created):
        """Test that close reaches sessions made in other threads."""
        main = threaded.session
        self._session_in_thread(threaded)
        threaded.close()

        for s in created:
            s.close.assert_called_once()
        assert threaded.session is not main

    @pytest.mark.asyncio
    async def test_concurrent_embeds(self, threaded, created):
        """Test embedding from several worker threads at once."""
        results = await asyncio.gather(*(threaded.embed(f"text {i}") for i in range(8)))

        assert [r.tolist() for r in results] == [[1.0, 0.0, 0.0, 0.0]] * 8
        assert sum(s.post.call_count for s in created) == 8


@pytest.mark.integration
class TestOpenAIEmbedderLive:
    """Live tests against the configured API."""

    @pytest.mark.asyncio
    async def test_embed(self):
        """Test embedding a short text."""
        with OpenAIEmbedder() as embedder:
            emb = await embedder.embed("The cat sat on the mat.")
        assert len(emb) == embedder.dimension
