"""Test configuration and fixtures for RAGDesk tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- EmbeddingService fixtures
- Vector store fixtures
- Conversation store fixtures
- ResponseGenerator and ChatService fixtures
"""

import hashlib
from contextlib import contextmanager
from unittest.mock import Mock, patch

import httpx
import numpy as np
import pytest
from openai import APIConnectionError, APITimeoutError

from ragdesk import (
    ChatService,
    Chunk,
    EmbeddingService,
    ResponseGenerator,
    Retriever,
    SQLiteConversationStore,
    VectorStore,
)


class TestConstants:
    """Centralized test constants shared across the test suite."""

    TEST_API_KEY = "test-key"
    TEST_EMBEDDING_MODEL = "text-embedding-3-small"
    TEST_CHAT_MODEL = "gpt-test"
    DEFAULT_EMBEDDING_DIMENSION = 64

    SIMILARITY_THRESHOLD = 0.7
    TOP_K = 3


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic unit vectors from a hash of the text, so the same
    text always maps to the same embedding.
    """

    model = TestConstants.TEST_EMBEDDING_MODEL

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    def get_embedding(self, text: str) -> tuple[float, ...]:
        """Generate deterministic mock embedding based on text hash."""
        self.calls.append(text)
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        embedding /= np.linalg.norm(embedding)
        return tuple(float(value) for value in embedding)

    def get_embeddings_serial(
        self, texts, delay_seconds=None, sleep=None
    ) -> list[tuple[float, ...]]:
        return [self.get_embedding(text) for text in texts]


class FixedEmbeddingService:
    """Embedder that returns a preset vector for every query."""

    model = TestConstants.TEST_EMBEDDING_MODEL

    def __init__(self, vector) -> None:
        self.vector = tuple(float(value) for value in vector)

    def get_embedding(self, text: str) -> tuple[float, ...]:  # noqa: ARG002
        return self.vector


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response."""
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None, total_tokens: int = 42) -> Mock:
    """Create a mock OpenAI chat completion response."""
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    mock_response.usage = Mock(total_tokens=total_tokens)
    return mock_response


def make_timeout_error() -> APITimeoutError:
    return APITimeoutError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )


def make_connection_error() -> APIConnectionError:
    return APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    )


def make_chunk(  # noqa: PLR0913
    embedding,
    content: str = "content",
    *,
    doc_id: str = "doc",
    index: int = 0,
    title: str | None = None,
) -> Chunk:
    """Build an embedded chunk with a derived id."""
    return Chunk(
        id=Chunk.make_id(doc_id, index),
        doc_id=doc_id,
        title=title or doc_id.title(),
        content=content,
        chunk_index=index,
        embedding=tuple(float(value) for value in embedding),
    )


@pytest.fixture
def chunk_factory():
    return make_chunk


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch the OpenAI embeddings.create method."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def embedding_service_factory():
    """Factory for creating EmbeddingService instances with test credentials."""

    def _create_service(api_key=None, model=None, timeout=None):  # noqa: ANN202
        return EmbeddingService(
            api_key=api_key or TestConstants.TEST_API_KEY,
            model=model,
            timeout=timeout,
        )

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    """Default EmbeddingService with test API key for most tests."""
    return embedding_service_factory()


@pytest.fixture(scope="session")
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def two_dim_store(chunk_factory) -> VectorStore:
    """Small 2-D store with well separated directions."""
    return VectorStore([
        chunk_factory([1.0, 0.0], "Reset your password from Security.", doc_id="security"),
        chunk_factory([0.0, 1.0], "Invoices are issued monthly.", doc_id="payments"),
        chunk_factory([0.8, 0.6], "Enable two-factor authentication.", doc_id="security", index=1),
        chunk_factory([-1.0, 0.0], "Support is available by email.", doc_id="support"),
    ])


@pytest.fixture
def conversation_store(tmp_path) -> SQLiteConversationStore:
    """Create temporary SQLite conversation store for testing."""
    return SQLiteConversationStore(tmp_path / "conversations.db")


@pytest.fixture
def response_generator() -> ResponseGenerator:
    """ResponseGenerator with test credentials and fixed settings."""
    return ResponseGenerator(
        openai_api_key=TestConstants.TEST_API_KEY,
        model=TestConstants.TEST_CHAT_MODEL,
        history_turns=5,
        max_tokens=500,
        temperature=0.2,
    )


@pytest.fixture
def generator_chat_mock_factory():
    """Factory mock fixture for ResponseGenerator's client.chat.completions.create."""

    @contextmanager
    def _mock_generator_chat(  # noqa: ANN202
        generator,
        content: str | None = "Test response",
        side_effect=None,
        total_tokens: int = 42,
    ):
        with patch.object(generator.client.chat.completions, "create") as mock_create:
            if side_effect is not None:
                mock_create.side_effect = side_effect
                mock_create.return_value = None
            else:
                mock_create.side_effect = None
                mock_create.return_value = create_mock_chat_response(
                    content, total_tokens
                )
            yield mock_create

    return _mock_generator_chat


@pytest.fixture
def chat_service_factory(response_generator, conversation_store):
    """Factory for ChatService instances over a given store and query vector."""

    def _create_service(  # noqa: ANN202
        store,
        query_vector,
        *,
        top_k=TestConstants.TOP_K,
        threshold=TestConstants.SIMILARITY_THRESHOLD,
    ):
        return ChatService(
            store=store,
            embedding_service=FixedEmbeddingService(query_vector),
            generator=response_generator,
            conversations=conversation_store,
            retriever=Retriever(threshold=threshold, top_k=top_k),
            history_limit=10,
        )

    return _create_service
