"""Data models for the RAG application."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


@dataclass(frozen=True)
class Document:
    """A source document before chunking."""

    id: str
    title: str
    content: str


@dataclass(frozen=True)
class Chunk:
    """An immutable, embedded slice of a document."""

    id: str
    doc_id: str
    title: str
    content: str
    chunk_index: int
    embedding: tuple[float, ...] = ()

    @staticmethod
    def make_id(doc_id: str, chunk_index: int) -> str:
        """Derive the chunk id from its document id and position.

        Returns:
            Identifier of the form ``<doc_id>_chunk_<index>``.
        """
        return f"{doc_id}_chunk_{chunk_index}"

    @property
    def dimension(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk paired with its similarity score for a single retrieval call."""

    chunk: Chunk
    score: float


@dataclass(frozen=True)
class RetrievalResult:
    """Outcome of ranking a store against a query vector."""

    relevant_chunks: tuple[ScoredChunk, ...]
    max_similarity: float
    threshold: float
    candidates: tuple[ScoredChunk, ...] = ()


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ConversationTurn:
    """Represents a single persisted turn in a session."""

    session_id: str
    role: Role
    content: str
    timestamp: str = ""
    tokens_used: int = 0
    chunks_retrieved: int = 0
    max_similarity: float = 0.0


@dataclass
class Session:
    """Session bookkeeping row."""

    session_id: str
    created_at: str
    last_activity: str
    message_count: int = 0


class GenerationStatus(StrEnum):
    GENERATED = "generated"
    FALLBACK = "fallback"
    NO_CONTEXT = "no_context"


@dataclass(frozen=True)
class GenerationResult:
    """Result of a response generation attempt."""

    status: GenerationStatus
    reply: str
    tokens_used: int = 0
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.status is GenerationStatus.FALLBACK


@dataclass
class ChatResponse:
    """Reply returned to the caller of the chat operation."""

    reply: str
    tokens_used: int
    retrieved_chunks: int
    max_similarity: float
    chunk_details: list[tuple[str, float]] = field(default_factory=list)
    status: GenerationStatus = GenerationStatus.GENERATED

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape used by the chat surface.

        Returns:
            Mapping with camelCase keys and scores formatted to 3 decimals.
        """
        return {
            "reply": self.reply,
            "tokensUsed": self.tokens_used,
            "retrievedChunks": self.retrieved_chunks,
            "maxSimilarity": f"{self.max_similarity:.3f}",
            "chunkDetails": [
                {"title": title, "score": f"{score:.3f}"}
                for title, score in self.chunk_details
            ],
        }
