"""RAGDesk - grounded support assistant over a document vector store."""

from .chat import ChatService
from .conversation import SQLiteConversationStore, build_history_messages
from .document_processing import DocumentLoader, TextChunker, chunk_by_words
from .embeddings import EmbeddingService
from .errors import (
    ConfigError,
    DimensionMismatch,
    EmbeddingUnavailable,
    GenerationFailure,
    RAGDeskError,
    RequestValidationError,
    StoreLoadError,
)
from .generation import ResponseGenerator
from .models import (
    ChatResponse,
    Chunk,
    ConversationTurn,
    Document,
    GenerationResult,
    GenerationStatus,
    RetrievalResult,
    Role,
    ScoredChunk,
)
from .pipeline import IngestionPipeline
from .retrieval import Retriever, cosine_similarity, retrieve
from .vector_store import VectorStore, VectorStoreHolder

__all__ = [
    "ChatResponse",
    "ChatService",
    "Chunk",
    "ConfigError",
    "ConversationTurn",
    "DimensionMismatch",
    "Document",
    "DocumentLoader",
    "EmbeddingService",
    "EmbeddingUnavailable",
    "GenerationFailure",
    "GenerationResult",
    "GenerationStatus",
    "IngestionPipeline",
    "RAGDeskError",
    "RequestValidationError",
    "ResponseGenerator",
    "RetrievalResult",
    "Retriever",
    "Role",
    "SQLiteConversationStore",
    "ScoredChunk",
    "StoreLoadError",
    "TextChunker",
    "VectorStore",
    "VectorStoreHolder",
    "build_history_messages",
    "chunk_by_words",
    "cosine_similarity",
    "retrieve",
]
