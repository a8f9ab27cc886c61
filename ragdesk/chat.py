"""Chat request handling: validate, retrieve, generate, persist."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .config import config
from .conversation import SQLiteConversationStore
from .embeddings import EmbeddingService
from .errors import RequestValidationError
from .generation import ResponseGenerator
from .models import ChatResponse, Role
from .retrieval import Retriever
from .vector_store import VectorStore, VectorStoreHolder

logger = config.get_logger(__name__)

SESSION_DETAIL_LIMIT = 50


def validate_chat_request(session_id: object, message: object) -> tuple[str, str]:
    """Check chat input fields.

    Returns:
        The session id and the message, unchanged.

    Raises:
        RequestValidationError: If either field is missing, not a string, or
            blank.
    """
    if not isinstance(message, str) or not message.strip():
        msg = "Invalid message"
        raise RequestValidationError(msg)
    if not isinstance(session_id, str) or not session_id:
        msg = "Session ID required"
        raise RequestValidationError(msg)
    return session_id, message


class ChatService:
    """Answers chat messages against the served vector store snapshot."""

    def __init__(
        self,
        store: VectorStore | VectorStoreHolder,
        embedding_service: EmbeddingService,
        generator: ResponseGenerator,
        conversations: SQLiteConversationStore,
        retriever: Retriever | None = None,
        history_limit: int | None = None,
    ) -> None:
        """Wire the service from its collaborators.

        Args:
            store: Snapshot to serve, or a holder whose snapshot may be swapped.
            embedding_service: Embeds queries; must use the ingestion model.
            generator: Produces the reply.
            conversations: Session and turn log.
            retriever: Ranking settings. If None, uses config defaults.
            history_limit: Turns read from the log per request. If None, uses
                config.HISTORY_FETCH_LIMIT.
        """
        self.store_holder = (
            store if isinstance(store, VectorStoreHolder) else VectorStoreHolder(store)
        )
        self.embedding_service = embedding_service
        self.generator = generator
        self.conversations = conversations
        self.retriever = retriever or Retriever()
        self.history_limit = (
            history_limit if history_limit is not None else config.HISTORY_FETCH_LIMIT
        )

    @classmethod
    def from_config(
        cls,
        store_path: Path | None = None,
        db_path: Path | None = None,
        openai_api_key: str | None = None,
    ) -> ChatService:
        """Build a service from configuration, loading the store first.

        Returns:
            A ready service.

        Raises:
            StoreLoadError: If the vector store cannot be loaded; the service
                must not start serving in that case.
        """
        store = VectorStore.load(store_path or config.VECTOR_STORE_PATH)
        return cls(
            store=store,
            embedding_service=EmbeddingService(api_key=openai_api_key),
            generator=ResponseGenerator(openai_api_key=openai_api_key),
            conversations=SQLiteConversationStore(
                db_path or config.CONVERSATION_DB_PATH
            ),
        )

    @property
    def store(self) -> VectorStore:
        return self.store_holder.current

    def reload_store(self, path: Path | None = None) -> VectorStore:
        """Swap in a freshly loaded snapshot.

        Returns:
            The new snapshot.
        """
        return self.store_holder.reload(path or config.VECTOR_STORE_PATH)

    def chat(self, session_id: object, message: object) -> ChatResponse:
        """Answer one chat message.

        The user's message is recorded before any remote call so the session
        keeps it even if embedding fails. Generation failures never surface:
        the reply falls back to retrieved context.

        Returns:
            The reply and retrieval metadata.

        Raises:
            RequestValidationError: If the input is invalid.
            EmbeddingUnavailable: If the query cannot be embedded.
            DimensionMismatch: If the query and store dimensions differ.
        """
        session_id, message = validate_chat_request(session_id, message)
        store = self.store

        history = self.conversations.read_history(session_id, self.history_limit)
        self.conversations.record_turn(session_id, Role.USER, message)

        query_vector = self.embedding_service.get_embedding(message)
        retrieval = self.retriever.retrieve(query_vector, store)

        logger.info('Query: "%s"', message)
        logger.info(
            "Retrieved %d chunks (max similarity: %.3f)",
            len(retrieval.relevant_chunks),
            retrieval.max_similarity,
        )

        result = self.generator.generate(message, retrieval, history)

        self.conversations.record_turn(
            session_id,
            Role.ASSISTANT,
            result.reply,
            {
                "tokens_used": result.tokens_used,
                "chunks_retrieved": len(retrieval.relevant_chunks),
                "max_similarity": retrieval.max_similarity,
            },
        )

        return ChatResponse(
            reply=result.reply,
            tokens_used=result.tokens_used,
            retrieved_chunks=len(retrieval.relevant_chunks),
            max_similarity=retrieval.max_similarity,
            chunk_details=[
                (item.chunk.title, item.score) for item in retrieval.relevant_chunks
            ],
            status=result.status,
        )

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "vectorStoreSize": self.store.size,
            "activeSessions": len(self.conversations.active_sessions()),
            "embeddingModel": self.embedding_service.model,
            "chatModel": self.generator.model,
            "database": "SQLite",
        }

    def stats(self) -> dict[str, Any]:
        store = self.store
        return {
            "totalChunks": store.size,
            "totalDocuments": len(store.document_ids),
            "embeddingDimensions": store.dimension,
            "similarityThreshold": self.retriever.threshold,
            "topK": self.retriever.top_k,
        }

    def sessions(self) -> list[dict[str, Any]]:
        return [
            {
                "sessionId": session.session_id,
                "createdAt": session.created_at,
                "lastActivity": session.last_activity,
                "messageCount": session.message_count,
            }
            for session in self.conversations.active_sessions()
        ]

    def session_detail(self, session_id: str) -> dict[str, Any]:
        history = self.conversations.read_history(session_id, SESSION_DETAIL_LIMIT)
        return {
            "sessionId": session_id,
            "history": [
                {
                    "role": turn.role.value,
                    "content": turn.content,
                    "timestamp": turn.timestamp,
                    "tokensUsed": turn.tokens_used,
                    "chunksRetrieved": turn.chunks_retrieved,
                    "maxSimilarity": turn.max_similarity,
                }
                for turn in history
            ],
            "stats": self.conversations.session_stats(session_id),
        }
