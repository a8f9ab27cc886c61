"""Web interface using Streamlit."""

import uuid

import streamlit as st

from ragdesk import ChatService
from ragdesk.config import config
from ragdesk.errors import (
    DimensionMismatch,
    EmbeddingUnavailable,
    RequestValidationError,
    StoreLoadError,
)

MAX_CONTEXT_PREVIEW_LENGTH = 200

config.setup_logging()
logger = config.get_logger(__name__)


@st.cache_resource
def load_chat_service() -> ChatService:
    """Load the vector store once per server process and wire the service.

    Returns:
        ChatService: Shared service for all browser sessions.
    """
    return ChatService.from_config()


class SessionState:
    """Centralized session state management."""

    @staticmethod
    def initialize() -> None:
        """Initialize all session state variables."""
        defaults = {
            "session_id": str(uuid.uuid4()),
            "current_result": None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @staticmethod
    def new_session() -> None:
        """Start a fresh conversation with a new session id."""
        st.session_state.session_id = str(uuid.uuid4())
        st.session_state.current_result = None


def render_sidebar(service: ChatService) -> None:
    """Render the sidebar with store statistics and session controls."""
    with st.sidebar:
        st.header("Knowledge Base")
        stats = service.stats()
        st.write(f"**Chunks:** {stats['totalChunks']}")
        st.write(f"**Documents:** {stats['totalDocuments']}")
        st.write(f"**Embedding dimensions:** {stats['embeddingDimensions']}")
        st.write(f"**Similarity threshold:** {stats['similarityThreshold']}")
        st.write(f"**Top K:** {stats['topK']}")

        st.divider()
        st.subheader("Session")
        st.caption(st.session_state.session_id)
        if st.button("New Conversation", use_container_width=True):
            SessionState.new_session()
            st.rerun()

        st.divider()
        health = service.health()
        st.write(f"**Active sessions:** {health['activeSessions']}")
        st.write(f"**Embedding model:** {health['embeddingModel']}")
        st.write(f"**Chat model:** {health['chatModel']}")


def render_chat_interface(service: ChatService) -> None:
    """Render the question box and the latest answer."""
    st.header("Ask a Question")
    question = st.text_input(
        "Your Question:",
        placeholder="Ask about account management, payments, security...",
    )

    if st.button("Ask Question", use_container_width=True) and question.strip():
        with st.spinner("Processing..."):
            try:
                st.session_state.current_result = service.chat(
                    st.session_state.session_id, question
                ).to_dict()
            except RequestValidationError as e:
                st.error(str(e))
                return
            except (EmbeddingUnavailable, DimensionMismatch) as e:
                logger.exception("Question processing failed")
                st.error(f"Failed to process question: {e}")
                return

    result = st.session_state.current_result
    if not result:
        return

    st.subheader("Answer:")
    st.write(result["reply"])

    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown(f"**Max similarity:** {result['maxSimilarity']}")
    with col2:
        st.markdown(f"**Chunks used:** {result['retrievedChunks']}")
    with col3:
        st.markdown(f"**Tokens:** {result['tokensUsed']}")

    if result["chunkDetails"] and st.checkbox("Show Retrieved Chunks (Debug)"):
        for detail in result["chunkDetails"]:
            st.write(f"- {detail['title']} (score: {detail['score']})")


def render_conversation_history(service: ChatService) -> None:
    """Render this session's persisted conversation."""
    detail = service.session_detail(st.session_state.session_id)
    if not detail["history"]:
        return

    st.markdown("---")
    st.subheader("Conversation History")

    for turn in detail["history"]:
        speaker = "You" if turn["role"] == "user" else "Assistant"
        content = turn["content"]
        if len(content) > MAX_CONTEXT_PREVIEW_LENGTH:
            preview = content[:MAX_CONTEXT_PREVIEW_LENGTH] + "..."
        else:
            preview = content
        with st.expander(f"{speaker}: {preview[:50]}", expanded=False):
            st.write(content)
            if turn["role"] == "assistant":
                st.caption(
                    f"Chunks: {turn['chunksRetrieved']} | "
                    f"Max similarity: {turn['maxSimilarity']:.3f} | "
                    f"Tokens: {turn['tokensUsed']}"
                )


def main() -> None:
    """Main entry point for the Streamlit web application.

    Loads the shared chat service, stops with an error when the vector store
    is unusable, and renders the sidebar, chat box, and history.
    """
    st.set_page_config(page_title="RAGDesk", layout="wide")

    SessionState.initialize()

    st.title("RAGDesk - Support Assistant")
    st.markdown("---")

    try:
        service = load_chat_service()
    except StoreLoadError as e:
        logger.exception("Vector store unavailable")
        st.error(f"Vector store unavailable: {e}")
        st.info("Run `python main.py ingest` to build the vector store.")
        st.stop()
        return

    render_sidebar(service)
    render_chat_interface(service)
    render_conversation_history(service)


if __name__ == "__main__":
    main()
