"""Grounded response generation with a context-only fallback."""

from collections.abc import Sequence

from openai import OpenAI, OpenAIError

from .config import config
from .conversation import build_history_messages
from .errors import GenerationFailure
from .models import (
    ConversationTurn,
    GenerationResult,
    GenerationStatus,
    RetrievalResult,
    ScoredChunk,
)

logger = config.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful support assistant. Answer the question using ONLY the "
    "context provided below.\n\n"
    'If the context doesn\'t contain enough information, say "I don\'t have '
    "enough information to answer that question based on the available "
    'documentation."\n\n'
    "Be concise, accurate, and helpful."
)

NO_CONTEXT_REPLY = (
    "I don't have enough information to answer that question based on the "
    "available documentation. Please ask about account management, payments, "
    "security, or support topics."
)

FALLBACK_TEMPLATE = (
    "Based on the documentation:\n\n{content}\n\n"
    "(Note: AI response generation unavailable - showing retrieved context)"
)


def build_context_block(chunks: Sequence[ScoredChunk]) -> str:
    """Number retrieved chunk contents for the prompt.

    Returns:
        ``"1. <content>"`` entries separated by blank lines.
    """
    if not chunks:
        return "No relevant context found."
    return "\n\n".join(
        f"{i + 1}. {item.chunk.content}" for i, item in enumerate(chunks)
    )


def build_user_prompt(question: str, chunks: Sequence[ScoredChunk]) -> str:
    return (
        f"CONTEXT:\n{build_context_block(chunks)}\n\n"
        f"USER QUESTION: {question}\n\n"
        "ANSWER:"
    )


def fallback_reply(chunks: Sequence[ScoredChunk]) -> str:
    return FALLBACK_TEMPLATE.format(content=chunks[0].chunk.content)


class ResponseGenerator:
    """Chooses between refusal, generated answer, and context-only fallback."""

    def __init__(  # noqa: PLR0913
        self,
        openai_api_key: str | None = None,
        *,
        model: str | None = None,
        history_turns: int | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize ResponseGenerator.

        Args:
            openai_api_key: OpenAI API key.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            history_turns: Prior turns passed to the model. If None, uses
                config.HISTORY_TURNS.
            max_tokens: Completion token cap. If None, uses config.CHAT_MAX_TOKENS.
            temperature: Sampling temperature. If None, uses
                config.CHAT_TEMPERATURE.
            timeout: Per-request timeout in seconds. If None, uses
                config.GENERATION_TIMEOUT_SECONDS.
        """
        default_headers = config.get_api_headers()
        self.timeout = (
            timeout if timeout is not None else config.GENERATION_TIMEOUT_SECONDS
        )
        self.client = OpenAI(
            api_key=openai_api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=self.timeout,
            max_retries=config.OPENAI_MAX_RETRIES,
        )
        self.model = model or config.CHAT_MODEL
        self.history_turns = (
            history_turns if history_turns is not None else config.HISTORY_TURNS
        )
        self.max_tokens = max_tokens if max_tokens is not None else config.CHAT_MAX_TOKENS
        self.temperature = (
            temperature if temperature is not None else config.CHAT_TEMPERATURE
        )

    def has_context(self, retrieval: RetrievalResult) -> bool:
        return bool(retrieval.relevant_chunks) and (
            retrieval.max_similarity >= retrieval.threshold
        )

    def build_messages(
        self,
        question: str,
        chunks: Sequence[ScoredChunk],
        history: Sequence[ConversationTurn],
    ) -> list[dict[str, str]]:
        """Assemble the chat-completion payload.

        Returns:
            System instruction, windowed history, then the grounded question.
        """
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            *build_history_messages(history, self.history_turns),
            {"role": "user", "content": build_user_prompt(question, chunks)},
        ]

    def _complete(self, messages: list[dict[str, str]]) -> tuple[str, int]:
        """Issue the generation call.

        Returns:
            Generated text and total tokens reported by the service.

        Raises:
            GenerationFailure: On any SDK, network, or timeout error, or a
                response without text.
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            answer = response.choices[0].message.content
        except OpenAIError as exc:
            msg = f"Generation call failed: {exc}"
            raise GenerationFailure(msg) from exc
        except Exception as exc:
            msg = f"Malformed generation response: {exc!r}"
            raise GenerationFailure(msg) from exc

        if not answer or not answer.strip():
            msg = "Generation service returned an empty response"
            raise GenerationFailure(msg)

        usage = getattr(response, "usage", None)
        total_tokens = getattr(usage, "total_tokens", 0) if usage else 0
        return answer.strip(), int(total_tokens or 0)

    def generate(
        self,
        question: str,
        retrieval: RetrievalResult,
        history: Sequence[ConversationTurn] = (),
    ) -> GenerationResult:
        """Produce a reply for the question.

        Never raises for generation problems: a failed call yields the
        fallback result built from the best relevant chunk.

        Returns:
            The reply with its status and token usage.
        """
        if not self.has_context(retrieval):
            logger.info(
                "No context above threshold %.3f (max similarity: %.3f)",
                retrieval.threshold,
                retrieval.max_similarity,
            )
            return GenerationResult(
                status=GenerationStatus.NO_CONTEXT, reply=NO_CONTEXT_REPLY
            )

        chunks = retrieval.relevant_chunks
        messages = self.build_messages(question, chunks, history)

        try:
            answer, tokens_used = self._complete(messages)
        except GenerationFailure as exc:
            logger.warning("LLM generation failed, using fallback response: %s", exc)
            return GenerationResult(
                status=GenerationStatus.FALLBACK,
                reply=fallback_reply(chunks),
                error=str(exc),
            )

        logger.info("Generated response using %d tokens", tokens_used)
        return GenerationResult(
            status=GenerationStatus.GENERATED,
            reply=answer,
            tokens_used=tokens_used,
        )
