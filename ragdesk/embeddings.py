"""OpenAI embeddings service."""

import time
from collections.abc import Callable, Sequence

from openai import OpenAI, OpenAIError

from .config import config
from .errors import EmbeddingUnavailable

logger = config.get_logger(__name__)


class EmbeddingService:
    """Handles OpenAI embeddings generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the EmbeddingService with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            timeout: Per-request timeout in seconds. If None, uses
                config.EMBEDDING_TIMEOUT_SECONDS.
        """
        api_key = api_key or config.get_openai_api_key()
        default_headers = config.get_api_headers()
        self.timeout = (
            timeout if timeout is not None else config.EMBEDDING_TIMEOUT_SECONDS
        )
        self.client = OpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=self.timeout,
            max_retries=config.OPENAI_MAX_RETRIES,
        )
        self.model = model or config.EMBEDDING_MODEL

    def get_embedding(self, text: str) -> tuple[float, ...]:
        """Get embedding for a single text.

        Args:
            text: The input text to generate an embedding for.

        Returns:
            The embedding vector as a tuple of floats.

        Raises:
            EmbeddingUnavailable: If the API call fails, times out, or returns
                no vector.
        """
        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=text,
            )
            values = response.data[0].embedding
        except (OpenAIError, IndexError, AttributeError, TypeError) as exc:
            logger.exception("Error generating embedding")
            msg = f"Embedding service unavailable: {exc}"
            raise EmbeddingUnavailable(msg) from exc

        if not values:
            msg = "Embedding service returned an empty vector"
            raise EmbeddingUnavailable(msg)
        return tuple(float(value) for value in values)

    def get_embeddings_serial(
        self,
        texts: Sequence[str],
        delay_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> list[tuple[float, ...]]:
        """Embed texts one request at a time with a fixed pause between calls.

        Serial calls keep ingestion under provider rate limits. The first
        failure stops the run.

        Args:
            texts: Input texts in order.
            delay_seconds: Pause after each call. If None, uses
                config.INGEST_DELAY_SECONDS.
            sleep: Sleep function, replaceable in tests.

        Returns:
            Embedding vectors aligned with ``texts``.
        """
        delay = delay_seconds if delay_seconds is not None else config.INGEST_DELAY_SECONDS
        embeddings = []

        for i, text in enumerate(texts):
            logger.debug("Generating embedding %d/%d", i + 1, len(texts))
            embeddings.append(self.get_embedding(text))
            if delay > 0:
                sleep(delay)

        return embeddings
