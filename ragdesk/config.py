"""Configuration management for RAGDesk."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Model Configuration
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4.1-nano-2025-04-14")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "500"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.2"))

    # Outbound call timeouts (seconds)
    EMBEDDING_TIMEOUT_SECONDS: float = float(
        os.getenv("EMBEDDING_TIMEOUT_SECONDS", "30")
    )
    GENERATION_TIMEOUT_SECONDS: float = float(
        os.getenv("GENERATION_TIMEOUT_SECONDS", "60")
    )
    # Retries on top of the first attempt; each attempt gets the full timeout
    OPENAI_MAX_RETRIES: int = int(os.getenv("OPENAI_MAX_RETRIES", "0"))

    # Chunking Configuration
    CHUNK_MAX_WORDS: int = int(os.getenv("CHUNK_MAX_WORDS", "300"))
    CHUNK_OVERLAP_WORDS: int = int(os.getenv("CHUNK_OVERLAP_WORDS", "50"))

    # Retrieval Configuration
    SIMILARITY_THRESHOLD: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.7"))
    TOP_K: int = int(os.getenv("TOP_K", "3"))

    # Conversation Configuration
    HISTORY_TURNS: int = int(os.getenv("HISTORY_TURNS", "5"))
    HISTORY_FETCH_LIMIT: int = int(os.getenv("HISTORY_FETCH_LIMIT", "10"))

    # Ingestion Configuration
    INGEST_DELAY_SECONDS: float = float(os.getenv("INGEST_DELAY_SECONDS", "0.1"))

    # Storage Paths
    DOCS_PATH: Path = Path(os.getenv("DOCS_PATH", "data/docs.json"))
    VECTOR_STORE_PATH: Path = Path(
        os.getenv("VECTOR_STORE_PATH", "data/vector_store.json")
    )
    CONVERSATION_DB_PATH: Path = Path(
        os.getenv("CONVERSATION_DB_PATH", "data/conversations.db")
    )

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "RAGDesk/1.0")
    API_TEST_HEADER_NAME: str | None = os.getenv("API_TEST_HEADER_NAME")
    API_TEST_HEADER_VALUE: str | None = os.getenv("API_TEST_HEADER_VALUE")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ValueError: If OPENAI_API_KEY is not set.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ValueError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment.

        Returns:
            True if environment is production.
        """
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Configure root logging once at process startup.

        Console output, a single readable format, and a level taken from
        LOG_LEVEL. The openai SDK logger gets its own level so request traces
        stay quiet unless asked for.
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        logging.getLogger("openai").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound API calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        if cls.API_TEST_HEADER_NAME and cls.API_TEST_HEADER_VALUE:
            headers[cls.API_TEST_HEADER_NAME] = cls.API_TEST_HEADER_VALUE

        return headers


config = Config()
