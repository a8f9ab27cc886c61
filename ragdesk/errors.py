"""Exception hierarchy for RAGDesk."""


class RAGDeskError(Exception):
    """Base class for all RAGDesk errors."""


class ConfigError(RAGDeskError, ValueError):
    """Invalid chunking or retrieval configuration."""


class RequestValidationError(RAGDeskError, ValueError):
    """A chat request failed input validation."""


class EmbeddingUnavailable(RAGDeskError):
    """The embedding service could not produce a vector."""


class GenerationFailure(RAGDeskError):
    """The generation service call failed or returned an unusable response."""


class DimensionMismatch(RAGDeskError):
    """A query vector does not match the store's embedding dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension {actual} does not match store dimension {expected}"
        )


class StoreLoadError(RAGDeskError):
    """The vector store artifact is missing, corrupt, empty, or inconsistent."""
