"""Cosine-similarity ranking with top-K and threshold gating."""

from collections.abc import Sequence

import numpy as np

from .config import config
from .errors import ConfigError, DimensionMismatch
from .models import RetrievalResult, ScoredChunk
from .vector_store import VectorStore

logger = config.get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors.

    Returns:
        Similarity in [-1, 1], or 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatch: If the vectors differ in length.
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatch(expected=vec_a.size, actual=vec_b.size)

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def score_store(query_vector: Sequence[float], store: VectorStore) -> np.ndarray:
    """Score every chunk in the store against a query vector.

    Returns:
        Similarity per chunk, in store order. Rows or queries with zero
        magnitude score 0.0.

    Raises:
        DimensionMismatch: If the query dimension differs from the store's.
    """
    query = np.asarray(query_vector, dtype=np.float64)
    if query.ndim != 1 or query.shape[0] != store.dimension:
        actual = query.shape[0] if query.ndim == 1 else query.size
        raise DimensionMismatch(expected=store.dimension, actual=actual)

    query_norm = np.linalg.norm(query)
    if query_norm == 0:
        return np.zeros(store.size, dtype=np.float64)

    denominators = store.norms * query_norm
    dots = store.matrix @ query
    safe = np.where(denominators == 0, 1.0, denominators)
    return np.where(denominators == 0, 0.0, dots / safe)


def retrieve(
    query_vector: Sequence[float],
    store: VectorStore,
    threshold: float = 0.7,
    top_k: int = 3,
) -> RetrievalResult:
    """Rank store chunks against a query and gate them.

    The ``top_k`` best chunks are picked regardless of threshold; the best of
    them is reported as ``max_similarity`` even when it falls below the
    threshold. Only those of the picked chunks scoring at least ``threshold``
    are returned as relevant. Equal scores keep store order.

    Returns:
        Relevant chunks (best first), the best candidate score, and the full
        candidate list.

    Raises:
        ConfigError: If top_k is less than 1.
    """
    if top_k < 1:
        msg = f"top_k must be at least 1, got {top_k}"
        raise ConfigError(msg)

    scores = score_store(query_vector, store)
    order = np.argsort(-scores, kind="stable")[:top_k]

    candidates = tuple(
        ScoredChunk(chunk=store.chunks[int(idx)], score=float(scores[idx]))
        for idx in order
    )
    max_similarity = candidates[0].score if candidates else 0.0
    relevant = tuple(item for item in candidates if item.score >= threshold)

    logger.info(
        "Retrieved %d relevant chunks of %d candidates (max similarity: %.3f)",
        len(relevant),
        len(candidates),
        max_similarity,
    )
    return RetrievalResult(
        relevant_chunks=relevant,
        max_similarity=max_similarity,
        threshold=threshold,
        candidates=candidates,
    )


class Retriever:
    """Retrieval bound to a threshold and top-K setting."""

    def __init__(self, threshold: float | None = None, top_k: int | None = None) -> None:
        """Initialize the Retriever.

        Args:
            threshold: Minimum similarity for a chunk to count as relevant.
                If None, uses config.SIMILARITY_THRESHOLD.
            top_k: Number of candidates considered. If None, uses config.TOP_K.

        Raises:
            ConfigError: If top_k is less than 1.
        """
        self.threshold = (
            threshold if threshold is not None else config.SIMILARITY_THRESHOLD
        )
        self.top_k = top_k if top_k is not None else config.TOP_K
        if self.top_k < 1:
            msg = f"top_k must be at least 1, got {self.top_k}"
            raise ConfigError(msg)

    def retrieve(
        self, query_vector: Sequence[float], store: VectorStore
    ) -> RetrievalResult:
        return retrieve(query_vector, store, self.threshold, self.top_k)
