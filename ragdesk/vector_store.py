"""Immutable in-memory vector store snapshot and its JSON artifact."""

from __future__ import annotations

import json
import math
import os
import tempfile
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from .config import config
from .errors import StoreLoadError
from .models import Chunk

logger = config.get_logger(__name__)

REQUIRED_FIELDS = ("id", "docId", "title", "content", "chunkIndex", "embedding")


def _chunk_from_record(record: Any, position: int) -> Chunk:
    if not isinstance(record, dict):
        msg = f"Record {position} is not an object"
        raise StoreLoadError(msg)

    missing = [name for name in REQUIRED_FIELDS if name not in record]
    if missing:
        msg = f"Record {position} is missing fields: {', '.join(missing)}"
        raise StoreLoadError(msg)

    raw_embedding = record["embedding"]
    if not isinstance(raw_embedding, list):
        msg = f"Record {position} embedding is not a list"
        raise StoreLoadError(msg)
    try:
        embedding = tuple(float(value) for value in raw_embedding)
    except (TypeError, ValueError) as exc:
        msg = f"Record {position} embedding contains non-numeric values"
        raise StoreLoadError(msg) from exc
    if not all(math.isfinite(value) for value in embedding):
        msg = f"Record {position} embedding contains non-finite values"
        raise StoreLoadError(msg)

    declared = record.get("embeddingDimensions")
    if declared is not None and declared != len(embedding):
        msg = (
            f"Record {position} declares {declared} dimensions "
            f"but has {len(embedding)}"
        )
        raise StoreLoadError(msg)

    try:
        chunk_index = int(record["chunkIndex"])
    except (TypeError, ValueError) as exc:
        msg = f"Record {position} chunkIndex is not an integer"
        raise StoreLoadError(msg) from exc

    return Chunk(
        id=str(record["id"]),
        doc_id=str(record["docId"]),
        title=str(record["title"]),
        content=str(record["content"]),
        chunk_index=chunk_index,
        embedding=embedding,
    )


def _chunk_to_record(chunk: Chunk) -> dict[str, Any]:
    return {
        "id": chunk.id,
        "docId": chunk.doc_id,
        "title": chunk.title,
        "content": chunk.content,
        "chunkIndex": chunk.chunk_index,
        "embedding": list(chunk.embedding),
        "embeddingDimensions": len(chunk.embedding),
    }


class VectorStore:
    """Read-only snapshot of embedded chunks.

    A snapshot is validated once when it is built and never mutated
    afterwards: chunks are frozen dataclasses held in a tuple and the
    embedding matrix is flagged read-only. Every chunk embedding has the
    same dimension.
    """

    def __init__(self, chunks: Sequence[Chunk]) -> None:
        """Build a snapshot from embedded chunks.

        Raises:
            StoreLoadError: If there are no chunks, an embedding is empty, or
                dimensions disagree.
        """
        chunks = tuple(chunks)
        if not chunks:
            msg = "Vector store is empty"
            raise StoreLoadError(msg)

        dimension = chunks[0].dimension
        if dimension == 0:
            msg = f"Chunk {chunks[0].id} has an empty embedding"
            raise StoreLoadError(msg)
        for chunk in chunks:
            if chunk.dimension != dimension:
                msg = (
                    f"Chunk {chunk.id} has {chunk.dimension} dimensions, "
                    f"expected {dimension}"
                )
                raise StoreLoadError(msg)

        matrix = np.array([chunk.embedding for chunk in chunks], dtype=np.float64)
        matrix.setflags(write=False)
        norms = np.linalg.norm(matrix, axis=1)
        norms.setflags(write=False)

        self._chunks = chunks
        self._dimension = dimension
        self._matrix = matrix
        self._norms = norms

    @classmethod
    def from_records(cls, records: Iterable[Any]) -> VectorStore:
        """Build a snapshot from artifact records.

        Returns:
            The validated snapshot.
        """
        return cls(
            [_chunk_from_record(record, i) for i, record in enumerate(records)]
        )

    @classmethod
    def load(cls, path: Path) -> VectorStore:
        """Load a snapshot from a JSON artifact.

        Returns:
            The validated snapshot.

        Raises:
            StoreLoadError: If the file is missing, unreadable, not a JSON
                list, empty, or internally inconsistent.
        """
        path = Path(path)
        try:
            with path.open(encoding="utf-8") as file:
                payload = json.load(file)
        except FileNotFoundError as exc:
            msg = f"Vector store not found at {path}. Run the ingest command first."
            raise StoreLoadError(msg) from exc
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            msg = f"Vector store at {path} is unreadable: {exc}"
            raise StoreLoadError(msg) from exc

        if not isinstance(payload, list):
            msg = f"Vector store at {path} must be a JSON list of chunk records"
            raise StoreLoadError(msg)

        store = cls.from_records(payload)
        logger.info(
            "Vector store loaded from %s: %d chunks, %d dimensions",
            path,
            store.size,
            store.dimension,
        )
        return store

    def to_records(self) -> list[dict[str, Any]]:
        return [_chunk_to_record(chunk) for chunk in self._chunks]

    def save(self, path: Path) -> None:
        """Write the artifact, replacing any existing file in one step."""
        path = Path(path)
        path.parent.mkdir(exist_ok=True, parents=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file:
                json.dump(self.to_records(), file, indent=2)
            Path(tmp_name).replace(path)
        except Exception:
            Path(tmp_name).unlink(missing_ok=True)
            logger.exception("Failed to save vector store to %s", path)
            raise

        logger.info("Saved %d chunks to %s", self.size, path)

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return self._chunks

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def size(self) -> int:
        return len(self._chunks)

    @property
    def matrix(self) -> np.ndarray:
        """Read-only ``(size, dimension)`` embedding matrix in store order."""
        return self._matrix

    @property
    def norms(self) -> np.ndarray:
        """Read-only L2 norms of each embedding row."""
        return self._norms

    @property
    def document_ids(self) -> list[str]:
        """Distinct document ids in first-seen order."""
        return list(dict.fromkeys(chunk.doc_id for chunk in self._chunks))

    def __len__(self) -> int:
        return len(self._chunks)


class VectorStoreHolder:
    """Holds the snapshot currently being served.

    Readers take ``current`` once per request and keep using that reference;
    replacing the snapshot only rebinds the reference.
    """

    def __init__(self, store: VectorStore) -> None:
        self._store = store
        self._swap_lock = threading.Lock()

    @property
    def current(self) -> VectorStore:
        return self._store

    def swap(self, store: VectorStore) -> VectorStore:
        """Replace the served snapshot.

        Returns:
            The snapshot that was replaced.
        """
        with self._swap_lock:
            previous = self._store
            self._store = store
        logger.info(
            "Swapped vector store snapshot: %d -> %d chunks",
            previous.size,
            store.size,
        )
        return previous

    def reload(self, path: Path) -> VectorStore:
        """Load a fresh snapshot from disk and swap it in.

        The old snapshot keeps serving if loading fails.

        Returns:
            The newly served snapshot.
        """
        store = VectorStore.load(path)
        self.swap(store)
        return store
