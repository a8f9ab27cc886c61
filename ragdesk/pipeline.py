"""Offline ingestion pipeline: Load -> Chunk -> Embed -> Save."""

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from .config import config
from .document_processing import DocumentLoader, TextChunker, chunk_stats
from .embeddings import EmbeddingService
from .errors import ConfigError
from .models import Chunk, Document
from .vector_store import VectorStore

logger = config.get_logger(__name__)


@dataclass
class IngestionReport:
    """Summary of an ingestion run."""

    documents_processed: int = 0
    skipped_documents: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)
    output_path: Path | None = None
    dimension: int = 0


class IngestionPipeline:
    """Builds a vector store artifact from source documents."""

    def __init__(  # noqa: PLR0913
        self,
        embedding_service: EmbeddingService | None = None,
        *,
        openai_api_key: str | None = None,
        max_words: int | None = None,
        overlap_words: int | None = None,
        delay_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the ingestion pipeline.

        Args:
            embedding_service: Embedder to use. If None, an EmbeddingService is
                created with ``openai_api_key``.
            openai_api_key: OpenAI API key for the default embedder.
            max_words: Words per chunk. If None, uses config.CHUNK_MAX_WORDS.
            overlap_words: Overlap between chunks. If None, uses
                config.CHUNK_OVERLAP_WORDS.
            delay_seconds: Pause between embedding calls. If None, uses
                config.INGEST_DELAY_SECONDS.
            sleep: Sleep function, replaceable in tests.
        """
        self.embedding_service = embedding_service or EmbeddingService(
            api_key=openai_api_key
        )
        self.max_words = max_words if max_words is not None else config.CHUNK_MAX_WORDS
        self.overlap_words = (
            overlap_words if overlap_words is not None else config.CHUNK_OVERLAP_WORDS
        )
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else config.INGEST_DELAY_SECONDS
        )
        self.sleep = sleep

    def process_document(self, document: Document) -> list[Chunk]:
        """Chunk and embed a single document.

        Returns:
            Embedded chunks in document order.

        Raises:
            ConfigError: If the chunk settings are invalid.
            EmbeddingUnavailable: If any embedding call fails.
        """
        logger.info("Processing document %s: %s", document.id, document.title)
        chunker = TextChunker(self.max_words, self.overlap_words)
        chunks = chunker.chunk_document(document)

        embeddings = self.embedding_service.get_embeddings_serial(
            [chunk.content for chunk in chunks],
            delay_seconds=self.delay_seconds,
            sleep=self.sleep,
        )
        return [
            replace(chunk, embedding=embedding)
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]

    def build_store(
        self, documents: Iterable[Document]
    ) -> tuple[VectorStore, IngestionReport]:
        """Embed every document into a new snapshot.

        A document with an invalid chunk configuration or no text is skipped.
        An embedding failure aborts the whole run.

        Returns:
            The snapshot and a run report.
        """
        report = IngestionReport()
        all_chunks: list[Chunk] = []

        for document in documents:
            if not document.content.strip():
                logger.warning("Skipping document %s: no text", document.id)
                report.skipped_documents.append(document.id)
                continue
            try:
                chunks = self.process_document(document)
            except ConfigError:
                logger.exception("Skipping document %s: invalid chunking", document.id)
                report.skipped_documents.append(document.id)
                continue
            all_chunks.extend(chunks)
            report.documents_processed += 1

        store = VectorStore(all_chunks)
        report.stats = chunk_stats([chunk.content for chunk in all_chunks])
        report.dimension = store.dimension
        return store, report

    def ingest(self, sources: Sequence[Path], output_path: Path) -> IngestionReport:
        """Run the full ingestion and write the store artifact.

        Nothing is written unless every document embedded successfully.

        Returns:
            The run report.
        """
        documents: list[Document] = []
        for source in sources:
            documents.extend(DocumentLoader.load_documents(Path(source)))
        logger.info("Loaded %d documents from %d sources", len(documents), len(sources))

        try:
            store, report = self.build_store(documents)
        except Exception:
            logger.exception("Ingestion failed; no vector store written")
            raise

        store.save(output_path)
        report.output_path = Path(output_path)

        logger.info(
            "Chunking statistics: %d chunks, avg %d words / %d chars, "
            "words %d-%d, chars %d-%d",
            report.stats["total_chunks"],
            report.stats["avg_words"],
            report.stats["avg_chars"],
            report.stats["min_words"],
            report.stats["max_words"],
            report.stats["min_chars"],
            report.stats["max_chars"],
        )
        logger.info(
            "Vector store created at %s with %d vectors of %d dimensions",
            output_path,
            store.size,
            store.dimension,
        )
        return report
