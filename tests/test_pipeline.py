"""Tests for the offline ingestion pipeline."""

import json
from unittest.mock import Mock, patch

import pytest

from ragdesk import (
    ConfigError,
    Document,
    EmbeddingUnavailable,
    IngestionPipeline,
    StoreLoadError,
    VectorStore,
)


def make_words(count: int, prefix: str = "w") -> str:
    return " ".join(f"{prefix}{i}" for i in range(count))


@pytest.fixture
def pipeline_factory(mock_embedding_service):
    def _create_pipeline(max_words=10, overlap_words=2, embedding_service=None):  # noqa: ANN202
        return IngestionPipeline(
            embedding_service=embedding_service or mock_embedding_service,
            max_words=max_words,
            overlap_words=overlap_words,
            delay_seconds=0,
            sleep=Mock(),
        )

    return _create_pipeline


def test_process_document_embeds_every_chunk(pipeline_factory):
    pipeline = pipeline_factory()
    document = Document(id="faq", title="FAQ", content=make_words(25))

    chunks = pipeline.process_document(document)

    assert [chunk.id for chunk in chunks] == [
        "faq_chunk_0",
        "faq_chunk_1",
        "faq_chunk_2",
    ]
    assert all(chunk.dimension == 64 for chunk in chunks)


def test_build_store_preserves_document_order(pipeline_factory):
    pipeline = pipeline_factory()
    documents = [
        Document(id="a", title="A", content=make_words(5, "a")),
        Document(id="b", title="B", content=make_words(15, "b")),
    ]

    store, report = pipeline.build_store(documents)

    assert [chunk.id for chunk in store.chunks] == ["a_chunk_0", "b_chunk_0", "b_chunk_1"]
    assert report.documents_processed == 2
    assert report.skipped_documents == []
    assert report.stats["total_chunks"] == 3
    assert report.dimension == 64


def test_build_store_skips_blank_documents(pipeline_factory):
    pipeline = pipeline_factory()
    documents = [
        Document(id="blank", title="Blank", content="   "),
        Document(id="ok", title="OK", content="real text"),
    ]

    store, report = pipeline.build_store(documents)

    assert store.document_ids == ["ok"]
    assert report.skipped_documents == ["blank"]


def test_no_usable_documents_yields_no_store(pipeline_factory):
    pipeline = pipeline_factory(max_words=5, overlap_words=5)
    documents = [Document(id="bad", title="Bad", content="some words")]

    with pytest.raises(StoreLoadError, match="empty"):
        pipeline.build_store(documents)


def test_invalid_chunk_config_does_not_abort_run(pipeline_factory, chunk_factory):
    pipeline = pipeline_factory()
    good_chunk = chunk_factory([1.0, 0.0], "other words", doc_id="good")
    documents = [
        Document(id="bad", title="Bad", content="some words"),
        Document(id="good", title="Good", content="other words"),
    ]

    with patch.object(
        pipeline,
        "process_document",
        side_effect=[ConfigError("overlap_words too large"), [good_chunk]],
    ) as mock_process:
        store, report = pipeline.build_store(documents)

    assert mock_process.call_count == 2
    assert report.skipped_documents == ["bad"]
    assert report.documents_processed == 1
    assert store.document_ids == ["good"]


def test_embedding_failure_halts_and_writes_nothing(tmp_path):
    corpus = tmp_path / "docs.json"
    corpus.write_text(
        json.dumps([
            {"id": "a", "title": "A", "content": "first document"},
            {"id": "b", "title": "B", "content": "second document"},
        ])
    )
    output = tmp_path / "vector_store.json"
    embedder = Mock()
    embedder.get_embeddings_serial.side_effect = [
        [(1.0, 0.0)],
        EmbeddingUnavailable("rate limited"),
    ]
    pipeline = IngestionPipeline(
        embedding_service=embedder, max_words=10, overlap_words=2, delay_seconds=0
    )

    with pytest.raises(EmbeddingUnavailable):
        pipeline.ingest([corpus], output)

    assert not output.exists()


def test_ingest_writes_loadable_store(tmp_path, pipeline_factory):
    corpus = tmp_path / "docs.json"
    corpus.write_text(
        json.dumps([
            {"id": "pay", "title": "Payments", "content": make_words(12, "p")},
            {"id": "sec", "title": "Security", "content": "Use two-factor auth."},
        ])
    )
    notes = tmp_path / "notes.txt"
    notes.write_text("Support replies within a day.")
    output = tmp_path / "out" / "vector_store.json"

    report = pipeline_factory().ingest([corpus, notes], output)

    store = VectorStore.load(output)
    assert report.output_path == output
    assert report.documents_processed == 3
    assert store.document_ids == ["pay", "sec", "notes"]
    assert store.size == 4


def test_ingest_passes_delay_to_embedder(tmp_path):
    embedder = Mock()
    embedder.get_embeddings_serial.return_value = [(0.5, 0.5)]
    sleep = Mock()
    pipeline = IngestionPipeline(
        embedding_service=embedder,
        max_words=10,
        overlap_words=2,
        delay_seconds=0.1,
        sleep=sleep,
    )

    pipeline.process_document(Document(id="d", title="D", content="short text"))

    embedder.get_embeddings_serial.assert_called_once_with(
        ["short text"], delay_seconds=0.1, sleep=sleep
    )
