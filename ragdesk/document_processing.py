"""Document loading and word-window chunking."""

import json
from pathlib import Path
from typing import Any

import pypdf

from .config import config
from .errors import ConfigError
from .models import Chunk, Document

logger = config.get_logger(__name__)


class DocumentLoader:
    """Loads ingestion documents from a JSON corpus, PDF, or TXT files."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file.

        Returns:
            The extracted text content from the PDF as a string.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                text = ""
                for page_num, page in enumerate(pdf_reader.pages):
                    page_text = page.extract_text()
                    text += f"\n--- Page {page_num + 1} ---\n{page_text}\n"
        except Exception:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            return text

    @staticmethod
    def load_txt(file_path: Path) -> str:
        """Load text content from a TXT file.

        Returns:
            The extracted text content from the TXT file as a string.
        """
        try:
            with file_path.open(encoding="utf-8") as file:
                text = file.read()
            logger.info("Successfully loaded TXT file %s", file_path)
        except Exception:
            logger.exception("Error loading TXT %s", file_path)
            raise
        else:
            return text

    @staticmethod
    def load_corpus(file_path: Path) -> list[Document]:
        """Load a JSON corpus of ``{"id", "title", "content"}`` records.

        Returns:
            Documents in file order.

        Raises:
            ValueError: If the payload is not a list of well-formed records.
        """
        try:
            with file_path.open(encoding="utf-8") as file:
                payload: Any = json.load(file)
        except Exception:
            logger.exception("Error loading corpus %s", file_path)
            raise

        if not isinstance(payload, list):
            msg = f"Corpus {file_path} must contain a JSON list of documents"
            raise ValueError(msg)  # noqa: TRY004

        documents = []
        for position, record in enumerate(payload):
            try:
                documents.append(
                    Document(
                        id=str(record["id"]),
                        title=str(record["title"]),
                        content=str(record["content"]),
                    )
                )
            except (KeyError, TypeError) as exc:
                msg = f"Corpus record {position} in {file_path} is malformed: {exc!r}"
                raise ValueError(msg) from exc

        logger.info("Loaded %d documents from %s", len(documents), file_path)
        return documents

    @classmethod
    def load_documents(cls, file_path: Path) -> list[Document]:
        """Load documents based on file extension.

        A JSON file is a corpus of many documents; PDF and TXT files become a
        single document whose id and title are derived from the file name.

        Returns:
            The documents contained in the file.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".json":
            return cls.load_corpus(file_path)
        if file_ext == ".pdf":
            text = cls.load_pdf(file_path)
        elif file_ext == ".txt":
            text = cls.load_txt(file_path)
        else:
            msg = f"Unsupported file type: {file_ext}"
            raise ValueError(msg)
        return [Document(id=file_path.stem, title=file_path.name, content=text)]


def validate_chunk_config(max_words: int, overlap_words: int) -> None:
    """Reject window settings that would never advance.

    Raises:
        ConfigError: If max_words < 1 or overlap_words is outside [0, max_words).
    """
    if max_words < 1:
        msg = f"max_words must be at least 1, got {max_words}"
        raise ConfigError(msg)
    if not 0 <= overlap_words < max_words:
        msg = (
            f"overlap_words must satisfy 0 <= overlap_words < max_words, "
            f"got overlap_words={overlap_words}, max_words={max_words}"
        )
        raise ConfigError(msg)


def chunk_by_words(
    text: str, max_words: int = 300, overlap_words: int = 50
) -> list[str]:
    """Split text into overlapping windows of whitespace-delimited words.

    Text that fits in a single window is returned unchanged as the only chunk.
    Longer text yields windows of ``max_words`` words joined by single spaces,
    each starting ``max_words - overlap_words`` words after the previous one.
    The last window may be shorter.

    Returns:
        The chunk texts in document order.
    """
    validate_chunk_config(max_words, overlap_words)

    words = text.split()
    if len(words) <= max_words:
        return [text]

    step = max_words - overlap_words
    chunks = []
    start = 0
    while True:
        end = min(start + max_words, len(words))
        chunks.append(" ".join(words[start:end]))
        if end == len(words):
            break
        start += step

    return chunks


def chunk_stats(chunks: list[str]) -> dict[str, int]:
    """Summarize word and character counts across chunk texts.

    Returns:
        Totals, rounded averages, and min/max word and char counts.
    """
    if not chunks:
        return {
            "total_chunks": 0,
            "avg_words": 0,
            "avg_chars": 0,
            "min_words": 0,
            "max_words": 0,
            "min_chars": 0,
            "max_chars": 0,
        }

    word_counts = [len(chunk.split()) for chunk in chunks]
    char_counts = [len(chunk) for chunk in chunks]
    return {
        "total_chunks": len(chunks),
        "avg_words": round(sum(word_counts) / len(chunks)),
        "avg_chars": round(sum(char_counts) / len(chunks)),
        "min_words": min(word_counts),
        "max_words": max(word_counts),
        "min_chars": min(char_counts),
        "max_chars": max(char_counts),
    }


class TextChunker:
    """Handles word-window chunking with a validated overlap strategy."""

    def __init__(self, max_words: int = 300, overlap_words: int = 50) -> None:
        """Initialize the TextChunker.

        Args:
            max_words: Number of words per window.
            overlap_words: Number of words shared by consecutive windows.

        Raises:
            ConfigError: If the window settings are invalid.
        """
        validate_chunk_config(max_words, overlap_words)
        self.max_words = max_words
        self.overlap_words = overlap_words

    def chunk_text(self, text: str) -> list[str]:
        """Split raw text into chunk strings.

        Returns:
            The chunk texts in document order.
        """
        return chunk_by_words(text, self.max_words, self.overlap_words)

    def chunk_document(self, document: Document) -> list[Chunk]:
        """Split a document into chunks that still lack embeddings.

        Returns:
            Chunks carrying the document id, title, and position.
        """
        texts = self.chunk_text(document.content)
        chunks = [
            Chunk(
                id=Chunk.make_id(document.id, index),
                doc_id=document.id,
                title=document.title,
                content=content,
                chunk_index=index,
            )
            for index, content in enumerate(texts)
        ]
        logger.info("Document %s split into %d chunks", document.id, len(chunks))
        return chunks
