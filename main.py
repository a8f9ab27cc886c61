"""Command-line entry point for RAGDesk ingestion and the Streamlit UI."""

from __future__ import annotations

import argparse
import json
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from ragdesk.config import config
from ragdesk.errors import EmbeddingUnavailable, StoreLoadError
from ragdesk.pipeline import IngestionPipeline
from ragdesk.vector_store import VectorStore

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "app.py"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Build the RAGDesk vector store or launch the chat UI.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser(
        "ingest", help="Chunk and embed documents into a vector store file."
    )
    ingest.add_argument(
        "--docs",
        type=Path,
        nargs="+",
        default=None,
        help="Source documents (.json corpus, .txt, .pdf). Default: DOCS_PATH.",
    )
    ingest.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Vector store output path. Default: VECTOR_STORE_PATH.",
    )

    stats = subparsers.add_parser("stats", help="Print vector store statistics.")
    stats.add_argument(
        "--store",
        type=Path,
        default=None,
        help="Vector store path. Default: VECTOR_STORE_PATH.",
    )

    serve = subparsers.add_parser("serve", help="Launch the Streamlit chat UI.")
    serve.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: app.py).",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for the Streamlit server (default: 8501).",
    )
    serve.add_argument(
        "--address",
        default="localhost",
        help="Bind address for the Streamlit server (default: localhost).",
    )
    serve.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open Streamlit in a browser window instead of headless mode.",
    )
    serve.set_defaults(headless=True)
    return parser.parse_args(argv)


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def run_streamlit(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured streamlit command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("RAGDesk stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit")
        return 1
    return result.returncode


def run_ingest(args: argparse.Namespace, logger: Logger) -> int:
    """Run ingestion and write the vector store."""  # noqa: DOC201
    sources = args.docs or [config.DOCS_PATH]
    output = args.output or config.VECTOR_STORE_PATH

    try:
        report = IngestionPipeline().ingest(sources, output)
    except (EmbeddingUnavailable, StoreLoadError, OSError, ValueError):
        logger.exception("Ingestion failed")
        return 1

    if report.skipped_documents:
        logger.warning(
            "Skipped %d documents: %s",
            len(report.skipped_documents),
            ", ".join(report.skipped_documents),
        )
    return 0


def run_stats(args: argparse.Namespace, logger: Logger) -> int:
    """Print store statistics as JSON."""  # noqa: DOC201
    try:
        store = VectorStore.load(args.store or config.VECTOR_STORE_PATH)
    except StoreLoadError:
        logger.exception("Unable to load vector store")
        return 1

    summary = {
        "totalChunks": store.size,
        "totalDocuments": len(store.document_ids),
        "embeddingDimensions": store.dimension,
        "similarityThreshold": config.SIMILARITY_THRESHOLD,
        "topK": config.TOP_K,
    }
    print(json.dumps(summary, indent=2))  # noqa: T201
    return 0


def run_serve(args: argparse.Namespace, logger: Logger) -> int:
    """Check the vector store, then launch the Streamlit UI."""  # noqa: DOC201
    try:
        store = VectorStore.load(config.VECTOR_STORE_PATH)
    except StoreLoadError:
        logger.exception("Refusing to serve without a valid vector store")
        return 1

    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting RAGDesk at http://%s:%s (headless=%s, %d chunks loaded)",
        args.address,
        args.port,
        args.headless,
        store.size,
    )

    command = build_streamlit_command(
        script_path,
        port=args.port,
        headless=args.headless,
        address=args.address,
    )

    return_code = run_streamlit(command, logger)
    if return_code != 0:
        logger.error("Streamlit exited with status %s", return_code)
    return return_code


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and dispatch the chosen command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    if args.command == "stats":
        return run_stats(args, logger)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if args.command == "ingest":
        return run_ingest(args, logger)
    return run_serve(args, logger)


if __name__ == "__main__":
    sys.exit(main())
