"""Command-line interface for Tusk.

Usage::

    python -m tusk.cli.main ingest --file report.pdf
    python -m tusk.cli.main ask --query "What changed in Q3?"
    python -m tusk.cli.main chat --message "Hello"
    python -m tusk.cli.main list
    python -m tusk.cli.main delete --file report.pdf --yes
    python -m tusk.cli.main migrate
    python -m tusk.cli.main stats

Provider selection:
  - Embedding: OpenAI (if OPENAI_API_KEY is set) -> Nomic via Ollama
  - Generation: GENERATION_PROVIDER ("openai" / "ollama"), or with "auto"
    OpenAI when a key is set, else Ollama
  - Storage: SQLite for documents, ChromaDB for chunk vectors (always)

Results go to stdout; logs go to stderr.  Exit status is 0 on success and
1 when a Tusk error is reported.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog

from tusk.config.loader import load_config
from tusk.config.pipeline import PipelineConfig
from tusk.config.settings import Settings
from tusk.models.retrieval import GenerationState
from tusk.utils.errors import (
    ConfigurationError,
    IngestionError,
    ProviderUnavailableError,
    TuskError,
)
from tusk.utils.logging import configure_logging

logger = structlog.get_logger(logger_name=__name__)


# ---------------------------------------------------------------------------
# Provider factories
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings):  # noqa: ANN202
    """Select the first available embedding provider.

    Chunks and queries must be embedded by the same model, so switching
    provider on an existing ChromaDB collection needs a fresh collection.

    Raises
    ------
    ProviderUnavailableError
        If neither OpenAI nor an Ollama server is available.
    """
    if app_settings.openai_api_key:
        from tusk.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        provider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    from tusk.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

    provider = NomicEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    raise ProviderUnavailableError(
        "No embedding provider available. Set OPENAI_API_KEY, or run Ollama at "
        "OLLAMA_BASE_URL with nomic-embed-text pulled."
    )


def _build_generation_provider(app_settings: Settings, system_prompt: str | None = None):  # noqa: ANN202
    """Build the generation provider named by ``GENERATION_PROVIDER``."""
    choice = app_settings.generation_provider.lower()
    if choice not in ("auto", "openai", "ollama"):
        raise ConfigurationError(
            f"GENERATION_PROVIDER must be auto, openai or ollama, got {choice!r}"
        )

    if choice == "openai" or (choice == "auto" and app_settings.openai_api_key):
        if not app_settings.openai_api_key:
            raise ConfigurationError("GENERATION_PROVIDER=openai requires OPENAI_API_KEY")
        from tusk.providers.llm.openai_provider import OpenAIGenerationProvider

        return OpenAIGenerationProvider(settings=app_settings, system_prompt=system_prompt)

    from tusk.providers.llm.ollama_provider import OllamaGenerationProvider

    return OllamaGenerationProvider(settings=app_settings, system_prompt=system_prompt)


def _build_repository(app_settings: Settings):  # noqa: ANN202
    """Wire the SQLite document store and the ChromaDB chunk store together."""
    from tusk.providers.storage.chromadb_chunk_store import ChromaDBChunkStore
    from tusk.providers.storage.repository import DocumentRepository
    from tusk.providers.storage.sqlite_document_store import SQLiteDocumentStore

    return DocumentRepository(
        document_store=SQLiteDocumentStore(app_settings.document_db_path),
        chunk_store=ChromaDBChunkStore(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
        ),
    )


def _build_ingestion_service(app_settings: Settings, pipeline: PipelineConfig, repository):  # noqa: ANN001, ANN202
    """Construct the ingestion service with every extractor registered."""
    from tusk.providers.extraction import (
        DocxExtractor,
        PlainTextExtractor,
        PyMuPDFExtractor,
        VisionExtractor,
    )
    from tusk.services.extraction.extraction_service import TextExtractionService
    from tusk.services.ingestion import IngestionScheduler, IngestionService, TextChunker

    generation_provider = _build_generation_provider(
        app_settings, pipeline.generation.system_prompt
    )
    extraction = TextExtractionService(
        [
            PyMuPDFExtractor(),
            DocxExtractor(),
            PlainTextExtractor(),
            VisionExtractor(generation_provider),
        ]
    )
    tuning = pipeline.ingestion
    scheduler = IngestionScheduler(
        _build_embedding_provider(app_settings),
        batch_size=tuning.embed_batch_size,
        max_concurrent_batches=tuning.max_concurrent_batches,
        max_attempts=tuning.max_attempts,
        backoff_step_seconds=tuning.backoff_step_seconds,
    )
    return IngestionService(
        extraction_service=extraction,
        chunker=TextChunker(pipeline.chunking.window_size, pipeline.chunking.overlap),
        scheduler=scheduler,
        storage=repository,
        bulk_write_threshold=tuning.bulk_write_threshold,
        fail_on_partial=tuning.fail_on_partial,
    )


def _build_query_service(app_settings: Settings, pipeline: PipelineConfig, repository):  # noqa: ANN001, ANN202
    from tusk.services.generation.aggregator import StreamingAggregator
    from tusk.services.retrieval.query_service import QueryService

    return QueryService(
        embedding_provider=_build_embedding_provider(app_settings),
        storage=repository,
        generation_provider=_build_generation_provider(
            app_settings, pipeline.generation.system_prompt
        ),
        aggregator=StreamingAggregator(pipeline.generation.timeout_seconds),
        search_config=pipeline.search,
    )


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    """Turn Ctrl-C into a generation cancel instead of a traceback."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("cancel_handler_unavailable")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, app_settings: Settings, pipeline: PipelineConfig) -> int:
    """Ingest one file."""
    repository = _build_repository(app_settings)
    await repository.initialize()
    service = _build_ingestion_service(app_settings, pipeline, repository)

    print(f"Ingesting: {args.file}")
    try:
        result = await service.ingest_path(args.file, args.owner)
    except IngestionError as exc:
        if exc.result is not None:
            _print_ingestion_result(exc.result)
        raise

    _print_ingestion_result(result)
    return 0


def _print_ingestion_result(result) -> None:  # noqa: ANN001
    print("\nIngestion complete:")
    print(f"  Document ID:    {result.document_id}")
    print(f"  Chunks created: {result.chunks_total}")
    print(f"  Chunks stored:  {result.chunks_written}")
    if result.failed_batches:
        print(f"  Failed batches: {result.failed_batches}")
    if result.extraction_failed:
        print("  Warning: text extraction failed; placeholder text was indexed")
    print(f"  Time:           {result.ingestion_time:.2f}s")


async def _handle_ask(args: argparse.Namespace, app_settings: Settings, pipeline: PipelineConfig) -> int:
    """Answer a question from the owner's documents."""
    repository = _build_repository(app_settings)
    await repository.initialize()
    service = _build_query_service(app_settings, pipeline, repository)

    image_bytes = Path(args.image).read_bytes() if args.image else None
    cancel_event = asyncio.Event()
    _install_cancel_handler(cancel_event)

    answer = await service.answer(
        args.query, args.owner, cancel_event=cancel_event, image_bytes=image_bytes
    )
    print(answer.results)
    if answer.hits and args.sources:
        print("\nSources:")
        for hit in answer.hits:
            print(f"  {hit.score:.3f}  {hit.filename}")
    return 0 if answer.generation.state in (GenerationState.DONE, GenerationState.TIMED_OUT) else 1


async def _handle_chat(args: argparse.Namespace, app_settings: Settings, pipeline: PipelineConfig) -> int:
    """Single message with ``--message``, otherwise an interactive session.

    In the interactive session ``/clear`` forgets earlier turns and
    ``/exit`` (or end of input) leaves.
    """
    from tusk.services.generation.aggregator import StreamingAggregator
    from tusk.services.retrieval.query_service import outcome_text

    provider = _build_generation_provider(app_settings, pipeline.generation.system_prompt)
    aggregator = StreamingAggregator(pipeline.generation.timeout_seconds)

    async def _turn(message: str) -> None:
        cancel_event = asyncio.Event()
        _install_cancel_handler(cancel_event)
        result = await aggregator.aggregate(provider.stream_response(message), cancel_event)
        print(outcome_text(result))

    if args.message:
        await _turn(args.message)
        return 0

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            return 0
        line = line.strip()
        if not line:
            continue
        if line == "/exit":
            return 0
        if line == "/clear":
            provider.clear_history()
            print("History cleared.")
            continue
        await _turn(line)


async def _handle_list(args: argparse.Namespace, app_settings: Settings) -> int:
    """Print the owner's documents in upload order."""
    repository = _build_repository(app_settings)
    await repository.initialize()
    documents = await repository.list_documents(args.owner)
    if not documents:
        print("No documents.")
        return 0

    print(f"{'Filename':<40} {'Size':>10}  Uploaded")
    print("-" * 72)
    for doc in documents:
        print(f"{doc.filename:<40} {doc.formatted_size:>10}  {doc.upload_date or '-'}")
    return 0


async def _handle_delete(args: argparse.Namespace, app_settings: Settings) -> int:
    """Delete a document and all of its chunks."""
    repository = _build_repository(app_settings)
    await repository.initialize()
    document = await repository.find_by_filename(args.file, args.owner)

    if not args.yes:
        confirm = input(f"  Delete {document.filename} and its chunks? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0

    chunks = await repository.delete_by_filename(args.file, args.owner)
    print(f"Deleted {document.filename} ({chunks} chunks).")
    return 0


async def _handle_migrate(app_settings: Settings) -> int:
    """Backfill missing ``size`` metadata."""
    repository = _build_repository(app_settings)
    await repository.initialize()
    updated = await repository.migrate_missing_sizes()
    print(f"Updated {updated} documents.")
    return 0


async def _handle_stats(args: argparse.Namespace, app_settings: Settings) -> int:
    """Display document and chunk counts."""
    repository = _build_repository(app_settings)
    await repository.initialize()
    documents = await repository.list_documents(args.owner)
    owner_chunks = await repository.count_chunks(args.owner)
    total_chunks = await repository.count_chunks()

    print("Corpus Statistics")
    print("=" * 40)
    print(f"  Owner:            {args.owner}")
    print(f"  Documents:        {len(documents)}")
    print(f"  Chunks (owner):   {owner_chunks}")
    print(f"  Chunks (all):     {total_chunks}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser(default_owner: str) -> argparse.ArgumentParser:
    """Build the argparse parser for the Tusk CLI."""
    parser = argparse.ArgumentParser(
        prog="tusk",
        description="Ingest documents and ask questions about them.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="Path to config.yaml")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def _owner(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--owner",
            default=default_owner,
            help=f"Owner id (default: {default_owner})",
        )

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a document")
    ingest_parser.add_argument("--file", required=True, help="Path to the file")
    _owner(ingest_parser)

    # -- ask --
    ask_parser = subparsers.add_parser("ask", help="Ask a question about your documents")
    ask_parser.add_argument("--query", required=True, help="The question")
    ask_parser.add_argument("--image", default=None, help="Optional image to send with the question")
    ask_parser.add_argument("--sources", action="store_true", help="Also print matching files")
    _owner(ask_parser)

    # -- chat --
    chat_parser = subparsers.add_parser("chat", help="Talk to the model without retrieval")
    chat_parser.add_argument("--message", default=None, help="Send one message and exit")

    # -- list --
    list_parser = subparsers.add_parser("list", help="List stored documents")
    _owner(list_parser)

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document and its chunks")
    delete_parser.add_argument("--file", required=True, help="Stored filename")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    _owner(delete_parser)

    # -- migrate --
    subparsers.add_parser("migrate", help="Backfill missing file size metadata")

    # -- stats --
    stats_parser = subparsers.add_parser("stats", help="Show document and chunk counts")
    _owner(stats_parser)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _dispatch(args: argparse.Namespace, app_settings: Settings, pipeline: PipelineConfig) -> int:
    if args.command == "ingest":
        return await _handle_ingest(args, app_settings, pipeline)
    if args.command == "ask":
        return await _handle_ask(args, app_settings, pipeline)
    if args.command == "chat":
        return await _handle_chat(args, app_settings, pipeline)
    if args.command == "list":
        return await _handle_list(args, app_settings)
    if args.command == "delete":
        return await _handle_delete(args, app_settings)
    if args.command == "migrate":
        return await _handle_migrate(app_settings)
    if args.command == "stats":
        return await _handle_stats(args, app_settings)
    raise ConfigurationError(f"unknown command {args.command!r}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Settings come from the environment / ``.env``; pipeline tuning from
    ``--config``.  Any :class:`TuskError` is printed to stderr and turns
    into exit status 1.
    """
    app_settings = Settings()
    parser = _build_parser(app_settings.default_owner)
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = load_config(args.config, settings=app_settings)
    configure_logging(args.log_level or config.get("logging", {}).get("level", "INFO"))

    try:
        pipeline = PipelineConfig.from_config(config)
    except ValueError as exc:
        print(f"Error: invalid pipeline config in {args.config}: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        exit_code = asyncio.run(_dispatch(args, app_settings, pipeline))
    except TuskError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
