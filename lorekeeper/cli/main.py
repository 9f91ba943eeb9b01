"""Standalone CLI for extracting and reconciling manuscript knowledge.

Usage::

    python -m lorekeeper.cli extract --file novel.txt --import
    python -m lorekeeper.cli resume --import
    python -m lorekeeper.cli restart
    python -m lorekeeper.cli duplicates
    python -m lorekeeper.cli merge --all --delete-originals
    python -m lorekeeper.cli merge --group 2
    python -m lorekeeper.cli analyze --text "Aria drew the silver blade..."

Pressing Ctrl-C during ``extract`` or ``resume`` requests a pause: the
in-flight request is abandoned and the checkpoint is written to
``CHECKPOINT_PATH`` so ``resume`` can pick up where the run stopped.

Exit codes: 0 on success or pause, 1 on failure.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from lorekeeper.config.loader import load_config
from lorekeeper.config.settings import Settings
from lorekeeper.interfaces.knowledge_store import IKnowledgeStore
from lorekeeper.interfaces.llm_provider import ILLMProvider
from lorekeeper.models.knowledge import ExtractionItem
from lorekeeper.models.pipeline import (
    PipelineCheckpoint,
    PipelineStatus,
    ProgressUpdate,
    RunOutcome,
)
from lorekeeper.pipeline.extraction_pipeline import ExtractionPipeline, PipelineRun
from lorekeeper.pipeline.progress_tracker import ProgressTracker
from lorekeeper.utils.cancellation import CancelToken
from lorekeeper.utils.errors import ConfigurationError, LoreKeeperError
from lorekeeper.utils.logging import configure_logging, get_logger
from lorekeeper.utils.retry import RetryPolicy

if TYPE_CHECKING:
    from lorekeeper.services.knowledge_importer import KnowledgeImporter

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Dependency construction
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Construct the configured text-understanding provider.

    ``LLM_PROVIDER=openai`` selects the openai SDK adapter; anything else
    uses the plain httpx adapter against ``LLM_API_URL``.
    """
    if app_settings.llm_provider == "openai":
        from lorekeeper.providers.llm.openai_provider import OpenAILLMProvider

        return OpenAILLMProvider(settings=app_settings)
    if app_settings.llm_provider != "http":
        raise ConfigurationError(
            message=f"Unknown LLM_PROVIDER {app_settings.llm_provider!r} (expected http or openai)"
        )

    from lorekeeper.providers.llm.chat_completions_provider import ChatCompletionsProvider

    return ChatCompletionsProvider(settings=app_settings)


async def _open_store(app_settings: Settings) -> IKnowledgeStore:
    from lorekeeper.providers.store.sqlite_store import SQLiteKnowledgeStore

    store = SQLiteKnowledgeStore(app_settings.knowledge_db_path)
    await store.initialize()
    return store


async def _build_importer(app_settings: Settings) -> KnowledgeImporter:
    """Open the store and read the fuzzy-match threshold from config.yaml."""
    from lorekeeper.services.knowledge_importer import KnowledgeImporter

    config = load_config(settings=app_settings)
    threshold = config.get("importer", {}).get("match_threshold", 0.92)
    return KnowledgeImporter(await _open_store(app_settings), match_threshold=float(threshold))


def _build_pipeline(app_settings: Settings, tracker: ProgressTracker) -> ExtractionPipeline:
    return ExtractionPipeline(
        llm_provider=_build_llm_provider(app_settings),
        retry_policy=RetryPolicy(
            max_attempts=app_settings.retry_max_attempts,
            base_delay=app_settings.retry_base_delay,
        ),
        request_delay=app_settings.extraction_request_delay,
        progress_tracker=tracker,
        run_id="cli",
    )


# ---------------------------------------------------------------------------
# Checkpoint persistence
# ---------------------------------------------------------------------------


def save_checkpoint(checkpoint: PipelineCheckpoint, path: str | Path) -> None:
    """Write *checkpoint* to *path* as JSON, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(checkpoint.model_dump_json(), encoding="utf-8")


def load_checkpoint(path: str | Path) -> PipelineCheckpoint | None:
    """Read a checkpoint written by :func:`save_checkpoint`; ``None`` if absent."""
    source = Path(path)
    if not source.exists():
        return None
    return PipelineCheckpoint.model_validate_json(source.read_text(encoding="utf-8"))


def discard_checkpoint(path: str | Path) -> bool:
    source = Path(path)
    if source.exists():
        source.unlink()
        return True
    return False


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_items(items: list[ExtractionItem]) -> None:
    for item in items:
        keywords = f"  ({', '.join(item.keywords)})" if item.keywords else ""
        print(f"  [{item.category.value}] {item.title}{keywords}")


def _print_progress(update: ProgressUpdate) -> None:
    eta = f", ~{update.eta_seconds:.0f}s left" if update.eta_seconds is not None else ""
    print(f"  [{update.progress:5.1f}%] {update.message} ({update.items} items{eta})")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _drive_run(run: PipelineRun, token: CancelToken) -> RunOutcome:
    """Consume *run* with SIGINT mapped to a pause request."""
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, token.request_pause)
    try:
        return await run.collect()
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


async def _finish_extraction(
    outcome: RunOutcome, args: argparse.Namespace, app_settings: Settings
) -> int:
    checkpoint_path = app_settings.checkpoint_path

    if outcome.status is PipelineStatus.PAUSED:
        assert outcome.checkpoint is not None
        save_checkpoint(outcome.checkpoint, checkpoint_path)
        print(f"\nPaused at chunk {outcome.checkpoint.cursor + 1} of {outcome.checkpoint.total}.")
        print(f"  Checkpoint saved to {checkpoint_path}; run `resume` to continue.")
        return 0

    if outcome.status is PipelineStatus.FAILED:
        assert outcome.checkpoint is not None
        save_checkpoint(outcome.checkpoint, checkpoint_path)
        print(f"Error: {outcome.reason}", file=sys.stderr)
        print(f"  Checkpoint saved to {checkpoint_path}; run `resume` to retry.", file=sys.stderr)
        return 1

    discard_checkpoint(checkpoint_path)
    if outcome.status is PipelineStatus.CANCELLED:
        print("\nCancelled; no checkpoint kept.")
        return 0

    print(f"\nExtraction complete: {len(outcome.items)} items")
    _print_items(outcome.items)

    if args.import_items:
        importer = await _build_importer(app_settings)
        report = await importer.import_items(outcome.items, append_existing=args.append)
        print(f"\nImported: {len(report.created)} created, {len(report.appended)} appended")
    return 0


async def _handle_extract(args: argparse.Namespace, app_settings: Settings) -> int:
    from lorekeeper.services.document_reader import read_document
    from lorekeeper.services.segmenter import TextSegmenter

    if load_checkpoint(app_settings.checkpoint_path) is not None and not args.force:
        print(
            f"Error: an unfinished extraction is checkpointed at {app_settings.checkpoint_path}.",
            file=sys.stderr,
        )
        print("  Run `resume`, `restart`, or pass --force.", file=sys.stderr)
        return 1

    text = read_document(args.file)
    try:
        segmenter = TextSegmenter(
            max_chunk_length=app_settings.max_chunk_length,
            min_chunk_length=app_settings.min_chunk_length,
            metadata_keyword_threshold=app_settings.metadata_keyword_threshold,
        )
        chunks = segmenter.segment(text, max_chunk_length=args.max_chunk_length)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Extracting: {args.file}")
    print(f"  Characters: {len(text)}")
    print(f"  Chunks:     {len(chunks)}")
    if not chunks:
        print("Nothing to extract.")
        return 0

    tracker = ProgressTracker()
    pipeline = _build_pipeline(app_settings, tracker)
    tracker.register_listener(pipeline.run_id, _print_progress)

    token = CancelToken()
    outcome = await _drive_run(pipeline.run(chunks, cancel_token=token), token)
    return await _finish_extraction(outcome, args, app_settings)


async def _handle_resume(args: argparse.Namespace, app_settings: Settings) -> int:
    checkpoint = load_checkpoint(app_settings.checkpoint_path)
    if checkpoint is None:
        print(f"Error: no checkpoint at {app_settings.checkpoint_path}.", file=sys.stderr)
        return 1

    print(f"Resuming at chunk {checkpoint.cursor + 1} of {checkpoint.total}")
    print(f"  Items so far: {len(checkpoint.results_so_far)}")

    tracker = ProgressTracker()
    pipeline = _build_pipeline(app_settings, tracker)
    tracker.register_listener(pipeline.run_id, _print_progress)

    token = CancelToken()
    outcome = await _drive_run(pipeline.resume(cancel_token=token, checkpoint=checkpoint), token)
    return await _finish_extraction(outcome, args, app_settings)


async def _handle_restart(app_settings: Settings) -> int:
    if discard_checkpoint(app_settings.checkpoint_path):
        print(f"Discarded checkpoint {app_settings.checkpoint_path}.")
    else:
        print("No checkpoint to discard.")
    return 0


async def _handle_duplicates(app_settings: Settings) -> int:
    from lorekeeper.services.duplicate_detector import DuplicateDetector

    store = await _open_store(app_settings)
    groups = DuplicateDetector().find_duplicates(await store.list_entries())
    if not groups:
        print("No duplicate entries found.")
        return 0

    print(f"Found {len(groups)} duplicate groups ({sum(g.size for g in groups)} entries)")
    print("=" * 40)
    for number, group in enumerate(groups, start=1):
        print(f"  {number}. [{group.category.value}] {group.canonical_name} ({group.size} entries)")
        for entry in group.entries:
            print(f"       - {entry.title}")
    return 0


async def _handle_merge(args: argparse.Namespace, app_settings: Settings) -> int:
    from lorekeeper.services.duplicate_detector import DuplicateDetector
    from lorekeeper.services.merge_engine import MergeEngine

    store = await _open_store(app_settings)
    groups = DuplicateDetector().find_duplicates(await store.list_entries())
    if not groups:
        print("No duplicate entries found.")
        return 0

    engine = MergeEngine(
        llm_provider=_build_llm_provider(app_settings),
        store=store,
        request_delay=app_settings.merge_request_delay,
    )

    if args.group is not None:
        if not 1 <= args.group <= len(groups):
            print(f"Error: --group must be between 1 and {len(groups)}.", file=sys.stderr)
            return 1
        group = groups[args.group - 1]
        entry = await engine.merge(group, delete_originals=args.delete_originals)
        print(f"Merged {group.size} entries into {entry.title!r}")
        return 0

    token = CancelToken()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, token.request_cancel)
    try:
        report = await engine.merge_all(
            groups, delete_originals=args.delete_originals, cancel_token=token
        )
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)

    for result in report.results:
        if result.ok:
            assert result.entry is not None
            print(f"  merged  {result.group.canonical_name} -> {result.entry.title}")
        else:
            print(f"  failed  {result.group.canonical_name}: {result.error}")
    print(f"\n{len(report.succeeded)} merged, {len(report.failed)} failed")
    if report.aborted:
        print("Batch stopped early.")
    return 1 if report.failed else 0


async def _handle_analyze(args: argparse.Namespace, app_settings: Settings) -> int:
    from lorekeeper.services.document_reader import read_document

    text = read_document(args.file) if args.file else args.text
    pipeline = ExtractionPipeline(
        llm_provider=_build_llm_provider(app_settings),
        retry_policy=RetryPolicy(
            max_attempts=app_settings.retry_max_attempts,
            base_delay=app_settings.retry_base_delay,
        ),
    )
    items = await pipeline.analyze_text(text)
    print(f"Extracted {len(items)} items")
    _print_items(items)

    if args.import_items and items:
        importer = await _build_importer(app_settings)
        report = await importer.import_items(items, append_existing=args.append)
        print(f"\nImported: {len(report.created)} created, {len(report.appended)} appended")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_import_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--import",
        action="store_true",
        dest="import_items",
        help="Write extracted items to the knowledge base",
    )
    parser.add_argument(
        "--append",
        action="store_true",
        help="Append to existing entries with a matching title instead of creating new ones",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the lorekeeper CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m lorekeeper.cli",
        description="Extract and reconcile knowledge entries from long manuscripts.",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- extract --
    extract_parser = subparsers.add_parser("extract", help="Extract knowledge from a manuscript")
    extract_parser.add_argument("--file", required=True, help="Path to a .txt or .docx file")
    extract_parser.add_argument(
        "--max-chunk-length",
        type=int,
        default=None,
        dest="max_chunk_length",
        help="Override MAX_CHUNK_LENGTH for this run",
    )
    extract_parser.add_argument(
        "--force",
        action="store_true",
        help="Start over even if a checkpoint exists",
    )
    _add_import_flags(extract_parser)

    # -- resume --
    resume_parser = subparsers.add_parser("resume", help="Resume a paused or failed extraction")
    _add_import_flags(resume_parser)

    # -- restart --
    subparsers.add_parser("restart", help="Discard the saved extraction checkpoint")

    # -- duplicates --
    subparsers.add_parser("duplicates", help="List duplicate knowledge entries")

    # -- merge --
    merge_parser = subparsers.add_parser("merge", help="Merge duplicate knowledge entries")
    target = merge_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--all", action="store_true", help="Merge every duplicate group")
    target.add_argument("--group", type=int, help="Merge one group by its number in `duplicates`")
    merge_parser.add_argument(
        "--delete-originals",
        action="store_true",
        dest="delete_originals",
        help="Delete the original entries after merging",
    )

    # -- analyze --
    analyze_parser = subparsers.add_parser("analyze", help="One-shot analysis of a short passage")
    source = analyze_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a .txt or .docx file")
    source.add_argument("--text", help="Passage text")
    _add_import_flags(analyze_parser)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _dispatch(args: argparse.Namespace, app_settings: Settings) -> int:
    if args.command == "extract":
        return await _handle_extract(args, app_settings)
    if args.command == "resume":
        return await _handle_resume(args, app_settings)
    if args.command == "restart":
        return await _handle_restart(app_settings)
    if args.command == "duplicates":
        return await _handle_duplicates(app_settings)
    if args.command == "merge":
        return await _handle_merge(args, app_settings)
    return await _handle_analyze(args, app_settings)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, loads :class:`Settings` from the environment and
    ``.env``, and dispatches to the handler.  Library errors become exit
    code 1 with the message on stderr.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, json_output=args.json_logs)

    try:
        exit_code = asyncio.run(_dispatch(args, app_settings))
    except LoreKeeperError as exc:
        logger.error("command_failed", command=args.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)
