"""Command line entry point for the proposal section engine."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

import aiosqlite
from rich.console import Console
from rich.table import Table

from proposal_engine.config.loader import load_settings, validate_secret_env
from proposal_engine.db.database import get_db
from proposal_engine.db.repositories import ActivityRepository
from proposal_engine.exceptions import ProposalEngineError
from proposal_engine.generation.section_generator import GenerationOptions, GenerationOrchestrator
from proposal_engine.llm.oracle import LLMOracle
from proposal_engine.llm.provider import LLMProvider
from proposal_engine.llm.pydantic_client import PydanticAIClient
from proposal_engine.models import ReadingLevel, SettingsConfig, Tone
from proposal_engine.reuse.ranker import ReuseRanker
from proposal_engine.sections.autosave import AutoSaveReconciler, EditBuffer
from proposal_engine.sections.editor import SectionEditor
from proposal_engine.sections.ledger import VersionLedger
from proposal_engine.utils.logging_config import LogLevel, setup_logging
from proposal_engine.utils.structured_log import bind_document, configure_run_logging, log_rate_limit_wait
from proposal_engine.utils.text import truncate_text

Handler = Callable[[argparse.Namespace, SettingsConfig, aiosqlite.Connection, Console], Awaitable[int]]


def _build_oracle(settings: SettingsConfig, db: aiosqlite.Connection) -> LLMOracle:
    missing = validate_secret_env(settings)
    if missing:
        raise ProposalEngineError(f"Missing API key env vars: {', '.join(missing)}")
    provider = LLMProvider(settings, ActivityRepository(db), on_waiting=log_rate_limit_wait)
    return LLMOracle(provider, PydanticAIClient())


def _section_table(title: str, rows: Sequence[tuple[str, str]]) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in rows:
        table.add_row(key, value)
    return table


async def _cmd_init_db(args, settings, db, console) -> int:
    console.print(f"[green]Database ready:[/] {args.db or settings.database.path}")
    return 0


async def _cmd_save(args, settings, db, console) -> int:
    content = Path(args.file).read_text(encoding="utf-8") if args.file else args.content
    editor = SectionEditor(db)
    result = await editor.save_section(
        args.document,
        args.key,
        content or "",
        author=args.author,
        section_name=args.name,
        mark_for_review=args.mark_for_review,
    )
    rows = [
        ("Section", result.section.section_key),
        ("Status", result.section.status.value),
        ("Words", str(result.section.word_count)),
        ("Version", str(result.version.version_number) if result.version else "unchanged"),
    ]
    console.print(_section_table("Section saved", rows))
    return 0


async def _cmd_history(args, settings, db, console) -> int:
    ledger = VersionLedger(db)
    section = await ledger.store.get_section(args.document, args.key)
    table = Table(title=f"History of {section.section_name}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Change")
    table.add_column("By")
    table.add_column("Words", justify="right")
    table.add_column("When")
    table.add_column("Summary")
    for version in await ledger.list_versions(section.section_id):
        table.add_row(
            str(version.version_number),
            version.change_type.value,
            version.changed_by,
            str(version.word_count),
            version.created_at.strftime("%Y-%m-%d %H:%M"),
            version.change_summary,
        )
    console.print(table)
    return 0


async def _cmd_restore(args, settings, db, console) -> int:
    ledger = VersionLedger(db)
    section = await ledger.store.get_section(args.document, args.key)
    restored = await ledger.restore_version(section.section_id, args.version, author=args.author)
    console.print(
        f"[green]Restored[/] {restored.section_key} to version {args.version} "
        f"({restored.word_count} words)"
    )
    return 0


async def _cmd_generate(args, settings, db, console) -> int:
    orchestrator = GenerationOrchestrator(
        db,
        _build_oracle(settings, db),
        config=settings.generation,
        context_config=settings.context,
    )
    options = GenerationOptions(
        is_regenerate=args.regenerate,
        author=args.author,
        section_name=args.name,
        tone=Tone(args.tone) if args.tone else None,
        reading_level=ReadingLevel(args.reading_level) if args.reading_level else None,
        word_count_target=args.words,
        additional_context=args.context,
    )
    result = await orchestrator.generate(args.document, args.key, options)
    rows = [
        ("Section", result.section.section_key),
        ("Status", result.section.status.value),
        ("Words", str(result.section.word_count)),
        ("Version", f"{result.version.version_number} ({result.version.change_type.value})"),
        ("Context", result.section.ai_context_summary or ""),
    ]
    if result.context.unavailable:
        rows.append(("Unavailable", ", ".join(result.context.unavailable)))
    console.print(_section_table("Section generated", rows))
    return 0


def _suggestion_table(title: str, suggestions) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Score", justify="right")
    table.add_column("Type")
    table.add_column("Confidence")
    table.add_column("Status")
    table.add_column("Reasons")
    for s in suggestions:
        table.add_row(
            s.suggestion_id,
            f"{s.relevance_score:.0f}",
            s.similarity_type.value,
            s.confidence_level.value,
            s.status.value,
            truncate_text("; ".join(s.match_reasons), 120),
        )
    return table


async def _cmd_rank(args, settings, db, console) -> int:
    ranker = ReuseRanker(db, _build_oracle(settings, db), config=settings.reuse)
    suggestions = await ranker.rank(args.document, args.key)
    if not suggestions:
        console.print("[yellow]No reuse candidates found.[/]")
        return 0
    console.print(_suggestion_table("Reuse suggestions", suggestions))
    return 0


async def _cmd_suggestions(args, settings, db, console) -> int:
    ranker = ReuseRanker(db, config=settings.reuse)
    suggestions = await ranker.list_suggestions(args.document, args.key, latest_run_only=not args.all)
    console.print(_suggestion_table("Reuse suggestions", suggestions))
    return 0


async def _cmd_accept(args, settings, db, console) -> int:
    ranker = ReuseRanker(db, config=settings.reuse)
    suggestion = await ranker.accept_suggestion(args.suggestion, author=args.author)
    console.print(f"[green]Accepted[/] {suggestion.suggestion_id}; content inserted.")
    return 0


async def _cmd_reject(args, settings, db, console) -> int:
    ranker = ReuseRanker(db, config=settings.reuse)
    suggestion = await ranker.reject_suggestion(args.suggestion, feedback=args.feedback)
    console.print(f"[yellow]Rejected[/] {suggestion.suggestion_id}.")
    return 0


async def _cmd_autosave(args, settings, db, console) -> int:
    buffer = EditBuffer(
        {path.stem: path.read_text(encoding="utf-8") for path in sorted(Path(args.dir).glob("*.html"))}
    )
    reconciler = AutoSaveReconciler(db, settings.autosave)
    report = await reconciler.reconcile_once(args.document, buffer, author=args.author)
    table = Table(title="Auto-save tick")
    table.add_column("Section", style="cyan")
    table.add_column("Result")
    for key in report.saved:
        table.add_row(key, f"[green]saved[/] (v{report.versions[key]})")
    for key in report.unchanged:
        table.add_row(key, "unchanged")
    for key in report.skipped_empty:
        table.add_row(key, "[dim]empty[/]")
    for key, error in report.errors.items():
        table.add_row(key, f"[red]failed:[/] {error}")
    console.print(table)
    return 0 if report.ok else 1


_COMMANDS: dict[str, Handler] = {
    "init-db": _cmd_init_db,
    "save": _cmd_save,
    "history": _cmd_history,
    "restore": _cmd_restore,
    "generate": _cmd_generate,
    "rank": _cmd_rank,
    "suggestions": _cmd_suggestions,
    "accept": _cmd_accept,
    "reject": _cmd_reject,
    "autosave": _cmd_autosave,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="proposal-engine")
    parser.add_argument("--settings", default=None, help="Settings YAML (defaults to the bundled file)")
    parser.add_argument("--db", default=None, help="SQLite path (overrides database.path)")
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument("--debug", "-d", action="store_true")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("init-db")

    def _section_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--document", required=True)
        p.add_argument("--key", required=True)

    save = sub.add_parser("save")
    _section_args(save)
    source = save.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Read content from this file")
    source.add_argument("--content")
    save.add_argument("--author", required=True)
    save.add_argument("--name", help="Display name for a new section")
    save.add_argument("--mark-for-review", action="store_true")

    history = sub.add_parser("history")
    _section_args(history)

    restore = sub.add_parser("restore")
    _section_args(restore)
    restore.add_argument("--version", type=int, required=True)
    restore.add_argument("--author", default="")

    generate = sub.add_parser("generate")
    _section_args(generate)
    generate.add_argument("--regenerate", action="store_true", help="Improve the existing content")
    generate.add_argument("--author", default="")
    generate.add_argument("--name")
    generate.add_argument("--tone", choices=[t.value for t in Tone])
    generate.add_argument("--reading-level", choices=[r.value for r in ReadingLevel])
    generate.add_argument("--words", type=int)
    generate.add_argument("--context", help="Additional instructions for the writer")

    rank = sub.add_parser("rank")
    _section_args(rank)

    suggestions = sub.add_parser("suggestions")
    _section_args(suggestions)
    suggestions.add_argument("--all", action="store_true", help="Include earlier ranking runs")

    accept = sub.add_parser("accept")
    accept.add_argument("--suggestion", required=True)
    accept.add_argument("--author", default="")

    reject = sub.add_parser("reject")
    reject.add_argument("--suggestion", required=True)
    reject.add_argument("--feedback")

    autosave = sub.add_parser("autosave")
    autosave.add_argument("--document", required=True)
    autosave.add_argument("--dir", required=True, help="Directory of <section_key>.html files")
    autosave.add_argument("--author", default=None)
    return parser


async def _dispatch(args: argparse.Namespace, settings: SettingsConfig, console: Console) -> int:
    handler = _COMMANDS[args.command]
    async with get_db(args.db or settings.database.path) as db:
        return await handler(args, settings, db, console)


def main(argv: Sequence[str] | None = None) -> int:
    console = Console()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(args.settings)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 1

    level = LogLevel.DETAILED if args.verbose else LogLevel(settings.logging.level)
    setup_logging(level=level, debug=args.debug)
    if settings.logging.structured:
        configure_run_logging(settings.logging.log_dir)
    document_id: Any = getattr(args, "document", None)
    if document_id:
        bind_document(document_id, getattr(args, "author", None))

    try:
        return asyncio.run(_dispatch(args, settings, console))
    except ProposalEngineError as e:
        console.print(f"[red]Error:[/] {e}")
        return 1
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
