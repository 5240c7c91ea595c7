"""Typer CLI — headless commands for ctigraph."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from ctigraph import __version__
from ctigraph.config import Settings
from ctigraph.errors import ExtractionFailure, FeedbackSubmissionError, InvalidInputError

app = typer.Typer(
    name="ctigraph",
    help="ctigraph — Extract knowledge-graph triples from CTI text",
    no_args_is_help=True,
)
console = Console()

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False, config_level: str | None = None) -> None:
    if verbose:
        level = logging.DEBUG
    elif config_level:
        level = getattr(logging, config_level.upper(), logging.INFO)
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_settings(config: str | None, verbose: bool) -> Settings:
    settings = Settings.load(config)
    _setup_logging(verbose, config_level=settings.log_level if verbose or config else None)
    return settings


class _Session:
    """Feedback store, event bus and optional audit trail for one command."""

    def __init__(self, settings: Settings, label: str) -> None:
        from ctigraph.events.bus import EventBus
        from ctigraph.feedback.store import FeedbackStore

        self.settings = settings
        self.label = label
        self.bus = EventBus()
        self.feedback = FeedbackStore(settings.feedback, bus=self.bus)
        self.audit: Any = None

    @property
    def db_path(self) -> Path:
        return Path(self.settings.storage.db_path)

    async def __aenter__(self) -> _Session:
        if self.settings.log_dir is not None:
            from ctigraph.logging import AuditLogger

            self.audit = AuditLogger(self.settings.log_dir, self.label, self.bus)
            await self.audit.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self.audit is not None:
            await self.audit.close()

    async def restore_feedback(self) -> int:
        """Replay persisted feedback, if a database exists."""
        if not self.db_path.exists():
            return 0
        from ctigraph.feedback.repo import FeedbackRepository

        repo = await FeedbackRepository.open(self.db_path, wal_mode=self.settings.storage.wal_mode)
        try:
            return await repo.restore(self.feedback)
        finally:
            await repo.close()


@app.command()
def extract(
    text: str | None = typer.Argument(None, help="CTI text to analyze"),
    file: Path | None = typer.Option(None, "--file", "-f", help="Read text from a file"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write result JSON to file"),
    store: bool = typer.Option(False, "--store", help="Persist the graph to the database"),
    min_confidence: float | None = typer.Option(
        None, "--min-confidence", help="Hide entities and relations below this confidence",
    ),
    use_ai: bool = typer.Option(False, "--ai", help="Use the configured AI provider"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """Extract entities and relations from CTI text."""
    settings = _load_settings(config, verbose)

    if file is not None:
        try:
            text = file.read_text(encoding="utf-8")
        except OSError as e:
            console.print(f"[red]Cannot read {file}: {e}[/]")
            raise typer.Exit(1) from None
    if text is None:
        console.print("[red]Provide text as an argument or with --file[/]")
        raise typer.Exit(1)

    try:
        result = asyncio.run(_extract(settings, text, store=store, use_ai=use_ai))
    except InvalidInputError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1) from None
    except ExtractionFailure as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(2) from None

    if min_confidence is not None:
        result = result.above_threshold(min_confidence)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        console.print(f"[green]Result written to {output}[/]")

    if as_json:
        console.print_json(data=result.to_dict())
        return
    _print_result(result)


async def _extract(settings: Settings, text: str, *, store: bool, use_ai: bool):
    from ctigraph.extraction.pipeline import ExtractionPipeline

    async with _Session(settings, "extract") as session:
        await session.restore_feedback()
        pipeline = ExtractionPipeline(settings, feedback=session.feedback, bus=session.bus)

        if use_ai:
            result = await _extract_ai(pipeline, settings, text)
        else:
            result = pipeline.process(text)

        if store:
            from ctigraph.storage.graph_store import SqliteGraphStore

            graph_store = await SqliteGraphStore.open(
                settings.storage.db_path, wal_mode=settings.storage.wal_mode,
            )
            try:
                await pipeline.persist(result, graph_store)
            finally:
                await graph_store.close()
        return result


async def _extract_ai(pipeline: Any, settings: Settings, text: str):
    from ctigraph.extraction.ai import OpenAITripleProvider, PatternTripleProvider

    try:
        provider = OpenAITripleProvider(settings.ai)
    except ExtractionFailure as e:
        logger.warning("%s, using regex triples", e)
        return await pipeline.process_ai(text, PatternTripleProvider())
    async with provider:
        return await pipeline.process_ai(text, provider)


def _print_result(result: Any) -> None:
    meta = result.metadata
    names = {e.id: e.text for e in result.entities}

    table = Table(title=f"Entities ({len(result.entities)})")
    table.add_column("ID", style="dim")
    table.add_column("Text", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Confidence", justify="right")
    for e in result.entities:
        table.add_row(e.id, e.text, str(e.type), f"{e.confidence:.2f}")
    console.print(table)

    table = Table(title=f"Relations ({len(result.relations)})")
    table.add_column("Source", style="cyan")
    table.add_column("Relation", style="yellow")
    table.add_column("Target", style="cyan")
    table.add_column("Confidence", justify="right")
    for r in result.relations:
        table.add_row(
            names.get(r.source, r.source), str(r.relation),
            names.get(r.target, r.target), f"{r.confidence:.2f}",
        )
    console.print(table)

    console.print(
        f"[dim]{meta.extraction_method} · {meta.model_version} · "
        f"{meta.processing_time:.3f}s · threshold {meta.confidence_threshold:.2f}[/]"
    )


@app.command()
def feedback(
    batch_file: Path = typer.Argument(help="JSON file with a feedback batch"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose"),
):
    """Submit a batch of entity corrections."""
    settings = _load_settings(config, verbose)

    try:
        raw = json.loads(batch_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read feedback batch: {e}[/]")
        raise typer.Exit(1) from None

    try:
        threshold, batch = asyncio.run(_feedback(settings, raw))
    except FeedbackSubmissionError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1) from None

    console.print(
        f"[green]Recorded {len(batch.corrections)} corrections for "
        f"{batch.extraction_id}[/], threshold now {threshold:.2f}"
    )


async def _feedback(settings: Settings, raw: Any):
    from ctigraph.feedback.repo import FeedbackRepository

    async with _Session(settings, "feedback") as session:
        repo = await FeedbackRepository.open(
            settings.storage.db_path, wal_mode=settings.storage.wal_mode,
        )
        try:
            await repo.restore(session.feedback)
            batch = session.feedback.submit(raw)
            await repo.append(batch)
        finally:
            await repo.close()
        return session.feedback.confidence_threshold, batch


@app.command()
def stats(
    config: str | None = typer.Option(None, help="Path to config YAML"),
):
    """Show feedback statistics and the current confidence threshold."""
    settings = _load_settings(config, False)

    async def _stats():
        async with _Session(settings, "stats") as session:
            await session.restore_feedback()
            return session.feedback.stats(), session.feedback.confidence_threshold

    summary, threshold = asyncio.run(_stats())

    table = Table(title="Feedback")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Batches", str(summary.total_feedback))
    table.add_row("Corrections", str(summary.total_corrections))
    table.add_row("Improvement rate", f"{summary.improvement_rate:.2f}")
    table.add_row("Confidence threshold", f"{threshold:.2f}")
    console.print(table)


@app.command(name="patterns")
def list_patterns():
    """List the built-in recognition and relation patterns."""
    from ctigraph.patterns.catalog import PatternCatalog

    catalog = PatternCatalog.default()

    table = Table(title="Entity Patterns")
    table.add_column("Type", style="green")
    table.add_column("Band", justify="right")
    table.add_column("Regex", style="dim", overflow="fold")
    for p in catalog.entity_patterns:
        table.add_row(str(p.type), f"{p.band[0]:.2f}–{p.band[1]:.2f}", p.regex)
    console.print(table)

    table = Table(title="Relation Patterns")
    table.add_column("Relation", style="yellow")
    table.add_column("Source", style="cyan")
    table.add_column("Target", style="cyan")
    table.add_column("Keywords")
    for rp in catalog.relation_patterns:
        table.add_row(
            str(rp.relation),
            ", ".join(str(t) for t in rp.source_types),
            ", ".join(str(t) for t in rp.target_types),
            ", ".join(rp.keywords),
        )
    console.print(table)

    counts = catalog.summary()
    console.print(
        f"[dim]{counts['entity_patterns']} entity, {counts['phrase_patterns']} phrase, "
        f"{counts['relation_patterns']} relation patterns[/]"
    )


@app.command()
def graph(
    as_json: bool = typer.Option(False, "--json", help="Print the graph as JSON"),
    config: str | None = typer.Option(None, help="Path to config YAML"),
):
    """Show the graph accumulated with ``extract --store``."""
    settings = _load_settings(config, False)
    db_path = Path(settings.storage.db_path)
    if not db_path.exists():
        console.print(f"[yellow]No graph database at {db_path}[/]")
        raise typer.Exit(1)

    async def _query():
        from ctigraph.storage.graph_store import SqliteGraphStore

        graph_store = await SqliteGraphStore.open(db_path, wal_mode=settings.storage.wal_mode)
        try:
            return await graph_store.query_graph()
        finally:
            await graph_store.close()

    stored = asyncio.run(_query())
    if as_json:
        console.print_json(data=stored.model_dump(mode="json"))
        return

    labels = {n.id: n.label for n in stored.nodes}
    table = Table(title=f"Stored Graph ({len(stored.nodes)} nodes, {len(stored.edges)} edges)")
    table.add_column("Source", style="cyan")
    table.add_column("Relation", style="yellow")
    table.add_column("Target", style="cyan")
    table.add_column("Confidence", justify="right")
    for edge in stored.edges:
        table.add_row(
            labels.get(edge.source, edge.source), edge.label,
            labels.get(edge.target, edge.target), f"{edge.confidence:.2f}",
        )
    console.print(table)


@app.command()
def version():
    """Show version."""
    console.print(f"ctigraph v{__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
