"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from intellipen.application.manager import SuggestionApplicationManager
from intellipen.clients.llm_client import LLMClient
from intellipen.clients.providers import ClaudeProofreader, ClaudeRewriter, ClaudeWriter
from intellipen.config import AppConfig, load_config
from intellipen.learning.preference_learning import UserPreferenceLearning
from intellipen.learning.store import SQLiteStore
from intellipen.models.analysis import WritingAnalysis
from intellipen.pipeline.analysis_pipeline import TextAnalysisPipeline
from intellipen.pipeline.engine import WritingEngine
from intellipen.text_source import InMemoryTextSource

app = typer.Typer(
    name="intellipen",
    help="Local writing suggestions: grammar, style and tone checks with learned ranking",
    no_args_is_help=True,
)
console = Console()

SEVERITY_STYLES = {"error": "red", "warning": "yellow", "suggestion": "cyan"}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_pipeline(config: AppConfig) -> tuple[TextAnalysisPipeline, LLMClient]:
    llm = LLMClient(
        timeout=config.llm.timeout,
        model=config.llm.model,
        max_retries=config.llm.max_retries,
    )
    engine = WritingEngine(
        ClaudeProofreader(llm),
        ClaudeWriter(llm),
        cache_size=config.pipeline.cache_size,
    )
    pipeline = TextAnalysisPipeline(
        engine,
        debounce_ms=config.pipeline.debounce_ms,
        max_queue_size=config.pipeline.max_queue_size,
        min_confidence=config.pipeline.min_confidence,
        long_sentence_words=config.pipeline.long_sentence_words,
    )
    return pipeline, llm


def _build_learning(config: AppConfig) -> UserPreferenceLearning:
    return UserPreferenceLearning(
        SQLiteStore(config.store.resolved_db_path),
        min_sample_size=config.learning.min_sample_size,
        decay_factor=config.learning.decay_factor,
        session_window_seconds=config.learning.session_window_seconds,
    )


def _read_text(file: Path) -> str:
    if not file.exists():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)
    return file.read_text(encoding="utf-8")


def _print_analysis(analysis: WritingAnalysis) -> None:
    if analysis.metadata.error:
        console.print(f"[yellow]Analysis incomplete: {analysis.metadata.error}[/yellow]")
    if not analysis.has_suggestions:
        console.print("[green]No suggestions.[/green]")
        return

    table = Table(title=f"Suggestions ({analysis.total_issues})")
    table.add_column("Range", style="dim")
    table.add_column("Type")
    table.add_column("Original")
    table.add_column("Replacement")
    table.add_column("Why")
    for s in analysis.suggestions:
        color = SEVERITY_STYLES.get(s.severity, "white")
        table.add_row(
            f"{s.range.start}-{s.range.end}",
            f"[{color}]{s.type}[/{color}]",
            s.original,
            s.replacement,
            s.explanation,
        )
    console.print(table)

    text_type = analysis.metadata.context.get("text_type")
    readability = analysis.metadata.context.get("readability_score")
    if text_type is not None:
        console.print(
            f"[dim]Detected {text_type} | readability {readability} | "
            f"{analysis.metadata.processing_time:.0f} ms[/dim]"
        )


@app.command()
def check(
    file: Path = typer.Argument(help="Text file to analyze"),
    platform: str = typer.Option("", "--platform", "-p", help="Host the text is written for, e.g. gmail.com"),
    as_json: bool = typer.Option(False, "--json", help="Print the analysis as JSON"),
) -> None:
    """Analyze a text file and list suggestions."""
    text = _read_text(file)
    config = load_config()
    pipeline, llm = _build_pipeline(config)

    try:
        with console.status("Analyzing..."):
            analysis = asyncio.run(pipeline.analyze(text, {"platform": platform}))
    finally:
        pipeline.destroy()

    if as_json:
        console.print_json(analysis.model_dump_json())
        return

    _print_analysis(analysis)
    usage = llm.get_token_summary()
    console.print(f"[dim]Tokens: {usage['input']} in / {usage['output']} out over {usage['calls']} calls[/dim]")


@app.command()
def fix(
    file: Path = typer.Argument(help="Text file to correct"),
    platform: str = typer.Option("", "--platform", "-p", help="Host the text is written for, e.g. gmail.com"),
    output: Path = typer.Option(None, "--output", "-o", help="Output path (default: <name>.fixed<ext>)"),
) -> None:
    """Analyze a file, rank suggestions by learned preference and apply them."""
    text = _read_text(file)
    config = load_config()
    pipeline, llm = _build_pipeline(config)
    learning = _build_learning(config)
    source = InMemoryTextSource(text, platform=platform, kind="file")
    manager = SuggestionApplicationManager(
        ClaudeRewriter(llm),
        learning=learning,
        max_history_size=config.history.max_size,
        edit_debounce_ms=config.history.edit_debounce_ms,
    )

    async def _run():
        analysis = await pipeline.analyze(text, {"platform": platform})
        ranked = learning.filter_suggestions(
            analysis.suggestions,
            source,
            threshold=config.learning.threshold,
            max_suggestions=config.learning.max_suggestions,
        )
        kept = {r.id for r in ranked}
        for s in analysis.suggestions:
            if s.id not in kept:
                learning.record_action(s, "ignored", source)
        return analysis, await manager.apply_batch(ranked, source)

    try:
        with console.status("Analyzing and applying..."):
            analysis, batch = asyncio.run(_run())
    finally:
        pipeline.destroy()
        manager.destroy()
        learning.close()

    if analysis.metadata.error:
        console.print(f"[yellow]Analysis incomplete: {analysis.metadata.error}[/yellow]")

    applied = [r for r in batch.results if r.success]
    for r in batch.results:
        if not r.success:
            console.print(f"[yellow]Skipped {r.suggestion.type} at {r.suggestion.range.start}: {r.error}[/yellow]")

    if output is None:
        output = file.with_name(f"{file.stem}.fixed{file.suffix}")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(source.get_text(), encoding="utf-8")
    console.print(f"[green]Applied {len(applied)} of {len(analysis.suggestions)} suggestions: {output}[/green]")


@app.command()
def insights(
    as_json: bool = typer.Option(False, "--json", help="Print the raw export as JSON"),
) -> None:
    """Show what has been learned about accepted suggestions."""
    config = load_config()
    learning = _build_learning(config)

    if as_json:
        console.print_json(json.dumps(learning.export_learning_data()))
        return

    data = learning.get_learning_insights()
    progress = data["learning_progress"]
    console.print(Panel(
        f"Seen: {data['total_suggestions']:.1f} | Applied: {data['applied_suggestions']:.1f}\n"
        f"Patterns: {progress['total_patterns']} ({progress['mature_patterns']} mature, "
        f"{progress['maturity_rate']:.0%})\n"
        f"Data quality: {progress['data_quality']}",
        title="Learning",
    ))

    if data["preferred_types"]:
        table = Table(title="Acceptance by type")
        table.add_column("Type")
        table.add_column("Rate", justify="right")
        table.add_column("Seen", justify="right")
        for item in data["preferred_types"]:
            table.add_row(item["type"], f"{item['acceptance_rate']:.0%}", f"{item['total_seen']:.1f}")
        console.print(table)


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all learned preference data."""
    if not yes and not typer.confirm("Delete all learned preferences?"):
        raise typer.Exit()
    config = load_config()
    learning = _build_learning(config)
    learning.clear_learning_data()
    console.print("[green]Learning data cleared.[/green]")


if __name__ == "__main__":
    app()
