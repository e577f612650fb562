"""Command-line interface for hybridsearch.

Commands:
- index: Index a directory (or one file) of documents
- search: Hybrid vector + keyword search
- status: Show index size and collaborators
- read: Print a slice of an indexed document
- clear: Delete every indexed chunk
- info: Show configuration
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from hybridsearch.config.loader import get_default_config_path, load_config
from hybridsearch.config.schema import AppConfig, MergeStrategy, SearchOptions
from hybridsearch.observability.logging import configure_from_config, get_logger
from hybridsearch.pipelines.indexing import IndexingResult
from hybridsearch.pipelines.search import HybridSearch, SearchError
from hybridsearch.providers.base import ProviderError
from hybridsearch.storage.base import StorageError

app = typer.Typer(
    name="hybridsearch",
    help="Hybrid vector + keyword search over Markdown documents",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

ConfigOption = typer.Option(None, "--config", "-c", help="Config file path")
ProfileOption = typer.Option(None, "--profile", "-p", help="Config profile name")


def _load_config(config_file: Optional[Path], profile: Optional[str] = None) -> AppConfig:
    """Load configuration and setup logging."""
    if config_file is None:
        config_file = get_default_config_path()

    try:
        config = load_config(config_file, profile=profile)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1)

    configure_from_config(config.logging)
    return config


def _build_engine(config: AppConfig) -> HybridSearch:
    try:
        return HybridSearch(config)
    except (ProviderError, StorageError, ValueError) as e:
        console.print(f"[red]Error creating search engine: {e}[/red]")
        raise typer.Exit(1)


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except SearchError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def index(
    path: Optional[Path] = typer.Argument(None, help="File or directory to index (defaults to docs_dir)"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-embed documents even if unchanged"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Index documents into the search index."""
    config = _load_config(config_file, profile)
    _run(_index_async(config, path, force))


async def _index_async(config: AppConfig, path: Optional[Path], force: bool) -> None:
    document: Optional[str] = None

    if path is not None:
        path = path.expanduser()
        if path.is_dir():
            config = config.model_copy(update={"docs_dir": path})
        elif path.is_file():
            try:
                document = path.resolve().relative_to(config.docs_dir.resolve()).as_posix()
            except ValueError:
                # Outside docs_dir: index it relative to its own directory
                config = config.model_copy(update={"docs_dir": path.parent})
                document = path.name
        else:
            console.print(f"[red]Path not found: {path}[/red]")
            raise typer.Exit(1)

    async with _build_engine(config) as engine:
        if document is not None:
            results = [await engine.index_file(document, force=force)]
        else:
            console.print(f"[cyan]Indexing {config.docs_dir} ({config.include})...[/cyan]")
            results = await engine.sync(force=force)

    _print_index_results(results)


def _print_index_results(results: list[IndexingResult]) -> None:
    if not results:
        console.print("[yellow]No files found to index[/yellow]")
        return

    for result in results:
        if result.reason == "removed":
            console.print(f"  [yellow]-[/yellow] Removed: {result.path}")
        elif result.reason == "failed":
            console.print(f"  [red]✗[/red] Failed: {result.path} ({result.error})")
        elif result.updated:
            console.print(f"  [green]✓[/green] Indexed ({result.reason}): {result.path} ({result.chunk_count} chunks)")
        else:
            console.print(f"  [dim]→ Skipped (content unchanged): {result.path}[/dim]")

    indexed = sum(1 for r in results if r.updated and r.reason != "removed")
    console.print(f"\n[green]Indexed {indexed} of {len(results)} document(s)[/green]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    max_results: Optional[int] = typer.Option(None, "--max-results", "-k", min=0, help="Number of results"),
    min_score: Optional[float] = typer.Option(None, "--min-score", min=0.0, help="Minimum fused score"),
    rrf: bool = typer.Option(False, "--rrf", help="Fuse with Reciprocal Rank Fusion"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Search the index."""
    config = _load_config(config_file, profile)

    options = SearchOptions(
        max_results=config.search.max_results if max_results is None else max_results,
        min_score=config.search.min_score if min_score is None else min_score,
    )
    strategy = MergeStrategy.RRF if rrf else None
    _run(_search_async(config, query, options, strategy))


async def _search_async(
    config: AppConfig, query: str, options: SearchOptions, strategy: Optional[MergeStrategy]
) -> None:
    async with _build_engine(config) as engine:
        results = await engine.search(query, options, strategy=strategy)

    if not results:
        console.print("[yellow]No results found[/yellow]")
        return

    console.print(f"\n[green]Found {len(results)} result(s):[/green]\n")
    for i, result in enumerate(results, 1):
        sources = []
        if result.vector_score is not None:
            sources.append(f"vector {result.vector_score:.3f}")
        if result.text_score is not None:
            sources.append(f"text {result.text_score:.3f}")
        console.print(
            f"[bold cyan]{i}. {result.path}:{result.start_line}-{result.end_line}[/bold cyan] "
            f"score {result.score:.4f} [dim]({', '.join(sources)})[/dim]"
        )
        console.print(f"   {result.snippet}")
        console.print()


@app.command()
def status(
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Show index status."""
    config = _load_config(config_file, profile)
    _run(_status_async(config))


async def _status_async(config: AppConfig) -> None:
    async with _build_engine(config) as engine:
        index_status = await engine.status()

    table = Table(title="Index Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Files", str(index_status.files))
    table.add_row("Chunks", str(index_status.chunks))
    table.add_row("Provider", index_status.provider)
    table.add_row("Model", index_status.model)
    table.add_row("Storage", index_status.storage_type)
    console.print(table)


@app.command()
def read(
    path: str = typer.Argument(..., help="Document path relative to docs_dir"),
    from_line: int = typer.Option(1, "--from", min=1, help="First line (1-based)"),
    lines: Optional[int] = typer.Option(None, "--lines", "-n", min=0, help="Number of lines"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Print part of a document."""
    config = _load_config(config_file, profile)
    _run(_read_async(config, path, from_line, lines))


async def _read_async(config: AppConfig, path: str, from_line: int, lines: Optional[int]) -> None:
    async with _build_engine(config) as engine:
        result = await engine.read_file(path, from_line=from_line, lines=lines)
    console.print(result.text, markup=False, highlight=False)


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Delete every indexed chunk."""
    config = _load_config(config_file, profile)
    if not yes:
        typer.confirm("Delete the whole index?", abort=True)
    _run(_clear_async(config))


async def _clear_async(config: AppConfig) -> None:
    async with _build_engine(config) as engine:
        await engine.clear()
    console.print("[green]Index cleared[/green]")


@app.command()
def info(
    config_file: Optional[Path] = ConfigOption,
    profile: Optional[str] = ProfileOption,
):
    """Show configuration."""
    config = _load_config(config_file, profile)

    table = Table(title="hybridsearch Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Docs Directory", str(config.docs_dir))
    table.add_row("Include", config.include)
    table.add_row("Embedding Provider", config.embedding.provider.value)
    table.add_row("Embedding Model", config.embedding.model_name)
    table.add_row("Storage", config.storage.store_type.value)
    table.add_row("Chunk Tokens / Overlap", f"{config.chunking.tokens_per_chunk} / {config.chunking.overlap_tokens}")
    table.add_row("Weights (vector / text)", f"{config.hybrid.vector_weight} / {config.hybrid.text_weight}")
    table.add_row("Merge Strategy", config.hybrid.strategy.value)
    table.add_row("Log Level", config.logging.level.value)

    console.print(table)


if __name__ == "__main__":
    app()
