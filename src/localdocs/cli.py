"""Command line interface for localdocs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from localdocs.config import AppConfig
from localdocs.embedding.provider import create_embedding_provider
from localdocs.errors import LocalDocsError
from localdocs.index.indexer import Indexer
from localdocs.index.search import Searcher
from localdocs.index.storage import SQLiteVectorStore
from localdocs.utils.files import normalize_path


console = Console()
app = typer.Typer(help="localdocs - local semantic search for text documents, served over MCP")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_config(db: Optional[Path], backend: Optional[str]) -> AppConfig:
    overrides: dict[str, object] = {}
    if db is not None:
        overrides["db_path"] = db
    if backend is not None:
        overrides["embedding_backend"] = backend
    try:
        return replace(AppConfig.from_env(), **overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def index(
    root: Path = typer.Argument(..., help="Directory to index.", resolve_path=True),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    backend: Optional[str] = typer.Option(None, help="Embedding backend"),
    chunk_chars: Optional[int] = typer.Option(None, help="Chunk size in characters"),
    overlap: Optional[int] = typer.Option(None, help="Chunk overlap"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index every .md and .txt file under a directory."""
    _setup_logging(verbose)
    config = _load_config(db, backend)
    if chunk_chars is not None:
        config.chunk_chars = chunk_chars
    if overlap is not None:
        config.overlap = overlap

    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    embedder = create_embedding_provider(config)
    store = SQLiteVectorStore(resolved_db, dimension=embedder.dimension)
    try:
        indexer = Indexer(
            embedder,
            store,
            chunk_chars=config.chunk_chars,
            overlap=config.overlap,
            batch_size=config.embed_batch_size,
            embed_timeout=config.embed_timeout,
        )
        console.print(f"Indexing into [bold]{resolved_db}[/bold]...")
        stats = asyncio.run(indexer.index(root))
    except LocalDocsError as exc:
        console.print(f"[red]Error indexing {root}: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        store.close()

    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )
    if stats.failed:
        raise typer.Exit(code=1)


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    path: Optional[str] = typer.Option(None, "--path", help="Only search documents under this path"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    backend: Optional[str] = typer.Option(None, help="Embedding backend"),
    limit: Optional[int] = typer.Option(None, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Execute a semantic search."""
    _setup_logging(verbose)
    config = _load_config(db, backend)
    resolved_db = config.resolve_db_path(Path.cwd())

    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    embedder = create_embedding_provider(config)
    store = SQLiteVectorStore(resolved_db, dimension=embedder.dimension)
    try:
        searcher = Searcher(
            embedder, store, limit=config.search_limit, embed_timeout=config.embed_timeout
        )
        prefix = normalize_path(path) if path else None
        results = asyncio.run(searcher.search(query, path=prefix, limit=limit))
    except LocalDocsError as exc:
        console.print(f"[red]Error searching: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Distance")
    table.add_column("Document")
    table.add_column("Offset")
    table.add_column("Snippet")

    for result in results:
        snippet = result.match.replace("\n", " ")
        table.add_row(
            f"{result.distance:.4f}", result.doc_id, str(result.start_offset), snippet[:180]
        )

    console.print(table)


@app.command()
def prune(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    backend: Optional[str] = typer.Option(None, help="Embedding backend"),
) -> None:
    """Remove documents whose files no longer exist on disk."""
    config = _load_config(db, backend)
    resolved_db = config.resolve_db_path(Path.cwd())

    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to prune.[/yellow]")
        return

    embedder = create_embedding_provider(config)
    store = SQLiteVectorStore(resolved_db, dimension=embedder.dimension)
    try:
        removed = store.remove_missing_files()
    finally:
        store.close()
    console.print(f"Removed {removed} orphaned documents.")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host interface"),
    port: Optional[int] = typer.Option(None, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    backend: Optional[str] = typer.Option(None, help="Embedding backend"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Start the MCP server over streamable HTTP."""
    import uvicorn

    from localdocs.server.app import create_app

    _setup_logging(verbose)
    config = _load_config(db, backend)
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port

    console.print(
        f"MCP HTTP server listening on http://{config.host}:{config.port}/mcp "
        f"(database: {config.resolve_db_path(Path.cwd())})"
    )
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        reload=False,
        log_level="debug" if verbose else "info",
    )
