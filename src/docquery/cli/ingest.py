"""docquery ingest — add files or web pages to the document store.

Usage:
  docquery ingest --file notes.md
  docquery ingest --file report.txt --type text/plain
  docquery ingest --url https://example.com/a --url https://example.com/b
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from docquery.app import DocQueryApp
from docquery.cli.common import console, load_cli_config, open_app, require_api_keys
from docquery.cli.errors import (
    err_file_not_found,
    err_ingest_failed,
    err_unsupported_type,
)
from docquery.errors import IngestionFailed, UnsupportedMediaType
from docquery.ingest.files import guess_media_type


def ingest_cmd(
    file: Annotated[
        list[Path] | None,
        typer.Option("--file", "-f", help="TXT or Markdown file (repeatable)."),
    ] = None,
    media_type: Annotated[
        str | None,
        typer.Option("--type", "-t", help="Media type; guessed from the extension if omitted."),
    ] = None,
    url: Annotated[
        list[str] | None,
        typer.Option("--url", "-u", help="Web page URL (repeatable, max 10)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the document store (default from config)."),
    ] = None,
) -> None:
    """Ingest files or web pages into the document store."""
    files = file or []
    urls = url or []
    if not files and not urls:
        console.print("[red]Error:[/] Nothing to ingest. Use --file PATH or --url URL.")
        raise typer.Exit(1)

    for path in files:
        if not path.is_file():
            console.print(err_file_not_found(str(path)))
            raise typer.Exit(1)

    cfg = load_cli_config(db)
    require_api_keys(cfg.embedding.model)

    app = open_app(cfg)
    try:
        asyncio.run(_ingest_all(app, files, media_type, urls))
    finally:
        app.close()


async def _ingest_all(
    app: DocQueryApp, files: list[Path], media_type: str | None, urls: list[str]
) -> None:
    for path in files:
        await _ingest_file(app, path, media_type)
    if urls:
        await _ingest_urls(app, urls)


async def _ingest_file(app: DocQueryApp, path: Path, media_type: str | None) -> None:
    mt = media_type or guess_media_type(path.name)
    try:
        chunks = await app.ingest_file(path.read_bytes(), path.name, mt)
    except UnsupportedMediaType as exc:
        console.print(err_unsupported_type(str(exc)))
        raise typer.Exit(1) from exc
    console.print(f"[green]✓[/] {path.name}: {len(chunks)} chunks")


async def _ingest_urls(app: DocQueryApp, urls: list[str]) -> None:
    with console.status(f"Scraping {len(urls)} URL(s)..."):
        try:
            result = await app.ingest_urls(urls)
        except IngestionFailed as exc:
            console.print(err_ingest_failed(str(exc)))
            raise typer.Exit(1) from exc

    table = Table(title="Scraped pages", show_lines=False)
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Title")
    table.add_column("Words", justify="right")
    table.add_column("Links", justify="right")
    for summary in result.summaries():
        table.add_row(
            summary["url"],
            summary["title"],
            str(summary["wordCount"]),
            str(summary["linkCount"]),
        )
    console.print(table)
    console.print(
        f"[green]✓[/] Scraped {result.succeeded}/{result.requested} URLs, "
        f"{len(result.chunks)} chunks stored"
    )
