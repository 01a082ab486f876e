"""docquery files — list ingested documents and web pages."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from docquery.cli.common import console, load_cli_config, open_app


def files_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the document store (default from config)."),
    ] = None,
) -> None:
    """List every ingested file and URL with its chunk count."""
    cfg = load_cli_config(db)
    app = open_app(cfg)
    try:
        items = asyncio.run(app.list_uploaded_items())
    finally:
        app.close()

    if not items:
        console.print("[yellow]No documents ingested yet.[/]\n  Run:  docquery ingest --file PATH")
        return

    table = Table(title=f"Documents ({len(items)})")
    table.add_column("Key", style="cyan", overflow="fold")
    table.add_column("Kind")
    table.add_column("Chunks", justify="right")
    table.add_column("First seen")
    table.add_column("Title")
    for item in items:
        table.add_row(
            item.key, item.kind, str(item.chunk_count), item.first_seen_at, item.title
        )
    console.print(table)
