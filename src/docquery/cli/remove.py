"""docquery remove — delete every chunk of one file or URL.

Usage:
  docquery remove notes.md
  docquery remove https://example.com/page --yes
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from docquery.app import DocQueryApp
from docquery.cli.common import console, load_cli_config, open_app
from docquery.cli.errors import err_item_not_found


def remove_cmd(
    key: Annotated[str, typer.Argument(help="Filename or URL to remove.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the document store (default from config)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a file or URL and all its chunks from the document store."""
    cfg = load_cli_config(db)
    app = open_app(cfg)
    try:
        asyncio.run(_remove(app, key, yes))
    finally:
        app.close()


async def _remove(app: DocQueryApp, key: str, yes: bool) -> None:
    items = {item.key: item for item in await app.list_uploaded_items()}
    existing = items.get(key)
    if existing is None:
        console.print(err_item_not_found(key))
        raise typer.Exit(0)

    console.print(f"\nRemove {existing.kind}: [bold]{key}[/]")
    console.print(f"  Chunks: {existing.chunk_count}")

    if not yes:
        if not typer.confirm("Confirm removal?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    removed = await app.delete_uploaded_item(key)
    console.print(f"\n[green]✓[/] Removed: {key}")
    console.print(f"  {removed} chunks deleted")
