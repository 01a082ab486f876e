"""docquery chat — ask questions about ingested content.

With MESSAGE, answers once. Without it, starts an interactive session whose
conversation memory lasts until exit. Session commands:
  /clear    forget the conversation so far
  /history  print the conversation so far
  /exit     leave (also: Ctrl-D)
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown

from docquery.app import DocQueryApp
from docquery.cli.common import console, load_cli_config, open_app, require_api_keys
from docquery.cli.errors import err_generation_failed
from docquery.errors import GenerationFailed


def chat_cmd(
    message: Annotated[
        str | None,
        typer.Argument(help="Question to ask. Omit for an interactive session."),
    ] = None,
    select: Annotated[
        list[str] | None,
        typer.Option("--select", "-s", help="Restrict retrieval to this file or URL (repeatable)."),
    ] = None,
    multi: Annotated[
        bool,
        typer.Option("--multi", help="Multi-select mode: search only the --select items."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the document store (default from config)."),
    ] = None,
) -> None:
    """Chat with your documents using retrieval-augmented generation."""
    cfg = load_cli_config(db)
    require_api_keys(cfg.embedding.model, cfg.generation.model)

    if select and not multi:
        console.print("[yellow]Note:[/] --select has no effect without --multi.")

    app = open_app(cfg)
    try:
        if message is not None:
            asyncio.run(_ask(app, message, select or [], multi))
        else:
            asyncio.run(_session(app, select or [], multi))
    finally:
        app.close()


async def _ask(app: DocQueryApp, message: str, selected: list[str], multi: bool) -> None:
    with console.status("Thinking..."):
        try:
            reply = await app.chat(message, selected, multi)
        except GenerationFailed as exc:
            console.print(err_generation_failed(str(exc)))
            raise typer.Exit(1) from exc
    console.print(Markdown(reply.response))


async def _session(app: DocQueryApp, selected: list[str], multi: bool) -> None:
    console.print("[dim]Interactive chat. /clear, /history, /exit.[/]")
    while True:
        try:
            line = console.input("[bold cyan]you>[/] ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line == "/exit":
            break
        if line == "/clear":
            await app.clear_memory()
            console.print("[dim]Conversation cleared.[/]")
            continue
        if line == "/history":
            history = await app.get_history()
            if history:
                console.print(history, markup=False)
            else:
                console.print("[dim](empty)[/]")
            continue
        try:
            await _ask(app, line, selected, multi)
        except typer.Exit:
            continue
