"""docquery CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from docquery.cli.chat import chat_cmd
from docquery.cli.files import files_cmd
from docquery.cli.ingest import ingest_cmd
from docquery.cli.init import init_cmd
from docquery.cli.query import sql_cmd
from docquery.cli.remove import remove_cmd
from docquery.log import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docquery")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docquery {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docquery",
    help=(
        "docquery — ask questions about your documents and databases.\n\n"
        "  docquery chat  Retrieval-augmented chat over ingested files and web pages.\n"
        "  docquery sql   Natural language → validated SQL against a sqlite database."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging on stderr."),
    ] = False,
) -> None:
    """docquery — ask questions about your documents and databases."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("files")(files_cmd)
app.command("remove")(remove_cmd)
app.command("chat")(chat_cmd)
app.command("sql")(sql_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docquery version."""
    typer.echo(f"docquery {_installed_version()}")


if __name__ == "__main__":
    app()
