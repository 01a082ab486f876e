"""docquery sql — natural-language question → validated SQL.

The schema is read from a sqlite database. By default the query is only
generated, validated and explained (read-only). With --execute it also
runs against that database.

Usage:
  docquery sql "top 5 customers by revenue" --schema-db shop.db
  docquery sql "orders per user" --schema-db shop.db --table users --table orders --execute
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown
from rich.syntax import Syntax
from rich.table import Table

from docquery.app import DocQueryApp
from docquery.cli.common import console, load_cli_config, open_app, require_api_keys
from docquery.cli.errors import (
    err_generation_failed,
    err_no_schema_db,
    err_sql_execution,
    err_sql_rejected,
    err_unknown_tables,
)
from docquery.errors import ExecutionFailed, GenerationFailed, ValidationRejected
from docquery.sql.generator import SQLResult
from docquery.sql.schema_context import generate_summary

_MAX_DISPLAY_ROWS = 50


def sql_cmd(
    question: Annotated[str, typer.Argument(help="Question in plain language.")],
    schema_db: Annotated[
        Path,
        typer.Option("--schema-db", help="sqlite database to introspect (and query)."),
    ],
    table: Annotated[
        list[str] | None,
        typer.Option("--table", help="Table to include in the context (repeatable; default all)."),
    ] = None,
    execute: Annotated[
        bool,
        typer.Option("--execute", help="Disable read-only mode and run the query."),
    ] = False,
    max_rows: Annotated[
        int | None,
        typer.Option("--max-rows", min=1, help="Row ceiling requested from the model."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the document store (default from config)."),
    ] = None,
) -> None:
    """Translate a question to SQL, validate it, and optionally execute it."""
    if not schema_db.is_file():
        console.print(err_no_schema_db(str(schema_db)))
        raise typer.Exit(1)

    cfg = load_cli_config(db)
    require_api_keys(cfg.sql.model)

    app = open_app(cfg)
    try:
        result = asyncio.run(_generate(app, question, schema_db, table or [], execute, max_rows))
    finally:
        app.close()

    _show_result(result)


async def _generate(
    app: DocQueryApp,
    question: str,
    schema_db: Path,
    tables: list[str],
    execute: bool,
    max_rows: int | None,
) -> SQLResult:
    executor = app.connect_database(schema_db)
    schema = executor.schema()
    available = [t.table_name for t in schema]
    console.print(f"[dim]{generate_summary(schema)}[/]")

    unknown = [t for t in tables if t not in available]
    if unknown:
        console.print(err_unknown_tables(unknown, available))
        raise typer.Exit(1)

    with console.status("Generating SQL..."):
        try:
            return await app.generate_sql(
                question,
                schema,
                tables or available,
                read_only=not execute,
                max_rows=max_rows,
            )
        except ValidationRejected as exc:
            console.print(err_sql_rejected(exc.reason, exc.sql))
            raise typer.Exit(1) from exc
        except ExecutionFailed as exc:
            console.print(Syntax(exc.sql, "sql"))
            console.print(err_sql_execution(exc.message))
            raise typer.Exit(1) from exc
        except GenerationFailed as exc:
            console.print(err_generation_failed(str(exc)))
            raise typer.Exit(1) from exc


def _show_result(result: SQLResult) -> None:
    console.print(Syntax(result.sql, "sql", word_wrap=True))
    console.print(Markdown(result.explanation))

    if result.execution is None:
        console.print("[dim]Read-only mode: query was not executed. Use --execute to run it.[/]")
        return

    rows = result.execution.rows
    console.print(
        f"\n[green]✓[/] {len(rows)} row(s) in {result.execution.duration_ms} ms"
    )
    if not rows:
        return
    out = Table(show_lines=False)
    for column in rows[0]:
        out.add_column(str(column))
    for row in rows[:_MAX_DISPLAY_ROWS]:
        out.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(out)
    if len(rows) > _MAX_DISPLAY_ROWS:
        console.print(f"[dim]… {len(rows) - _MAX_DISPLAY_ROWS} more rows[/]")
