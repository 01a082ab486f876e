"""docquery rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docquery.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_api_key(provider: str, env_var: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(message)}\n"
        "  Fix docquery.yaml (or ~/.docquery/config.yaml) and retry."
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{escape(path)}'\n"
        "  Check the path and retry."
    )


def err_unsupported_type(message: str) -> str:
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  Convert the file to .txt or .md, or pass --type text/plain."
    )


def err_ingest_failed(message: str) -> str:
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  Check the URLs are reachable http(s) pages and retry."
    )


def err_generation_failed(message: str) -> str:
    """Model call failed. Provider detail is in the debug log only."""
    return (
        f"[red]Error:[/] {escape(message)}.\n"
        "  Check the model is reachable; rerun with --verbose for details."
    )


def err_sql_rejected(reason: str, sql: str) -> str:
    return (
        "[red]Error:[/] Generated SQL query is invalid or unsafe.\n"
        f"  Reason: {escape(reason)}\n"
        f"  SQL:\n{escape(sql)}\n"
        "  Rephrase the question; nothing was executed."
    )


def err_sql_execution(message: str) -> str:
    return (
        f"[red]Error:[/] Query execution failed: {escape(message)}\n"
        "  Inspect the generated SQL above against the database."
    )


def err_no_schema_db(path: str) -> str:
    return (
        f"[red]Error:[/] No database found at '{escape(path)}'.\n"
        "  Pass an existing sqlite file:  docquery sql QUESTION --schema-db PATH"
    )


def err_unknown_tables(names: list[str], available: list[str]) -> str:
    return (
        f"[red]Error:[/] Unknown table(s): {escape(', '.join(names))}\n"
        f"  Available tables: {escape(', '.join(available)) or '(none)'}"
    )


def err_item_not_found(key: str) -> str:
    return (
        f"[yellow]Not found:[/] '{escape(key)}' is not in the document store.\n"
        "  Run:  docquery files  to see all ingested items."
    )
