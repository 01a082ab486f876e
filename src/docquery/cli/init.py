"""docquery init — set up a working directory for docquery.

Creates:
  .docquery.db              — empty document store with schema (store.db_path)
  docquery.yaml             — project config with commented defaults
  ~/.docquery/config.yaml   — global model config (created once, mode 0o600)

Existing files are left untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from docquery.cli.common import console
from docquery.cli.errors import err_config
from docquery.config import ConfigError, ensure_global_config, load_config
from docquery.db.connection import Database
from docquery.db.schema import initialize

_PROJECT_CONFIG = """\
# docquery project configuration. API keys belong in environment variables.

# generation:
#   model: ollama/llama3.2
#   temperature: 0.7

# embedding:
#   model: openai/text-embedding-3-small
#   dimensions: 1536

# sql:
#   model: openai/gpt-4
#   dialect: MySQL
#   max_rows: 1000

# retrieval:
#   top_k: 5

# chunker:
#   chunk_size: 1000
#   overlap: 200

# scraper:
#   request_delay: 1.0
#   max_urls: 10

# store:
#   db_path: .docquery.db
"""


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
) -> None:
    """Create the document store and config files."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    db_path = Path(cfg.store.db_path)
    if not db_path.is_absolute():
        db_path = project_dir / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = Database(db_path).connect()
    try:
        initialize(conn)
    finally:
        conn.close()
    console.print(f"  [green]✓[/] {_display_path(db_path, project_dir)}")

    cfg_file = project_dir / "docquery.yaml"
    if cfg_file.exists():
        console.print("  [dim]- docquery.yaml exists, left unchanged[/]")
    else:
        cfg_file.write_text(_PROJECT_CONFIG, encoding="utf-8")
        console.print("  [green]✓[/] docquery.yaml")

    _update_gitignore(project_dir, db_path)

    global_path = ensure_global_config()
    console.print(f"  [green]✓[/] {global_path} (global config)")

    console.print("\nNext steps:")
    console.print("  1. docquery ingest --file notes.md      (add documents)")
    console.print("  2. docquery chat \"what do my notes say?\"")


def _display_path(path: Path, project_dir: Path) -> str:
    try:
        return path.relative_to(project_dir).as_posix()
    except ValueError:
        return str(path)


def _update_gitignore(project_dir: Path, db_path: Path) -> None:
    """Add the store file to .gitignore if one already exists.

    Stores outside *project_dir* are not listed.
    """
    gitignore = project_dir / ".gitignore"
    if not gitignore.exists():
        return
    try:
        entry = db_path.relative_to(project_dir).as_posix()
    except ValueError:
        return
    if entry in gitignore.read_text(encoding="utf-8").splitlines():
        return
    with gitignore.open("a", encoding="utf-8") as f:
        f.write(f"\n# docquery\n{entry}\n")
    console.print("  [green]✓[/] .gitignore (updated)")
