"""Shared CLI plumbing: config loading, app construction, key checks."""

from __future__ import annotations

import os
from pathlib import Path

import typer
from rich.console import Console

from docquery.app import DocQueryApp
from docquery.cli.errors import err_config, err_no_api_key
from docquery.config import ConfigError, DocQueryConfig, load_config
from docquery.rag.llm_client import provider_env

console = Console()


def load_cli_config(db: Path | None = None) -> DocQueryConfig:
    """Load merged config, applying the ``--db`` flag last."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.store.db_path = str(db)
    return cfg


def require_api_keys(*models: str) -> None:
    """Exit with an actionable message if any model's provider key is unset."""
    for model in models:
        provider, env_var = provider_env(model)
        if env_var is not None and not os.getenv(env_var):
            console.print(err_no_api_key(provider, env_var))
            raise typer.Exit(1)


def open_app(cfg: DocQueryConfig) -> DocQueryApp:
    return DocQueryApp.from_config(cfg)
