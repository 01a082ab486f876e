"""docquery configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DOCQUERY_GENERATION_MODEL, DOCQUERY_EMBEDDING_MODEL,
                             DOCQUERY_SQL_MODEL, DOCQUERY_DB_PATH)
  3. Per-project docquery.yaml  (current working directory)
  4. Global ~/.docquery/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docquery"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docquery.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token, auth_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # my_secret, client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "generation", "sql", "retrieval", "chunker", "scraper", "store"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (docquery.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class GenerationCfg:
    """Chat model configuration (docquery.yaml: generation:)."""

    model: str = "ollama/llama3.2"
    temperature: float = 0.7
    max_tokens: int = 2048


@dataclass
class SqlCfg:
    """Natural-language-to-SQL configuration (docquery.yaml: sql:)."""

    model: str = "openai/gpt-4"
    temperature: float = 0.1
    max_tokens: int = 2000
    dialect: str = "MySQL"
    max_rows: int = 1000
    read_only: bool = True


@dataclass
class RetrievalCfg:
    """Retrieval configuration (docquery.yaml: retrieval:)."""

    top_k: int = 5
    collection: str = "documents"


@dataclass
class ChunkerCfg:
    """Chunk size and overlap, both in characters (docquery.yaml: chunker:)."""

    chunk_size: int = 1000
    overlap: int = 200


@dataclass
class ScraperCfg:
    """Web scraping configuration (docquery.yaml: scraper:)."""

    request_delay: float = 1.0          # seconds between URLs in a batch
    fetch_timeout: float = 30.0         # seconds, plain HTTP fetch
    navigation_timeout_ms: int = 30_000  # headless browser navigation deadline
    max_urls: int = 10
    max_bytes: int = 5 * 1024 * 1024


@dataclass
class StoreCfg:
    """Vector store location (docquery.yaml: store:)."""

    db_path: str = ".docquery.db"


@dataclass
class DocQueryConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    sql: SqlCfg = field(default_factory=SqlCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    scraper: ScraperCfg = field(default_factory=ScraperCfg)
    store: StoreCfg = field(default_factory=StoreCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: DocQueryConfig) -> None:
    if cfg.chunker.chunk_size < 1:
        raise ConfigError("chunker.chunk_size must be >= 1")
    if not 0 <= cfg.chunker.overlap < cfg.chunker.chunk_size:
        raise ConfigError(
            f"chunker.overlap ({cfg.chunker.overlap}) must be >= 0 and "
            f"strictly less than chunker.chunk_size ({cfg.chunker.chunk_size})"
        )
    if cfg.embedding.dimensions < 1:
        raise ConfigError("embedding.dimensions must be >= 1")
    if cfg.retrieval.top_k < 1:
        raise ConfigError("retrieval.top_k must be >= 1")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DocQueryConfig:
    """Build a *DocQueryConfig* from a merged raw YAML dict."""
    cfg = DocQueryConfig()

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
        )

    if "generation" in data:
        g = data["generation"]
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
        )

    if "sql" in data:
        s = data["sql"]
        cfg.sql = SqlCfg(
            model=str(s.get("model", cfg.sql.model)),
            temperature=float(s.get("temperature", cfg.sql.temperature)),
            max_tokens=int(s.get("max_tokens", cfg.sql.max_tokens)),
            dialect=str(s.get("dialect", cfg.sql.dialect)),
            max_rows=int(s.get("max_rows", cfg.sql.max_rows)),
            read_only=bool(s.get("read_only", cfg.sql.read_only)),
        )

    if "retrieval" in data:
        r = data["retrieval"]
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            collection=str(r.get("collection", cfg.retrieval.collection)),
        )

    if "chunker" in data:
        c = data["chunker"]
        cfg.chunker = ChunkerCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunker.chunk_size)),
            overlap=int(c.get("overlap", cfg.chunker.overlap)),
        )

    if "scraper" in data:
        sc = data["scraper"]
        cfg.scraper = ScraperCfg(
            request_delay=float(sc.get("request_delay", cfg.scraper.request_delay)),
            fetch_timeout=float(sc.get("fetch_timeout", cfg.scraper.fetch_timeout)),
            navigation_timeout_ms=int(
                sc.get("navigation_timeout_ms", cfg.scraper.navigation_timeout_ms)
            ),
            max_urls=int(sc.get("max_urls", cfg.scraper.max_urls)),
            max_bytes=int(sc.get("max_bytes", cfg.scraper.max_bytes)),
        )

    if "store" in data:
        st = data["store"]
        cfg.store = StoreCfg(db_path=str(st.get("db_path", cfg.store.db_path)))

    return cfg


def _apply_env_overrides(cfg: DocQueryConfig) -> DocQueryConfig:
    """Apply DOCQUERY_* environment variable overrides."""
    if model := os.environ.get("DOCQUERY_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("DOCQUERY_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("DOCQUERY_SQL_MODEL"):
        cfg.sql.model = model
    if db_path := os.environ.get("DOCQUERY_DB_PATH"):
        cfg.store.db_path = db_path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocQueryConfig:
    """Load and return a merged *DocQueryConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docquery.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *DocQueryConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is out of range (e.g. chunk overlap >= chunk size).
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.docquery/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# docquery global configuration — model defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
            "\n"
            "generation:\n"
            "  model: ollama/llama3.2\n"
            "\n"
            "sql:\n"
            "  model: openai/gpt-4\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
