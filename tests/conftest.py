"""Shared pytest fixtures."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import yaml

from docquery.app import DocQueryApp
from docquery.config import DocQueryConfig
from docquery.db.connection import Database
from docquery.db.index import SqliteVectorIndex
from docquery.db.schema import initialize
from docquery.rag.llm_client import ModelResponse
from docquery.rag.vector_store import VectorStore

EMBED_MODEL = "test/keyword-embedder"
VOCAB = ("cat", "dog", "fish", "bird")


class KeywordEmbeddings:
    """Deterministic 4-dim embedder: one axis per vocabulary word."""

    dimensions = len(VOCAB)

    def __init__(self) -> None:
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    @staticmethod
    def vector(text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(word)) + 0.01 for word in VOCAB]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self.vector(t) for t in texts]

    async def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self.vector(text)


class ScriptedModel:
    """Chat model that replays canned replies and records prompts."""

    def __init__(self, *replies: str | Exception) -> None:
        self.replies = list(replies) or ["ok"]
        self.prompts: list[str] = []

    async def invoke(self, prompt: str) -> ModelResponse:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return ModelResponse(content=reply)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".docquery.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture
def scripted_model() -> type[ScriptedModel]:
    """The ScriptedModel class, for tests that need custom replies."""
    return ScriptedModel


@pytest.fixture
def index(tmp_db) -> SqliteVectorIndex:
    return SqliteVectorIndex(tmp_db, EMBED_MODEL, KeywordEmbeddings.dimensions)


@pytest.fixture
def store(index, embeddings) -> VectorStore:
    return VectorStore(index, embeddings, "documents")


@pytest.fixture
def test_config(tmp_path) -> DocQueryConfig:
    cfg = DocQueryConfig()
    cfg.embedding.model = EMBED_MODEL
    cfg.embedding.dimensions = KeywordEmbeddings.dimensions
    cfg.store.db_path = str(tmp_path / ".docquery.db")
    cfg.scraper.request_delay = 0
    return cfg


@pytest.fixture
def make_app(test_config, embeddings):
    """Build DocQueryApp instances on the tmp database; all closed after the test."""
    apps: list[DocQueryApp] = []

    def _make(chat_model=None, sql_model=None) -> DocQueryApp:
        app = DocQueryApp.from_config(
            test_config,
            embeddings=embeddings,
            chat_model=chat_model or ScriptedModel("chat reply"),
            sql_model=sql_model or ScriptedModel("SELECT 1"),
        )
        apps.append(app)
        return app

    yield _make
    for app in apps:
        app.close()


@pytest.fixture
def cli_env(tmp_path, monkeypatch, embeddings):
    """Run CLI commands inside tmp_path against fake models.

    Returns a namespace whose ``chat``, ``sql`` and ``scraper`` attributes
    are used by every app the commands open; tests may replace them.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("docquery.config._GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")
    for var in ("DOCQUERY_GENERATION_MODEL", "DOCQUERY_EMBEDDING_MODEL", "DOCQUERY_SQL_MODEL", "DOCQUERY_DB_PATH"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "docquery.yaml").write_text(
        yaml.dump(
            {
                "embedding": {"model": EMBED_MODEL, "dimensions": KeywordEmbeddings.dimensions},
                "generation": {"model": "ollama/llama3.2"},
                "sql": {"model": "ollama/sqlcoder"},
                "scraper": {"request_delay": 0},
            }
        ),
        encoding="utf-8",
    )

    env = SimpleNamespace(
        chat=ScriptedModel("chat reply"),
        sql=ScriptedModel("SELECT 1"),
        scraper=None,
        db=tmp_path / ".docquery.db",
    )

    def _open(cfg):
        app = DocQueryApp.from_config(
            cfg, embeddings=embeddings, chat_model=env.chat, sql_model=env.sql
        )
        if env.scraper is not None:
            app.scraper = env.scraper
        return app

    for module in ("ingest", "files", "remove", "chat", "query"):
        monkeypatch.setattr(f"docquery.cli.{module}.open_app", _open)
    return env
