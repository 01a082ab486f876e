"""Application context: constructs, owns and disposes every docquery service.

One ``DocQueryApp`` per process (or per test). Services are injected at
construction; ``from_config`` builds the default sqlite/LiteLLM stack.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from docquery.config import DocQueryConfig
from docquery.db.connection import Database
from docquery.db.index import SqliteVectorIndex
from docquery.db.models import Chunk, ScrapedContent, UploadedItem
from docquery.db.schema import initialize
from docquery.errors import ScrapeFailed
from docquery.ingest.files import FileExtractor
from docquery.ingest.plaintext import PlainTextChunker
from docquery.ingest.web import WebScraper, validate_urls
from docquery.rag.conversation import ChatReply, ConversationEngine
from docquery.rag.llm_client import (
    ChatModel,
    Embeddings,
    LiteLLMChatModel,
    LiteLLMEmbeddings,
)
from docquery.rag.memory import ConversationMemory
from docquery.rag.vector_store import VectorStore
from docquery.sql.executor import SqliteExecutor, SqlExecutor
from docquery.sql.generator import SQLEngine, SQLResult
from docquery.sql.schema_context import TableSchema

logger = logging.getLogger(__name__)


@dataclass
class WebIngestResult:
    """Outcome of one URL batch: stored chunks plus per-page summaries."""

    chunks: list[Chunk] = field(default_factory=list)
    pages: list[ScrapedContent] = field(default_factory=list)
    requested: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.pages)

    def summaries(self) -> list[dict[str, Any]]:
        return [
            {
                "url": page.url,
                "title": page.title,
                "wordCount": page.metadata.word_count,
                "description": page.metadata.description,
                "author": page.metadata.author,
                "publishedDate": page.metadata.published_date,
                "linkCount": len(page.metadata.links),
            }
            for page in self.pages
        ]


class DocQueryApp:
    """Top-level service container exposing the user-facing operations.

    Args:
        config: Merged configuration.
        store: Vector store adapter for ingested chunks.
        conversation: Chat engine (owns memory and retrieval).
        sql_model: Model used by the SQL engine.
        extractor: File extractor.
        scraper: Web scraper.
        executor: SQL executor; ``None`` until a database is connected.
        connection: sqlite connection backing *store*, closed by ``close()``.
    """

    def __init__(
        self,
        config: DocQueryConfig,
        store: VectorStore,
        conversation: ConversationEngine,
        sql_model: ChatModel,
        extractor: FileExtractor | None = None,
        scraper: WebScraper | None = None,
        executor: SqlExecutor | None = None,
        connection: sqlite3.Connection | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.conversation = conversation
        self._sql_model = sql_model
        self.extractor = extractor or FileExtractor(
            config.chunker.chunk_size, config.chunker.overlap
        )
        self.scraper = scraper or WebScraper(
            config.scraper,
            chunker=PlainTextChunker(config.chunker.chunk_size, config.chunker.overlap),
        )
        self.executor = executor
        self._connection = connection

    @classmethod
    def from_config(
        cls,
        config: DocQueryConfig,
        *,
        embeddings: Embeddings | None = None,
        chat_model: ChatModel | None = None,
        sql_model: ChatModel | None = None,
    ) -> DocQueryApp:
        """Open the vector database and build the default service graph."""
        conn = Database(config.store.db_path).connect()
        initialize(conn)

        index = SqliteVectorIndex(conn, config.embedding.model, config.embedding.dimensions)
        store = VectorStore(
            index,
            embeddings or LiteLLMEmbeddings(config.embedding.model),
            config.retrieval.collection,
        )
        conversation = ConversationEngine(
            chat_model
            or LiteLLMChatModel(
                config.generation.model,
                temperature=config.generation.temperature,
                max_tokens=config.generation.max_tokens,
            ),
            ConversationMemory(),
            store,
            top_k=config.retrieval.top_k,
        )
        return cls(
            config,
            store,
            conversation,
            sql_model
            or LiteLLMChatModel(
                config.sql.model,
                temperature=config.sql.temperature,
                max_tokens=config.sql.max_tokens,
            ),
            connection=conn,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DocQueryApp:
        return self

    async def __aexit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self.disconnect_database()
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def connect_database(self, path: Path | str) -> SqliteExecutor:
        """Open *path* as the active SQL database, replacing any previous one."""
        self.disconnect_database()
        executor = SqliteExecutor(path)
        executor.connect()
        self.executor = executor
        return executor

    def disconnect_database(self) -> None:
        if isinstance(self.executor, SqliteExecutor):
            self.executor.close()
        self.executor = None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_file(self, raw: bytes, name: str, media_type: str) -> list[Chunk]:
        chunks = self.extractor.extract(raw, name, media_type)
        await self.store.add_documents(chunks)
        return chunks

    async def ingest_urls(self, urls: list[str]) -> WebIngestResult:
        """Scrape, chunk and store a batch of URLs.

        Raises:
            IngestionFailed: No valid URLs, or too many.
            ScrapeFailed: Every URL in the batch failed.
        """
        valid = validate_urls(urls, self.config.scraper.max_urls)
        pages = await self.scraper.scrape_many(valid)
        if not pages:
            raise ScrapeFailed(None, f"all {len(valid)} URL(s) failed")

        chunks = self.scraper.process_many(pages)
        await self.store.add_documents(chunks)
        logger.info(
            "Ingested %d/%d URLs as %d chunks", len(pages), len(valid), len(chunks)
        )
        return WebIngestResult(chunks=chunks, pages=pages, requested=len(valid))

    # ------------------------------------------------------------------
    # Corpus management
    # ------------------------------------------------------------------

    async def list_uploaded_items(self) -> list[UploadedItem]:
        return await self.store.get_uploaded_files()

    async def delete_uploaded_item(self, key: str) -> int:
        return await self.store.delete_document(key)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        message: str,
        selected_keys: list[str] | None = None,
        multi_select_mode: bool = False,
    ) -> ChatReply:
        return await self.conversation.chat(message, selected_keys, multi_select_mode)

    async def clear_memory(self) -> None:
        await self.conversation.clear_memory()

    async def get_history(self) -> str:
        return await self.conversation.get_history()

    # ------------------------------------------------------------------
    # SQL
    # ------------------------------------------------------------------

    async def generate_sql(
        self,
        question: str,
        schema: list[TableSchema],
        selected_tables: list[str],
        read_only: bool | None = None,
        max_rows: int | None = None,
    ) -> SQLResult:
        """Generate (and, when not read-only, execute) SQL for *question*.

        Defaults for *read_only* and *max_rows* come from the ``sql`` config.
        """
        engine = SQLEngine(
            self._sql_model, self.executor or _Disconnected(), self.config.sql.dialect
        )
        return await engine.generate(
            question,
            schema,
            selected_tables,
            read_only=self.config.sql.read_only if read_only is None else read_only,
            max_rows=self.config.sql.max_rows if max_rows is None else max_rows,
        )


class _Disconnected:
    """Executor stand-in before any database is connected."""

    def is_connected(self) -> bool:
        return False

    async def execute(self, sql: str) -> list[dict[str, Any]]:
        raise sqlite3.ProgrammingError("No active database connection")
