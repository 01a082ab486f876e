"""Vector store adapter: embeds chunks on write, embeds queries on read.

The collection is resolved lazily on first use. Search failures degrade to
an empty result (chat keeps working with "no context"); write failures
propagate so ingestion errors stay visible.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from docquery.db.filters import ByFilename, Filter, content_filter, key_filter
from docquery.db.index import SqliteVectorIndex, VectorCollection
from docquery.db.models import Chunk, DocumentMetadata, UploadedItem, metadata_from_dict
from docquery.errors import RetrievalDegraded
from docquery.rag.llm_client import Embeddings

logger = logging.getLogger(__name__)


class VectorStore:
    """Embedding-aware facade over one named collection of a vector index.

    Args:
        index: Vector index providing get-or-create by name.
        embeddings: Embedding provider used for both chunks and queries.
        collection_name: Collection that holds every ingested chunk.
    """

    def __init__(
        self,
        index: SqliteVectorIndex,
        embeddings: Embeddings,
        collection_name: str = "documents",
    ) -> None:
        self._index = index
        self._embeddings = embeddings
        self.collection_name = collection_name
        self._collection: VectorCollection | None = None
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> VectorCollection:
        """Get or create the collection. Safe under concurrent first use."""
        if self._collection is not None:
            return self._collection
        async with self._init_lock:
            if self._collection is None:
                self._collection = self._index.get_or_create_collection(
                    self.collection_name,
                    metadata={"description": "Document chunks for RAG"},
                )
        return self._collection

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def add_documents(self, chunks: list[Chunk]) -> None:
        """Embed *chunks* and store them with their vectors.

        Nothing is stored unless every chunk has been embedded; errors
        propagate to the caller.
        """
        if not chunks:
            return
        collection = await self.initialize()
        vectors = await self._embeddings.embed_documents([c.content for c in chunks])
        if len(vectors) != len(chunks):
            raise ValueError(
                f"Embedding provider returned {len(vectors)} vectors for {len(chunks)} chunks"
            )
        async with self._write_lock:
            collection.add(
                ids=[c.id for c in chunks],
                texts=[c.content for c in chunks],
                vectors=vectors,
                metadatas=[c.metadata.to_dict() for c in chunks],
            )
        logger.info("Stored %d chunks in '%s'", len(chunks), self.collection_name)

    async def delete_document(self, key: str) -> int:
        """Remove every chunk whose filename or url equals *key*.

        Returns the number of chunks removed; an unknown key removes nothing.
        """
        collection = await self.initialize()
        async with self._write_lock:
            found = collection.get(where=key_filter(key))
            if not found.ids:
                return 0
            removed = collection.delete(found.ids)
        logger.info("Deleted %d chunks for '%s'", removed, key)
        return removed

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def search(self, query: str, k: int = 5) -> list[str]:
        """Similarity search across the whole corpus."""
        return await self._search(query, k, where=None)

    async def search_in_documents(
        self, query: str, filenames: Iterable[str], k: int = 5
    ) -> list[str]:
        """Similarity search restricted to chunks of the given filenames."""
        return await self._search(query, k, where=ByFilename(filenames))

    async def search_in_content(
        self, query: str, names: Iterable[str], k: int = 5
    ) -> list[str]:
        """Similarity search restricted to a mixed selection of filenames and URLs."""
        return await self._search(query, k, where=content_filter(names))

    async def _search(self, query: str, k: int, where: Filter | None) -> list[str]:
        try:
            collection = await self.initialize()
            vector = await self._embeddings.embed_query(query)
            return collection.query(vector, k=k, where=where)
        except Exception as exc:  # any provider or store failure degrades
            degraded = RetrievalDegraded(f"Vector search failed: {exc}")
            logger.error("%s", degraded, exc_info=exc)
            return []

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    async def get_uploaded_files(self) -> list[UploadedItem]:
        """One entry per unique filename or url, in first-ingested order."""
        collection = await self.initialize()
        result = collection.get()

        items: dict[str, UploadedItem] = {}
        for raw in result.metadatas:
            meta = metadata_from_dict(raw)
            if isinstance(meta, DocumentMetadata):
                key, kind, seen_at, title = meta.filename, "document", meta.uploaded_at, ""
            else:
                key, kind, seen_at, title = meta.url, "web", meta.scraped_at, meta.title

            item = items.get(key)
            if item is None:
                item = items[key] = UploadedItem(
                    key=key, kind=kind, first_seen_at=seen_at, title=title
                )
            item.chunk_count += 1
            if seen_at and (not item.first_seen_at or seen_at < item.first_seen_at):
                item.first_seen_at = seen_at
        return list(items.values())
