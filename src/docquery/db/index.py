"""Vector index on SQLite + sqlite-vec: named collections of embedded chunks.

Single interface for: collection get-or-create, atomic add, KNN query with
optional metadata filter, metadata scan, and delete by id.
Each collection owns one vec0 table per embedding model (ensure_vec_table);
the chunks table keeps content + JSON metadata keyed by the same rowid.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from docquery.db.filters import Filter, compile_filter
from docquery.db.vectors import ensure_vec_table

logger = logging.getLogger(__name__)


@dataclass
class GetResult:
    ids: list[str] = field(default_factory=list)
    metadatas: list[dict[str, Any]] = field(default_factory=list)


class SqliteVectorIndex:
    """Collection registry over an open sqlite-vec connection.

    The connection is owned by the caller and must be closed after use.
    """

    def __init__(
        self, conn: sqlite3.Connection, embedding_model: str, dimensions: int
    ) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see docquery.db.schema.initialize).
            embedding_model: Model string the stored vectors come from.
            dimensions: Vector length produced by *embedding_model*.
        """
        self._conn = conn
        self._model = embedding_model
        self._dimensions = dimensions

    def get_or_create_collection(
        self, name: str, metadata: dict[str, Any] | None = None
    ) -> VectorCollection:
        """Return collection *name*, creating it on first use.

        Idempotent: a second creator sees the row inserted by the first.
        """
        cur = self._conn.execute(
            "INSERT OR IGNORE INTO collections (name, metadata) VALUES (?, ?)",
            (name, json.dumps(metadata or {})),
        )
        self._conn.commit()
        if cur.rowcount:
            logger.info("Created vector collection '%s'", name)
        vec_table = ensure_vec_table(self._conn, name, self._model, self._dimensions)
        return VectorCollection(self._conn, name, vec_table, self._dimensions)

    def list_collections(self) -> list[str]:
        rows = self._conn.execute("SELECT name FROM collections ORDER BY name").fetchall()
        return [r["name"] for r in rows]


class VectorCollection:
    """One named collection: ids, texts, vectors and metadata."""

    def __init__(
        self, conn: sqlite3.Connection, name: str, vec_table: str, dimensions: int
    ) -> None:
        self._conn = conn
        self.name = name
        self._vec_table = vec_table
        self._dimensions = dimensions

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(
        self,
        ids: list[str],
        texts: list[str],
        vectors: list[list[float]],
        metadatas: list[dict[str, Any]],
    ) -> None:
        """Store chunks with their vectors in a single transaction.

        An id that already exists in the collection is replaced, so
        re-ingesting a source is idempotent per chunk index. Either every
        row is written with its vector or nothing is.
        """
        if not (len(ids) == len(texts) == len(vectors) == len(metadatas)):
            raise ValueError("ids, texts, vectors and metadatas must have equal length")
        for vector in vectors:
            if len(vector) != self._dimensions:
                raise ValueError(
                    f"Embedding has {len(vector)} dimensions, collection expects {self._dimensions}"
                )

        with self._conn:
            for id_, text, vector, meta in zip(ids, texts, vectors, metadatas):
                self._delete_rowids(self._rowids_for_ids([id_]))
                cur = self._conn.execute(
                    "INSERT INTO chunks (collection, id, content, metadata) VALUES (?, ?, ?, ?)",
                    (self.name, id_, text, json.dumps(meta)),
                )
                self._conn.execute(
                    f"INSERT INTO {self._vec_table}(rowid, embedding) VALUES (?, ?)",
                    (cur.lastrowid, json.dumps(vector)),
                )

    def delete(self, ids: list[str]) -> int:
        """Delete chunks (and their vectors) by id. Returns the number removed."""
        if not ids:
            return 0
        with self._conn:
            return self._delete_rowids(self._rowids_for_ids(ids))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(
        self, vector: list[float], k: int = 5, where: Filter | None = None
    ) -> list[str]:
        """Nearest-neighbour search. Returns up to *k* texts, closest first."""
        if k < 1:
            return []
        if where is None:
            rows = self._conn.execute(
                f"SELECT rowid, distance FROM {self._vec_table} "
                "WHERE embedding MATCH ? ORDER BY distance LIMIT ?",
                (json.dumps(vector), k),
            ).fetchall()
            return [
                text
                for text in (self._content_for_rowid(r["rowid"]) for r in rows)
                if text is not None
            ]

        # Filtered search scans the matching subset with an exact distance.
        predicate, params = compile_filter(where, column="c.metadata")
        rows = self._conn.execute(
            f"""
            SELECT c.content, vec_distance_l2(v.embedding, ?) AS distance
            FROM chunks c JOIN {self._vec_table} v ON v.rowid = c.rowid
            WHERE c.collection = ? AND ({predicate})
            ORDER BY distance LIMIT ?
            """,  # noqa: S608
            [json.dumps(vector), self.name, *params, k],
        ).fetchall()
        return [r["content"] for r in rows]

    def get(self, where: Filter | None = None, limit: int | None = None) -> GetResult:
        """Return ids and metadata of stored chunks, in insertion order."""
        sql = "SELECT id, metadata FROM chunks WHERE collection = ?"
        params: list[Any] = [self.name]
        if where is not None:
            predicate, filter_params = compile_filter(where)
            sql += f" AND ({predicate})"
            params.extend(filter_params)
        sql += " ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        result = GetResult()
        for row in self._conn.execute(sql, params).fetchall():
            result.ids.append(row["id"])
            result.metadatas.append(json.loads(row["metadata"]))
        return result

    def count(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE collection = ?", (self.name,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _rowids_for_ids(self, ids: list[str]) -> list[int]:
        placeholders = ",".join("?" * len(ids))
        return [
            r[0]
            for r in self._conn.execute(
                f"SELECT rowid FROM chunks WHERE collection = ? AND id IN ({placeholders})",
                [self.name, *ids],
            ).fetchall()
        ]

    def _delete_rowids(self, rowids: list[int]) -> int:
        if not rowids:
            return 0
        placeholders = ",".join("?" * len(rowids))
        self._conn.execute(
            f"DELETE FROM {self._vec_table} WHERE rowid IN ({placeholders})", rowids
        )
        cur = self._conn.execute(
            f"DELETE FROM chunks WHERE rowid IN ({placeholders})", rowids
        )
        return cur.rowcount

    def _content_for_rowid(self, rowid: int) -> str | None:
        row = self._conn.execute(
            "SELECT content FROM chunks WHERE rowid = ? AND collection = ?",
            (rowid, self.name),
        ).fetchone()
        return row["content"] if row else None
