"""Per-collection, per-model sqlite-vec virtual table management."""

from __future__ import annotations

import re
import sqlite3


def model_to_slug(model: str) -> str:
    """Convert a provider/model (or collection) name to a valid table name part.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "documents" -> "documents"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(collection_slug: str, model_slug: str) -> str:
    """Return the full vec table name for a collection + embedding model."""
    return f"vec_{collection_slug}__{model_slug}"


def ensure_vec_table(
    conn: sqlite3.Connection, collection: str, model: str, dimensions: int
) -> str:
    """Create the vec0 table for *collection* / *model* if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        collection: Collection name (sanitised with model_to_slug()).
        model: Embedding model string (sanitised with model_to_slug()).
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_to_slug(collection), model_to_slug(model))
    # IF NOT EXISTS: concurrent first-use callers may both reach this point.
    conn.execute(
        f"CREATE VIRTUAL TABLE IF NOT EXISTS {table} USING vec0(embedding float[{dimensions}])"
    )
    conn.commit()
    return table
