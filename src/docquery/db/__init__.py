"""docquery database layer — sqlite-vec backed vector index."""

from docquery.db.connection import Database
from docquery.db.filters import ByFilename, ByUrl, Or, compile_filter, content_filter
from docquery.db.index import GetResult, SqliteVectorIndex, VectorCollection
from docquery.db.migrations import MIGRATIONS, run_migrations
from docquery.db.schema import initialize
from docquery.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "ByFilename",
    "ByUrl",
    "Database",
    "GetResult",
    "MIGRATIONS",
    "Or",
    "SqliteVectorIndex",
    "VectorCollection",
    "compile_filter",
    "content_filter",
    "ensure_vec_table",
    "initialize",
    "model_to_slug",
    "run_migrations",
    "vec_table_name",
]
