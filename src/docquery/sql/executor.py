"""SQL executor capability and a sqlite implementation of it.

The engine only needs ``execute(sql) -> rows`` and ``is_connected()``.
``SqliteExecutor`` runs statements off the event loop; ``introspect_schema``
builds the ``TableSchema`` snapshot the schema context builder consumes.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Any, Protocol

from docquery.sql.schema_context import ColumnSchema, ForeignKey, TableSchema

logger = logging.getLogger(__name__)


class SqlExecutor(Protocol):
    def is_connected(self) -> bool: ...

    async def execute(self, sql: str) -> list[dict[str, Any]]: ...


class SqliteExecutor:
    """Executor over a single sqlite database file."""

    def __init__(self, path: Path | str) -> None:
        self.path = path
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            logger.info("Connected to %s", self.path)
        return self._conn

    def is_connected(self) -> bool:
        return self._conn is not None

    async def execute(self, sql: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._run, sql)

    def _run(self, sql: str) -> list[dict[str, Any]]:
        conn = self._conn
        if conn is None:
            raise sqlite3.ProgrammingError("Executor is not connected")
        cur = conn.execute(sql)
        rows = [dict(r) for r in cur.fetchall()]
        conn.commit()
        return rows

    def schema(self) -> list[TableSchema]:
        return introspect_schema(self.connect())

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def introspect_schema(conn: sqlite3.Connection) -> list[TableSchema]:
    """Read user tables, columns and foreign keys from sqlite's catalog."""
    names = [
        r[0]
        for r in conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
    ]

    tables: list[TableSchema] = []
    for name in names:
        quoted = name.replace('"', '""')
        fk_rows = conn.execute(f'PRAGMA foreign_key_list("{quoted}")').fetchall()
        fk_columns = {row[3] for row in fk_rows}

        columns: list[ColumnSchema] = []
        primary_keys: list[str] = []
        for _cid, col, col_type, notnull, default, pk in conn.execute(
            f'PRAGMA table_info("{quoted}")'
        ).fetchall():
            if pk:
                key = "PRI"
                primary_keys.append(col)
            elif col in fk_columns:
                key = "MUL"
            else:
                key = ""
            columns.append(
                ColumnSchema(
                    column_name=col,
                    data_type=col_type or "",
                    is_nullable="NO" if notnull or pk else "YES",
                    column_key=key,
                    column_default=None if default is None else str(default),
                )
            )

        tables.append(
            TableSchema(
                table_name=name,
                columns=columns,
                foreign_keys=[
                    ForeignKey(
                        column_name=row[3],
                        referenced_table=row[2],
                        referenced_column=row[4] or "",
                    )
                    for row in fk_rows
                ],
                primary_keys=primary_keys,
            )
        )
    return tables
