"""Render a relational schema description as text for a language model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

NO_TABLES_SELECTED = "No tables selected for context."


@dataclass(frozen=True)
class ColumnSchema:
    column_name: str
    data_type: str
    is_nullable: str = "YES"
    column_key: str = ""
    column_default: str | None = None
    column_comment: str = ""
    extra: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ColumnSchema:
        default = data.get("columnDefault", data.get("column_default"))
        return cls(
            column_name=data.get("columnName", data.get("column_name", "")),
            data_type=data.get("dataType", data.get("data_type", "")),
            is_nullable=data.get("isNullable", data.get("is_nullable", "YES")),
            column_key=data.get("columnKey", data.get("column_key", "")) or "",
            column_default=None if default is None else str(default),
            column_comment=data.get("columnComment", data.get("column_comment", "")) or "",
            extra=data.get("extra", "") or "",
        )


@dataclass(frozen=True)
class ForeignKey:
    column_name: str
    referenced_table: str
    referenced_column: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ForeignKey:
        return cls(
            column_name=data.get("columnName", data.get("column_name", "")),
            referenced_table=data.get("referencedTable", data.get("referenced_table", "")),
            referenced_column=data.get("referencedColumn", data.get("referenced_column", "")),
        )


@dataclass(frozen=True)
class TableSchema:
    table_name: str
    columns: list[ColumnSchema] = field(default_factory=list)
    foreign_keys: list[ForeignKey] = field(default_factory=list)
    primary_keys: list[str] = field(default_factory=list)
    table_comment: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableSchema:
        """Build from a camelCase (or snake_case) JSON-shaped record."""
        return cls(
            table_name=data.get("tableName", data.get("table_name", "")),
            table_comment=data.get("tableComment", data.get("table_comment", "")) or "",
            columns=[ColumnSchema.from_dict(c) for c in data.get("columns", [])],
            foreign_keys=[
                ForeignKey.from_dict(fk)
                for fk in data.get("foreignKeys", data.get("foreign_keys", []))
            ],
            primary_keys=list(data.get("primaryKeys", data.get("primary_keys", []))),
        )


def _column_line(column: ColumnSchema) -> str:
    line = f"  - {column.column_name}: {column.data_type}"
    if column.column_key == "PRI":
        line += " (Primary Key)"
    elif column.column_key == "MUL":
        line += " (Foreign Key)"
    if column.is_nullable == "NO":
        line += " NOT NULL"
    if column.column_default is not None:
        line += f" DEFAULT {column.column_default}"
    if column.column_comment:
        line += f" - {column.column_comment}"
    return line


def generate_context(schema: list[TableSchema], selected_tables: list[str]) -> str:
    """Describe the selected tables, in schema order, plus their internal relationships.

    Returns ``NO_TABLES_SELECTED`` when nothing is selected, never "".
    """
    if not selected_tables:
        return NO_TABLES_SELECTED

    selected = set(selected_tables)
    tables = [t for t in schema if t.table_name in selected]

    lines = ["Database Schema Context:", ""]
    for table in tables:
        header = f"Table: {table.table_name}"
        if table.table_comment:
            header += f" ({table.table_comment})"
        lines.append(header)

        lines.append("Columns:")
        lines.extend(_column_line(c) for c in table.columns)

        if table.foreign_keys:
            lines.append("Foreign Keys:")
            lines.extend(
                f"  - {fk.column_name} → {fk.referenced_table}.{fk.referenced_column}"
                for fk in table.foreign_keys
            )
        lines.append("")

    relationships = [
        f"- {table.table_name}.{fk.column_name} → {fk.referenced_table}.{fk.referenced_column}"
        for table in tables
        for fk in table.foreign_keys
        if fk.referenced_table in selected
    ]
    if relationships:
        lines.append("Table Relationships:")
        lines.extend(relationships)
        lines.append("")

    return "\n".join(lines) + "\n"


def generate_summary(schema: list[TableSchema]) -> str:
    tables = len(schema)
    columns = sum(len(t.columns) for t in schema)
    foreign_keys = sum(len(t.foreign_keys) for t in schema)
    return (
        f"Database contains {tables} tables with {columns} total columns "
        f"and {foreign_keys} foreign key relationships."
    )
