"""Metadata filter expressions for vector-store queries.

Retrieval code builds filters from these small variants; the sqlite index
compiles them to a parameterised SQL predicate. Nothing outside this module
knows the underlying filter grammar.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from docquery.db.models import is_url


@dataclass(frozen=True)
class ByFilename:
    names: tuple[str, ...]

    def __init__(self, names: Iterable[str]) -> None:
        object.__setattr__(self, "names", tuple(names))


@dataclass(frozen=True)
class ByUrl:
    urls: tuple[str, ...]

    def __init__(self, urls: Iterable[str]) -> None:
        object.__setattr__(self, "urls", tuple(urls))


@dataclass(frozen=True)
class Or:
    filters: tuple["Filter", ...]

    def __init__(self, filters: Iterable["Filter"]) -> None:
        object.__setattr__(self, "filters", tuple(filters))


Filter = Union[ByFilename, ByUrl, Or]


def content_filter(names: Iterable[str]) -> Filter:
    """Build a filter for a mixed selection of filenames and URLs.

    A single-discriminant filter when only one kind is present, otherwise a
    disjunction over both.
    """
    names = list(names)
    urls = [n for n in names if is_url(n)]
    filenames = [n for n in names if not is_url(n)]
    if urls and filenames:
        return Or([ByFilename(filenames), ByUrl(urls)])
    if urls:
        return ByUrl(urls)
    return ByFilename(filenames)


def key_filter(key: str) -> Filter:
    """Match every chunk whose filename *or* url equals *key*."""
    return Or([ByFilename([key]), ByUrl([key])])


def compile_filter(expr: Filter, column: str = "metadata") -> tuple[str, list[str]]:
    """Compile *expr* to ``(sql_predicate, params)`` over a JSON metadata column."""
    if isinstance(expr, ByFilename):
        return _compile_in(column, "$.filename", expr.names)
    if isinstance(expr, ByUrl):
        return _compile_in(column, "$.url", expr.urls)
    if isinstance(expr, Or):
        if not expr.filters:
            return "0", []
        parts: list[str] = []
        params: list[str] = []
        for sub in expr.filters:
            sql, sub_params = compile_filter(sub, column)
            parts.append(f"({sql})")
            params.extend(sub_params)
        return " OR ".join(parts), params
    raise TypeError(f"Unsupported filter expression: {expr!r}")


def _compile_in(column: str, path: str, values: tuple[str, ...]) -> tuple[str, list[str]]:
    if not values:
        return "0", []
    placeholders = ",".join("?" * len(values))
    return f"json_extract({column}, '{path}') IN ({placeholders})", list(values)
