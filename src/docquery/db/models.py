"""Domain models for ingested content and the vector store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union

WEB_SOURCE = "web"


def utc_now_iso() -> str:
    """ISO-8601 timestamp (UTC, millisecond precision, trailing ``Z``)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def chunk_id(source_key: str, chunk_index: int) -> str:
    """Deterministic chunk id: re-ingesting the same source reuses the same ids."""
    return f"{source_key}-chunk-{chunk_index}"


def is_url(key: str) -> bool:
    """A key names web content when it carries an ``http`` prefix."""
    return key.startswith("http")


@dataclass(frozen=True)
class DocumentMetadata:
    """Metadata for a chunk that came from an uploaded file."""

    filename: str
    chunk_index: int
    source: str
    uploaded_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "chunkIndex": self.chunk_index,
            "source": self.source,
            "uploadedAt": self.uploaded_at,
        }


@dataclass(frozen=True)
class WebMetadata:
    """Metadata for a chunk that came from a scraped web page."""

    url: str
    title: str
    chunk_index: int
    scraped_at: str
    source: str = WEB_SOURCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "chunkIndex": self.chunk_index,
            "source": self.source,
            "scrapedAt": self.scraped_at,
        }


SourceMetadata = Union[DocumentMetadata, WebMetadata]


def metadata_from_dict(data: dict[str, Any]) -> SourceMetadata:
    """Rebuild typed metadata from a stored JSON record.

    ``url`` and ``filename`` are mutually exclusive discriminants.
    """
    if "url" in data:
        return WebMetadata(
            url=str(data["url"]),
            title=str(data.get("title", "")),
            chunk_index=int(data.get("chunkIndex", 0)),
            scraped_at=str(data.get("scrapedAt", "")),
            source=str(data.get("source", WEB_SOURCE)),
        )
    if "filename" in data:
        return DocumentMetadata(
            filename=str(data["filename"]),
            chunk_index=int(data.get("chunkIndex", 0)),
            source=str(data.get("source", data["filename"])),
            uploaded_at=str(data.get("uploadedAt", "")),
        )
    raise ValueError(f"Metadata has neither 'filename' nor 'url': {data!r}")


@dataclass(frozen=True)
class Chunk:
    """One immutable segment of an ingested source."""

    id: str
    content: str
    metadata: SourceMetadata

    @property
    def chunk_index(self) -> int:
        return self.metadata.chunk_index

    @property
    def source_key(self) -> str:
        if isinstance(self.metadata, WebMetadata):
            return self.metadata.url
        return self.metadata.filename


@dataclass(frozen=True)
class PageMetadata:
    description: str = ""
    author: str = ""
    published_date: str = ""
    word_count: int = 0
    links: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScrapedContent:
    """Normalised text of one web page plus its page-level metadata."""

    url: str
    title: str
    content: str
    metadata: PageMetadata = field(default_factory=PageMetadata)


@dataclass
class UploadedItem:
    """Derived view: one entry per unique filename or URL in the store."""

    key: str
    kind: Literal["document", "web"]
    chunk_count: int = 0
    first_seen_at: str = ""
    title: str = ""
