"""File extractor — uploaded bytes → chunks with document metadata."""

from __future__ import annotations

import logging

from docquery.db.models import Chunk, DocumentMetadata, utc_now_iso
from docquery.errors import UnsupportedMediaType
from docquery.ingest.base import BaseChunker
from docquery.ingest.markdown import MarkdownChunker
from docquery.ingest.plaintext import PlainTextChunker

logger = logging.getLogger(__name__)

PLAIN_TEXT = "text/plain"
MARKDOWN_TYPES = frozenset({"text/markdown", "text/x-markdown"})
SUPPORTED_MEDIA_TYPES = frozenset({PLAIN_TEXT}) | MARKDOWN_TYPES

_EXTENSION_TYPES = {
    ".txt": PLAIN_TEXT,
    ".text": PLAIN_TEXT,
    ".md": "text/markdown",
    ".markdown": "text/markdown",
}


def guess_media_type(filename: str) -> str:
    """Media type for a filename's extension, or ``application/octet-stream``."""
    dot = filename.rfind(".")
    ext = filename[dot:].lower() if dot != -1 else ""
    return _EXTENSION_TYPES.get(ext, "application/octet-stream")


def normalize_media_type(media_type: str) -> str:
    """Drop parameters and case: ``Text/Plain; charset=utf-8`` → ``text/plain``."""
    return media_type.split(";")[0].strip().lower()


class FileExtractor:
    """Decode an uploaded text file and split it into chunks.

    Plain text and Markdown (including the legacy ``text/x-markdown``
    alias) are supported; anything else raises ``UnsupportedMediaType``.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        self._plaintext = PlainTextChunker(chunk_size=chunk_size, overlap=overlap)
        self._markdown = MarkdownChunker(chunk_size=chunk_size, overlap=overlap)

    def extract(self, raw: bytes, display_name: str, media_type: str) -> list[Chunk]:
        chunker = self._chunker_for(display_name, media_type)
        text = raw.decode("utf-8", errors="replace")
        uploaded_at = utc_now_iso()

        chunks = chunker.chunk(
            display_name,
            text,
            lambda i: DocumentMetadata(
                filename=display_name,
                chunk_index=i,
                source=display_name,
                uploaded_at=uploaded_at,
            ),
        )
        logger.info("Extracted %d chunks from %s", len(chunks), display_name)
        return chunks

    def _chunker_for(self, display_name: str, media_type: str) -> BaseChunker:
        kind = normalize_media_type(media_type)
        if kind == PLAIN_TEXT:
            return self._plaintext
        if kind in MARKDOWN_TYPES:
            return self._markdown
        raise UnsupportedMediaType(display_name, media_type)
