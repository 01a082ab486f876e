"""Plain text chunker — paragraph/sentence-aware windows with overlap."""

from __future__ import annotations

from docquery.ingest.base import BaseChunker


class PlainTextChunker(BaseChunker):
    """Split plain text into windows with overlap.

    Default: 1000 characters / 200 characters overlap.
    Uses the boundary order of ``BaseChunker`` unchanged.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        super().__init__(chunk_size=chunk_size, overlap=overlap)
