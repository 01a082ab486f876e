"""Base chunker: boundary-aware windows with overlap, measured in characters."""

from __future__ import annotations

import re
from typing import Callable

from docquery.db.models import Chunk, SourceMetadata, chunk_id

# Tried in order; a window is cut at the end of the last match of the first
# pattern that matches inside it.
PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
LINE_BREAK = re.compile(r"\n+")
SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
WHITESPACE = re.compile(r"\s+")


class BaseChunker:
    """Split text into overlapping windows of at most ``chunk_size`` characters.

    Every segment is an exact slice of the input. Consecutive segments
    overlap by at most ``overlap`` characters, the first starts at offset 0
    and the last ends at ``len(text)``, so de-overlapping the segments
    reproduces the input with no gaps.

    Subclasses tune ``separators``; windows are cut at the latest boundary
    of the most semantic kind available (paragraph → line → sentence →
    word) and only fall back to a hard character cut when a window has no
    boundary at all.
    """

    separators: tuple[re.Pattern[str], ...] = (
        PARAGRAPH_BREAK,
        LINE_BREAK,
        SENTENCE_END,
        WHITESPACE,
    )

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be >= 0 and strictly less than chunk_size")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> list[str]:
        """Return the ordered segments of *text*.

        Empty input yields exactly one empty segment.
        """
        return [text[start:end] for start, end in self.spans(text)]

    def spans(self, text: str) -> list[tuple[int, int]]:
        """Return ``(start, end)`` offsets of every segment, in order."""
        length = len(text)
        if length <= self.chunk_size:
            return [(0, length)]

        spans: list[tuple[int, int]] = []
        start = 0
        while True:
            hard_end = start + self.chunk_size
            if hard_end >= length:
                spans.append((start, length))
                return spans
            end = self._find_cut(text, start, hard_end)
            spans.append((start, end))
            start = self._next_start(text, start, end)

    def chunk(
        self,
        source_key: str,
        content: str,
        metadata_for: Callable[[int], SourceMetadata],
    ) -> list[Chunk]:
        """Split *content* into Chunk objects for *source_key*.

        Args:
            source_key: Filename or URL the content came from.
            content: Full decoded text of the source.
            metadata_for: Builds the metadata of the chunk at a given index.

        Returns:
            Ordered list of Chunks with contiguous ``chunkIndex`` from 0.
        """
        return self._make_chunks(source_key, self.split(content), metadata_for)

    # ------------------------------------------------------------------
    # Boundary search
    # ------------------------------------------------------------------

    def _find_cut(self, text: str, start: int, hard_end: int) -> int:
        # A cut must land past the overlap zone so the next window advances.
        lo = start + self.overlap
        for pattern in self.separators:
            last_end = None
            for match in pattern.finditer(text, lo, hard_end):
                if match.end() > lo:
                    last_end = match.end()
            if last_end is not None:
                return last_end
        return hard_end

    def _next_start(self, text: str, start: int, end: int) -> int:
        if self.overlap == 0:
            return end
        candidate = max(start + 1, end - self.overlap)
        # Begin the overlap on a word boundary when one exists.
        match = WHITESPACE.search(text, candidate, end)
        if match and match.end() < end:
            return match.end()
        return candidate

    @staticmethod
    def _make_chunks(
        source_key: str,
        texts: list[str],
        metadata_for: Callable[[int], SourceMetadata],
    ) -> list[Chunk]:
        """Convert a list of text strings into sequentially indexed Chunks."""
        return [
            Chunk(id=chunk_id(source_key, i), content=t, metadata=metadata_for(i))
            for i, t in enumerate(texts)
        ]
