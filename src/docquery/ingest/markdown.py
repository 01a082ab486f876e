"""Markdown chunker — prefers heading boundaries, then the plain-text order."""

from __future__ import annotations

import re

from docquery.ingest.base import BaseChunker

# A line break followed by an H1-H6 heading; the cut lands before the '#'.
_HEADING_BREAK = re.compile(r"\n+(?=#{1,6} )")


class MarkdownChunker(BaseChunker):
    """Split Markdown, cutting before headings when a window contains one.

    Sections that fit a window stay together; longer sections fall back to
    paragraph, line, sentence and word boundaries.
    """

    separators = (_HEADING_BREAK, *BaseChunker.separators)
