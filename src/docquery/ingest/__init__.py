"""docquery ingest pipeline — chunkers, file extractor, web scraper."""

from docquery.ingest.base import BaseChunker
from docquery.ingest.files import FileExtractor, guess_media_type
from docquery.ingest.markdown import MarkdownChunker
from docquery.ingest.plaintext import PlainTextChunker
from docquery.ingest.web import WebScraper, validate_urls

__all__ = [
    "BaseChunker",
    "FileExtractor",
    "MarkdownChunker",
    "PlainTextChunker",
    "WebScraper",
    "guess_media_type",
    "validate_urls",
]
