"""docquery error taxonomy.

Ingestion errors propagate to the caller. Retrieval errors degrade to an
empty context. SQL validation and execution failures are kept distinct.
Model failures carry a generic message; the provider's detail stays in the
log and on ``__cause__``.
"""

from __future__ import annotations


class DocQueryError(Exception):
    """Base class for all docquery errors."""


class UnsupportedMediaType(DocQueryError):
    """Uploaded file is not a recognised text format."""

    def __init__(self, display_name: str, media_type: str = "") -> None:
        self.display_name = display_name
        self.media_type = media_type
        super().__init__(
            f"Unsupported file type: {media_type or 'unknown'} ({display_name}). "
            "Only TXT and MD files are supported."
        )


class IngestionFailed(DocQueryError):
    """An ingestion request could not be completed."""


class ScrapeFailed(IngestionFailed):
    """A URL could not be scraped by either fetch strategy.

    With ``url=None`` the whole batch failed.
    """

    def __init__(self, url: str | None, reason: str) -> None:
        self.url = url
        self.reason = reason
        target = url if url is not None else "any URLs"
        super().__init__(f"Failed to scrape {target}: {reason}")


class ValidationRejected(DocQueryError):
    """Generated SQL failed the safety policy and was not executed."""

    def __init__(self, reason: str, sql: str) -> None:
        self.reason = reason
        self.sql = sql
        super().__init__(f"Generated SQL query is invalid or unsafe: {reason}")


class ExecutionFailed(DocQueryError):
    """The executor raised while running validated SQL."""

    def __init__(self, message: str, sql: str = "") -> None:
        self.message = message
        self.sql = sql
        super().__init__(f"Query execution failed: {message}")


class DatabaseNotConnected(DocQueryError):
    def __init__(self) -> None:
        super().__init__("No active database connection")


class GenerationFailed(DocQueryError):
    """A language-model call failed. *stage* names which call."""

    _MESSAGES = {
        "chat": "Failed to generate response",
        "sql": "Failed to generate SQL query",
        "explanation": "Failed to generate SQL query",
    }

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(self._MESSAGES.get(stage, "Failed to generate response"))


class RetrievalDegraded(DocQueryError):
    """Vector search failed; callers continue with no context. Never surfaced."""
