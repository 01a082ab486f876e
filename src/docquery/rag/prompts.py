"""Fixed prompt text for the document chat."""

from __future__ import annotations

SYSTEM_MESSAGE = """\
You are a helpful assistant for a document question-answering tool.

What the tool does:
- Users ingest their own content: TXT and Markdown files, or web pages by URL.
- You answer questions about that content using the context supplied below.
- You remember the earlier turns of this conversation and can answer follow-ups.

How to answer:
- Base answers on the supplied document context.
- If the context does not contain the answer, say so plainly.
- When quoting or summarising, mention which document or page it came from.
- If the user asks about content that has not been ingested, tell them to ingest it first.
- Keep answers clear and concise; use Markdown lists or bold text where it helps.

Limitations:
- Only TXT and Markdown files and scraped web pages are supported.
- You have no access to external information or real-time data."""

APP_DESCRIPTION = (
    "This is a Document Q&A application. "
    "Users can upload documents and ask questions about them."
)

NO_CONTEXT = "No relevant document context found."

# Case-insensitive substrings that mark a question about the app itself.
SYSTEM_QUESTIONS: tuple[str, ...] = (
    "what can you do",
    "how does this work",
    "what is this app",
    "help",
    "capabilities",
    "features",
    "how to use",
    "what documents",
    "uploaded documents",
)


def is_system_question(message: str) -> bool:
    lowered = message.lower()
    return any(phrase in lowered for phrase in SYSTEM_QUESTIONS)


def build_rag_prompt(context: str, history: str, message: str) -> str:
    """Preamble, context, history and the user message, in that order."""
    return (
        f"\n{SYSTEM_MESSAGE}\n\n"
        f"Context from documents:\n{context}\n\n"
        f"Current conversation:\n{history}\n\n"
        f"Human: {message}\n"
        "Assistant: "
    )
