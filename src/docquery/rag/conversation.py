"""RAG conversation engine: retrieve → assemble prompt → generate → remember.

Per message:
  1. Classify system questions (questions about the app itself).
  2. Choose retrieval scope:
       multi-select with a selection → search within that selection
       multi-select off              → search the whole corpus
       multi-select, empty selection → no retrieval
  3. Join non-empty hits into the context, or fall back to a sentinel
     (the app description for system questions).
  4. Read history, build the prompt, call the model once.
  5. Record the turn, return the reply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from docquery.errors import GenerationFailed
from docquery.rag.llm_client import ChatModel
from docquery.rag.memory import ConversationMemory
from docquery.rag.prompts import (
    APP_DESCRIPTION,
    NO_CONTEXT,
    build_rag_prompt,
    is_system_question,
)

logger = logging.getLogger(__name__)


class Retriever(Protocol):
    async def search(self, query: str, k: int = 5) -> list[str]: ...

    async def search_in_content(
        self, query: str, names: Iterable[str], k: int = 5
    ) -> list[str]: ...


@dataclass(frozen=True)
class ChatReply:
    response: str


class ConversationEngine:
    """Chat over ingested content with three injected collaborators.

    Args:
        model: Chat model used for the single generation call per turn.
        memory: Transcript read before and written after each turn.
        retriever: Vector store (or any object with the two search methods).
        top_k: Maximum number of chunks placed in the context.
    """

    def __init__(
        self,
        model: ChatModel,
        memory: ConversationMemory,
        retriever: Retriever,
        top_k: int = 5,
    ) -> None:
        self._model = model
        self._memory = memory
        self._retriever = retriever
        self._top_k = top_k

    async def chat(
        self,
        message: str,
        selected_keys: list[str] | None = None,
        multi_select_mode: bool = False,
    ) -> ChatReply:
        """Answer *message* grounded in retrieved context.

        Raises:
            GenerationFailed: The model call failed. Nothing is recorded.
        """
        system_question = is_system_question(message)

        hits: list[str | None] = []
        if multi_select_mode and selected_keys:
            hits = await self._retriever.search_in_content(
                message, selected_keys, self._top_k
            )
        elif not multi_select_mode:
            hits = await self._retriever.search(message, self._top_k)

        docs = [h for h in hits if h]
        if docs:
            context = "\n\n".join(docs)
        elif system_question:
            context = APP_DESCRIPTION
        else:
            context = NO_CONTEXT

        history = await self._memory.load_history()
        prompt = build_rag_prompt(context, history, message)

        try:
            response = await self._model.invoke(prompt)
        except Exception as exc:
            logger.error("Chat generation failed: %s", exc, exc_info=exc)
            raise GenerationFailed("chat") from exc

        await self._memory.save_context(message, response.content)
        return ChatReply(response=response.content)

    async def clear_memory(self) -> None:
        await self._memory.clear()

    async def get_history(self) -> str:
        return await self._memory.load_history()
