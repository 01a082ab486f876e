"""LiteLLM client wrapper: chat model, embeddings and API key validation.

Every model and embedding call routes through this module. LiteLLM's
built-in retry is used (num_retries=3, exponential backoff). API key
presence is validated up front, before any request is made.

The classes here are the default implementations of the ``ChatModel`` and
``Embeddings`` protocols; tests substitute fakes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_env(model: str) -> tuple[str, str | None]:
    """Return ``(provider, env_var)`` for *model*; env_var is None when no key is needed."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    return provider, _PROVIDER_ENV.get(provider)


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider, env_var = provider_env(model)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


# ------------------------------------------------------------------
# Capability interfaces
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ModelResponse:
    content: str


class ChatModel(Protocol):
    async def invoke(self, prompt: str) -> ModelResponse: ...


class Embeddings(Protocol):
    async def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    async def embed_query(self, text: str) -> list[float]: ...


# ------------------------------------------------------------------
# Raw calls
# ------------------------------------------------------------------


async def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 2048,
    temperature: float = 0.0,
    num_retries: int = 3,
) -> str:
    """Call litellm.acompletion() with retry/backoff. Returns content string.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    response = await litellm.acompletion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
    )
    return response.choices[0].message.content or ""


async def embed_many(model: str, texts: list[str], num_retries: int = 3) -> list[list[float]]:
    """Embed *texts* in one litellm.aembedding() call, preserving order."""
    if not texts:
        return []
    response = await litellm.aembedding(
        model=model,
        input=texts,
        num_retries=num_retries,
    )
    return [item["embedding"] for item in response.data]


# ------------------------------------------------------------------
# Default capability implementations
# ------------------------------------------------------------------


class LiteLLMChatModel:
    """Single-shot chat model: one user message in, text content out."""

    def __init__(
        self, model: str, temperature: float = 0.7, max_tokens: int = 2048
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def invoke(self, prompt: str) -> ModelResponse:
        content = await complete(
            self.model,
            [{"role": "user", "content": prompt}],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return ModelResponse(content=content)


class LiteLLMEmbeddings:
    def __init__(self, model: str = "openai/text-embedding-3-small") -> None:
        self.model = model

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return await embed_many(self.model, texts)

    async def embed_query(self, text: str) -> list[float]:
        vectors = await embed_many(self.model, [text])
        return vectors[0]
