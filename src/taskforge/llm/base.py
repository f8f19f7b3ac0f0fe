"""Base LLM provider abstraction."""

import os
from abc import ABC, abstractmethod
from typing import Literal

from langchain_core.language_models import BaseChatModel

ProviderName = Literal["openai", "anthropic", "google"]

# Balanced models are used for execution and RLM calls, fast models for
# planning and reflection prompts.
DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-5.2",
    "anthropic": "claude-sonnet-4-5-20250929",
    "google": "gemini-3-flash-preview",
}

FAST_MODELS: dict[str, str] = {
    "openai": "gpt-5-mini",
    "anthropic": "claude-haiku-4-5-20251001",
    "google": "gemini-3-flash-preview",
}

DEFAULT_TIMEOUT = 120.0
DEFAULT_TEMPERATURE = 0.3


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Subclasses declare their backend name, the environment variable holding
    the API key and their retry budget, and build the langchain chat model.
    The model is created on first access and reused for subsequent calls.
    """

    name: str = ""
    api_key_env: str = ""
    default_max_retries: int = 3

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int | None = None,
    ):
        self.model = model or DEFAULT_MODELS.get(self.name, "")
        self.api_key = api_key or (os.getenv(self.api_key_env) if self.api_key_env else None)
        self.temperature = temperature
        self.timeout = timeout
        self.max_retries = self.default_max_retries if max_retries is None else max_retries
        self._chat_model: BaseChatModel | None = None

    def get_chat_model(self) -> BaseChatModel:
        """Get a cached chat model instance."""
        if self._chat_model is None:
            self._chat_model = self._create_chat_model()
        return self._chat_model

    @abstractmethod
    def _create_chat_model(self) -> BaseChatModel:
        """Create a new chat model instance. Override in subclasses."""
        pass


def get_llm_provider(
    provider: ProviderName,
    model: str | None = None,
    api_key: str | None = None,
) -> LLMProvider:
    """Factory function to get an LLM provider instance."""
    if provider == "openai":
        from taskforge.llm.openai import OpenAIProvider

        return OpenAIProvider(model=model or DEFAULT_MODELS["openai"], api_key=api_key)
    elif provider == "anthropic":
        from taskforge.llm.anthropic import AnthropicProvider

        return AnthropicProvider(model=model or DEFAULT_MODELS["anthropic"], api_key=api_key)
    elif provider == "google":
        from taskforge.llm.google import GoogleProvider

        return GoogleProvider(model=model or DEFAULT_MODELS["google"], api_key=api_key)
    else:
        raise ValueError(f"Unknown provider: {provider}")
