"""Single-prompt call contract shared by the planner, reflector, executor and RLM engine."""

import logging
from typing import Any, Protocol, runtime_checkable

from taskforge.errors import ModelCallError
from taskforge.llm.base import LLMProvider, ProviderName, get_llm_provider

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelCaller(Protocol):
    """Anything that turns a text prompt into text, or raises."""

    async def call(self, prompt: str, model_hint: str | None = None) -> str: ...


def content_to_text(content: Any) -> str:
    """Flatten LangChain message content (which can be a list of parts) into text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


class LLMModelCaller:
    """ModelCaller backed by a LangChain chat model.

    A ``model_hint`` selects another model of the same provider; hinted
    providers are created once and cached.
    """

    def __init__(self, provider: LLMProvider):
        self.provider = provider
        self._hinted: dict[str, LLMProvider] = {}

    def _provider_for(self, model_hint: str | None) -> LLMProvider:
        if not model_hint or model_hint == self.provider.model:
            return self.provider
        if model_hint not in self._hinted:
            self._hinted[model_hint] = get_llm_provider(
                self.provider.name,  # type: ignore[arg-type]
                model_hint,
                self.provider.api_key,
            )
        return self._hinted[model_hint]

    async def call(self, prompt: str, model_hint: str | None = None) -> str:
        provider = self._provider_for(model_hint)
        model = provider.get_chat_model()
        try:
            response = await model.ainvoke(prompt)
        except Exception as e:
            logger.error(f"{provider.name} call failed ({provider.model}): {e}")
            raise ModelCallError(provider.name, f"{provider.name} call failed: {e}", e) from e

        return content_to_text(response.content)


def create_model_caller(
    provider: ProviderName,
    model: str | None = None,
    api_key: str | None = None,
) -> LLMModelCaller:
    """Factory function to create a ModelCaller for one backend."""
    return LLMModelCaller(get_llm_provider(provider, model, api_key))
