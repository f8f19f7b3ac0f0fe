"""Anthropic Claude LLM provider."""

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel

from taskforge.llm.base import LLMProvider

# Planning and reflection prompts repeat long preambles across calls
PROMPT_CACHING_HEADER = {"anthropic-beta": "prompt-caching-2024-07-31"}


class AnthropicProvider(LLMProvider):
    """Anthropic Claude provider with prompt caching enabled."""

    name = "anthropic"
    api_key_env = "ANTHROPIC_API_KEY"
    max_tokens = 4096

    def _create_chat_model(self) -> BaseChatModel:
        return ChatAnthropic(
            model=self.model,
            temperature=self.temperature,
            api_key=self.api_key,
            timeout=self.timeout,
            max_retries=self.max_retries,
            max_tokens=self.max_tokens,
            default_headers=PROMPT_CACHING_HEADER,
        )
