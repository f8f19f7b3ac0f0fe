"""Google Gemini LLM provider."""

from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI

from taskforge.llm.base import LLMProvider


class GoogleProvider(LLMProvider):
    """Google Gemini provider using langchain-google-genai."""

    name = "google"
    api_key_env = "GOOGLE_API_KEY"

    def _create_chat_model(self) -> BaseChatModel:
        return ChatGoogleGenerativeAI(
            model=self.model,
            temperature=self.temperature,
            google_api_key=self.api_key,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
