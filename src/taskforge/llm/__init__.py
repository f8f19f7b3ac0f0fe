"""LLM provider abstraction and the model call contract."""

from taskforge.llm.base import LLMProvider, get_llm_provider
from taskforge.llm.caller import LLMModelCaller, ModelCaller, create_model_caller

__all__ = [
    "LLMModelCaller",
    "LLMProvider",
    "ModelCaller",
    "create_model_caller",
    "get_llm_provider",
]
