"""Text-understanding service adapters."""

from lorekeeper.providers.llm.chat_completions_provider import ChatCompletionsProvider
from lorekeeper.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["ChatCompletionsProvider", "OpenAILLMProvider"]
