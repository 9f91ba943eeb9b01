"""Abstract interfaces for lorekeeper's external collaborators."""

from lorekeeper.interfaces.knowledge_store import APPEND_SEPARATOR, IKnowledgeStore
from lorekeeper.interfaces.llm_provider import ILLMProvider

__all__ = ["APPEND_SEPARATOR", "IKnowledgeStore", "ILLMProvider"]
