"""
Services - shared infrastructure for the ai-context backend.

- site_data: entity repository, access checks, configuration store
- search_index: BM25 full-text index over published content
- context_cache: Redis-backed context cache with in-memory fallback
- chat_provider / llm_client: chat endpoint abstraction and OpenAI-compatible client
- app_services: the container handed to request handlers
"""

from .context_cache import ContextCache
from .chat_provider import ChatProvider, ChatRequest, ChatResponse, ToolInvocation

__all__ = ["ContextCache", "ChatProvider", "ChatRequest", "ChatResponse", "ToolInvocation"]
