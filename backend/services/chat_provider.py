"""
Chat Provider interface - the only surface the orchestration path needs
from a chat-completion backend.

Provides:
- ChatRequest / ChatResponse: normalized request and response shapes
- ToolInvocation / ToolArgument: a model's request to run one tool
- ChatProvider: abstract provider (chat, is_healthy, provider_id)
- ToolInjectingProvider: wraps a provider and attaches tool descriptors
  to tagged editor requests that carry none

Usage:
    from services.chat_provider import ChatRequest
    response = provider.chat(ChatRequest(messages=[...], tools=schema), model_id, ["ai_ckeditor"])
    for invocation in response.tool_invocations:
        args = invocation.flatten()
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

EDITOR_TAG = "ai_ckeditor"


@dataclass(frozen=True)
class ToolArgument:
    """One named argument supplied by the model."""

    name: str
    value: Any


@dataclass(frozen=True)
class ToolInvocation:
    """A single tool call requested by the model.

    Attributes:
        call_id: Correlation id, unique within one response
        name: Requested tool name
        arguments: Arguments in the order the model supplied them
    """

    call_id: str
    name: str
    arguments: tuple = ()

    @classmethod
    def from_mapping(cls, call_id: str, name: str, arguments: Optional[Dict[str, Any]]) -> "ToolInvocation":
        args = tuple(ToolArgument(k, v) for k, v in (arguments or {}).items())
        return cls(call_id=call_id, name=name, arguments=args)

    def flatten(self) -> Dict[str, Any]:
        """Collapse the argument list into a name -> value mapping (last one wins)."""
        return {arg.name: arg.value for arg in self.arguments}


@dataclass
class ChatRequest:
    """Input for one chat call.

    Attributes:
        messages: Transcript in wire form (see Transcript.to_dicts)
        system_prompt: Optional system instruction
        tools: Optional tool descriptors in chat-endpoint schema
    """

    messages: List[Dict[str, Any]]
    system_prompt: Optional[str] = None
    tools: Optional[List[Dict[str, Any]]] = None


@dataclass
class ChatResponse:
    """Normalized chat output: final text and zero or more tool invocations."""

    text: str = ""
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    thinking: str = ""

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_invocations)


class ChatProvider(ABC):
    """Every method the orchestration path needs from a chat backend."""

    provider_id: str = "unknown"

    @abstractmethod
    def chat(self, request: ChatRequest, model_id: str, tags: Sequence[str] = ()) -> ChatResponse:
        """Run one chat completion."""

    @abstractmethod
    def is_healthy(self, timeout: float = 3.0) -> bool:
        """Cheap reachability check."""


class ToolInjectingProvider(ChatProvider):
    """Attaches tool descriptors to editor requests that arrive without tools.

    Only requests tagged ``ai_ckeditor`` are touched. Requests that already
    carry tools are forwarded unchanged.
    """

    def __init__(self, inner: ChatProvider, describe_tools: Callable[[], List[Dict[str, Any]]]):
        self._inner = inner
        self._describe_tools = describe_tools
        self.provider_id = inner.provider_id

    def chat(self, request: ChatRequest, model_id: str, tags: Sequence[str] = ()) -> ChatResponse:
        if EDITOR_TAG in tags and not request.tools:
            tools = self._describe_tools()
            if tools:
                logger.debug(f"Injecting {len(tools)} tool descriptors into {EDITOR_TAG} request")
                request = replace(request, tools=tools)
        return self._inner.chat(request, model_id, tags)

    def is_healthy(self, timeout: float = 3.0) -> bool:
        return self._inner.is_healthy(timeout)
