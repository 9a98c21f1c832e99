"""
LLM Client - ChatProvider backed by the OpenAI SDK.

Talks to any OpenAI-compatible endpoint (OpenAI, llama-server, vLLM, ...).

Key translations:
- Transcript dicts -> OpenAI messages (system prompt first)
- Assistant tool calls: argument dicts -> JSON strings, content=None when empty
- Tool results: tool_call_id carried through
- Thinking: <think>...</think> inline tags stripped from the answer
- Tool calls: OpenAI objects -> ToolInvocation
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx
import openai
from openai import OpenAI

from errors import LLMError
from services.chat_provider import ChatProvider, ChatRequest, ChatResponse, ToolInvocation

logger = logging.getLogger(__name__)


def _translate_messages_for_openai(messages: List[Dict], system_prompt: Optional[str] = None) -> List[Dict]:
    """Translate transcript messages to OpenAI API format."""
    translated = []
    if system_prompt:
        translated.append({"role": "system", "content": system_prompt})

    for msg in messages:
        role = msg.get("role", "user")
        content = msg.get("content", "")

        if role == "tool":
            translated.append({
                "role": "tool",
                "content": content if isinstance(content, str) else json.dumps(content),
                "tool_call_id": msg.get("tool_call_id", "call_0"),
            })
            continue

        new_msg = {"role": role, "content": content}

        # Forward tool_calls from assistant messages
        if role == "assistant" and msg.get("tool_calls"):
            openai_tool_calls = []
            for i, tc in enumerate(msg["tool_calls"]):
                fn = tc.get("function", tc)
                openai_tool_calls.append({
                    "id": tc.get("id", f"call_{i}"),
                    "type": "function",
                    "function": {
                        "name": fn.get("name", ""),
                        "arguments": (
                            json.dumps(fn["arguments"])
                            if isinstance(fn.get("arguments"), dict)
                            else fn.get("arguments", "{}")
                        ),
                    },
                })
            new_msg["tool_calls"] = openai_tool_calls
            # OpenAI requires content to be None when tool_calls present
            if not content:
                new_msg["content"] = None

        translated.append(new_msg)

    return translated


def _extract_thinking(content: str) -> tuple:
    """Extract <think>...</think> tags from content.

    Returns:
        (clean_content, thinking_text)
    """
    if not content:
        return "", ""

    think_pattern = re.compile(r"<think>(.*?)</think>", re.DOTALL)
    thinking_parts = think_pattern.findall(content)
    thinking = "\n".join(thinking_parts).strip()

    clean = think_pattern.sub("", content).strip()
    return clean, thinking


def _translate_tool_calls_from_openai(choices) -> List[ToolInvocation]:
    """Translate OpenAI tool call objects to ToolInvocations.

    OpenAI: choice.message.tool_calls[i].function.{name, arguments(str)}
    """
    if not choices:
        return []

    message = choices[0].message
    if not message.tool_calls:
        return []

    result = []
    for i, tc in enumerate(message.tool_calls):
        try:
            args = json.loads(tc.function.arguments) if tc.function.arguments else {}
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse tool call arguments: {tc.function.arguments}")
            args = {}
        if not isinstance(args, dict):
            logger.warning(f"Tool call arguments are not an object: {args!r}")
            args = {}

        result.append(ToolInvocation.from_mapping(tc.id or f"call_{i}", tc.function.name, args))

    return result


class OpenAIChatProvider(ChatProvider):
    """Wraps the OpenAI SDK pointing at an OpenAI-compatible server."""

    provider_id = "openai"

    def __init__(self, base_url: str = "", api_key: str = "", timeout: float = 120.0, temperature: Optional[float] = None):
        """
        Args:
            base_url: API root including the version path (e.g. "http://localhost:8081/v1").
                Empty means api.openai.com.
            api_key: API key ("not-needed" is sent for keyless local servers)
            timeout: Request timeout in seconds
            temperature: Optional sampling temperature
        """
        self.base_url = base_url.rstrip("/") if base_url else ""
        self.temperature = temperature
        self._openai = OpenAI(
            base_url=self.base_url or None,
            api_key=api_key or "not-needed",
            timeout=timeout,
        )

    def is_healthy(self, timeout: float = 3.0) -> bool:
        """Sync health check against the /models endpoint."""
        root = self.base_url or "https://api.openai.com/v1"
        try:
            resp = httpx.get(
                f"{root}/models",
                headers={"Authorization": f"Bearer {self._openai.api_key}"},
                timeout=timeout,
            )
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    def chat(self, request: ChatRequest, model_id: str, tags: Sequence[str] = ()) -> ChatResponse:
        """Call the chat completions endpoint once."""
        kwargs: Dict[str, Any] = {
            "model": model_id or "default",
            "messages": _translate_messages_for_openai(request.messages, request.system_prompt),
        }
        if request.tools:
            kwargs["tools"] = request.tools
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        logger.debug(f"Chat request model={kwargs['model']} tools={len(request.tools or [])} tags={list(tags)}")

        try:
            response = self._openai.chat.completions.create(stream=False, **kwargs)
        except openai.APITimeoutError as e:
            raise LLMError("Chat request timed out", details=str(e), model=kwargs["model"], error_type="timeout") from e
        except openai.APIError as e:
            raise LLMError("Chat request failed", details=str(e), model=kwargs["model"]) from e

        raw_content = ""
        if response.choices:
            raw_content = response.choices[0].message.content or ""
        content, thinking = _extract_thinking(raw_content)

        return ChatResponse(
            text=content,
            tool_invocations=_translate_tool_calls_from_openai(response.choices),
            thinking=thinking,
        )
