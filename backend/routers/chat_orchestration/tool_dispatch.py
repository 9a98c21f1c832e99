"""
Tool Dispatcher - runs one model-requested tool call and records it.

Handles:
- Resolving the requested name against the ToolRegistry (unknown names abort the run)
- Executing the tool; faults come back as a failed ToolResult, never raised
- Appending the assistant/tool message pair to the transcript
"""

import logging
from dataclasses import replace
from typing import Any, Dict

from logging_config import log_tool
from services.chat_provider import ToolInvocation
from tools.registry import ToolRegistry, ToolResult

from .transcript import Transcript

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Executes tool invocations against a registry, one at a time."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def dispatch(self, invocation: ToolInvocation, transcript: Transcript) -> ToolResult:
        """Execute invocation and append its message pair to transcript.

        Raises:
            UnknownToolError: The model asked for a tool that is not registered
        """
        self.registry.resolve(invocation.name)
        invocation = self._unique_call_id(invocation, transcript)
        args = invocation.flatten()

        log_tool(logger, invocation.name, "start", **self._build_log_context(args))
        result = self.registry.execute(invocation.name, args)
        log_tool(logger, invocation.name, "end", **self._build_result_context(result))

        transcript.add_tool_request(invocation)
        transcript.add_tool_result(invocation.call_id, result.to_message_content())
        return result

    def _unique_call_id(self, invocation: ToolInvocation, transcript: Transcript) -> ToolInvocation:
        # Some servers omit ids or restart numbering every response
        if invocation.call_id and not transcript.has_call(invocation.call_id):
            return invocation
        n = len(transcript)
        while transcript.has_call(f"call_{n}"):
            n += 1
        logger.debug(f"Re-keyed tool call {invocation.call_id!r} -> call_{n}")
        return replace(invocation, call_id=f"call_{n}")

    def _build_log_context(self, args: Dict[str, Any]) -> Dict[str, str]:
        """Build context dict for tool start logging."""
        ctx = {}
        if "query" in args:
            query = str(args.get("query", ""))
            ctx["query"] = f'"{query[:40]}..."' if len(query) > 40 else f'"{query}"'
        elif "node_id" in args:
            ctx["node"] = str(args["node_id"])
        elif "entity_id" in args:
            ctx["entity"] = f"{args.get('entity_type', '')}:{args['entity_id']}"
        return ctx

    def _build_result_context(self, result: ToolResult) -> Dict[str, str]:
        """Build context dict for tool end logging."""
        ctx = {}
        if result.success:
            data = result.data
            for key in ("results", "related_content", "suggestions"):
                if isinstance(data.get(key), list):
                    ctx["results"] = str(len(data[key]))
                    break
        else:
            ctx["error"] = "true"
        return ctx
