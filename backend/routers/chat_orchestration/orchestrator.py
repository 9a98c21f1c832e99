"""
Tool-Calling Orchestrator - bounded conversation loop with the chat endpoint.

Per iteration:
1. Send the full transcript (tool descriptors attached on iteration 1 only)
2. No tool calls in the response -> that text is the answer
3. Otherwise run each requested tool in order, appending one
   assistant/tool message pair per invocation, and go round again

Terminal states: ANSWERED, EXHAUSTED (IterationLimitError) and
UNKNOWN_TOOL_ABORT (UnknownToolError). One orchestrator instance drives
one run; tools within an iteration run sequentially.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from errors import IterationLimitError, UnknownToolError
from logging_config import log_llm
from services.chat_provider import EDITOR_TAG, ChatProvider, ChatRequest, ChatResponse
from tools.registry import ToolRegistry

from .tool_dispatch import ToolDispatcher
from .transcript import Transcript

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    STARTED = "started"
    ANSWERED = "answered"
    EXHAUSTED = "exhausted"
    UNKNOWN_TOOL_ABORT = "unknown_tool_abort"


@dataclass
class OrchestrationResult:
    """Outcome of a run that reached ANSWERED."""

    text: str
    transcript: Transcript
    iterations: int
    state: RunState = RunState.ANSWERED
    tools_used: List[str] = field(default_factory=list)


class ToolCallingOrchestrator:
    """Drives one tool-calling run against a chat provider."""

    def __init__(
        self,
        provider: ChatProvider,
        registry: ToolRegistry,
        model_id: str,
        tags: Sequence[str] = (EDITOR_TAG,),
    ):
        self.provider = provider
        self.registry = registry
        self.dispatcher = ToolDispatcher(registry)
        self.model_id = model_id
        self.tags = tuple(tags)
        self.state: Optional[RunState] = None
        self.transcript: Optional[Transcript] = None
        self.chat_calls = 0

    async def run(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        max_iterations: int = 3,
    ) -> OrchestrationResult:
        """Run the loop to a terminal state.

        Args:
            prompt: Initial user message
            system_prompt: Optional system instruction, sent every iteration
            tools: Descriptors for iteration 1; defaults to the registry's ready tools
            max_iterations: Ceiling on chat calls

        Raises:
            UnknownToolError: The model requested an unregistered tool
            IterationLimitError: No final answer within max_iterations
        """
        if self.state is not None:
            raise RuntimeError("Orchestrator instances drive a single run")

        self.state = RunState.STARTED
        self.transcript = Transcript.start(prompt)
        if tools is None:
            tools = self.registry.get_tools_schema()
        tools_used: List[str] = []

        for iteration in range(1, max_iterations + 1):
            request = ChatRequest(
                messages=self.transcript.to_dicts(),
                system_prompt=system_prompt,
                tools=(tools or None) if iteration == 1 else None,
            )
            response = await self._call_chat(request, iteration)

            if not response.has_tool_calls:
                self.state = RunState.ANSWERED
                logger.info(f"Run answered after {iteration} iteration(s), tools: {tools_used or 'none'}")
                return OrchestrationResult(
                    text=response.text,
                    transcript=self.transcript,
                    iterations=iteration,
                    tools_used=tools_used,
                )

            for invocation in response.tool_invocations:
                try:
                    self.dispatcher.dispatch(invocation, self.transcript)
                except UnknownToolError:
                    self.state = RunState.UNKNOWN_TOOL_ABORT
                    logger.warning(f"Run aborted: model requested unknown tool {invocation.name!r}")
                    raise
                tools_used.append(invocation.name)

        self.state = RunState.EXHAUSTED
        logger.warning(f"Run exhausted {max_iterations} iteration(s) without a final answer")
        raise IterationLimitError(max_iterations)

    async def _call_chat(self, request: ChatRequest, iteration: int) -> ChatResponse:
        loop = asyncio.get_running_loop()
        logger.debug(
            f"Iteration {iteration}: {len(request.messages)} messages, "
            f"{len(request.tools) if request.tools else 0} tools"
        )
        log_llm(logger, "start", model=self.model_id)
        start = time.time()
        self.chat_calls += 1
        response = await loop.run_in_executor(
            None, lambda: self.provider.chat(request, self.model_id, self.tags)
        )
        log_llm(logger, "end", model=self.model_id, duration=time.time() - start)
        return response
