"""
Chat Orchestration - the two routes an editor request can take to the model.

Components:
- Transcript / Message: append-only conversation with tool-call pairing checks
- ToolDispatcher: resolves, executes and records one tool invocation
- ToolCallingOrchestrator: bounded tool-calling loop (full mode)
- DirectModeEnricher: one search spliced into the prompt, one chat call (direct mode)
- prepare_prompt: editor output-format rules prepended to every prompt
"""

from .transcript import Message, Transcript
from .tool_dispatch import ToolDispatcher
from .orchestrator import OrchestrationResult, RunState, ToolCallingOrchestrator
from .direct import DirectModeEnricher, format_results_block
from .prompts import (
    DIRECT_MODE_SYSTEM_PROMPT,
    FULL_MODE_SYSTEM_PROMPT,
    parse_allowed_tags,
    prepare_prompt,
)

__all__ = [
    "Message",
    "Transcript",
    "ToolDispatcher",
    "OrchestrationResult",
    "RunState",
    "ToolCallingOrchestrator",
    "DirectModeEnricher",
    "format_results_block",
    "DIRECT_MODE_SYSTEM_PROMPT",
    "FULL_MODE_SYSTEM_PROMPT",
    "parse_allowed_tags",
    "prepare_prompt",
]
