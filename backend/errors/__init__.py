"""
Error codes, exceptions and response helpers shared by tools and routers.

    from errors import handle_tool_errors, NotFoundError

    @handle_tool_errors("get_related_content")
    def get_related_content(self, node_id, limit=5):
        node = self.site.repository.load("node", node_id)
        if node is None:
            raise NotFoundError("Node not found", resource_type="node", resource_id=node_id)
"""

from .codes import ErrorCode
from .exceptions import (
    AIContextError,
    ExternalServiceError,
    IterationLimitError,
    LLMError,
    NotFoundError,
    ProviderConfigurationError,
    TranscriptError,
    UnknownToolError,
    ValidationError,
)
from .handlers import handle_async_tool_errors, handle_tool_errors, log_error
from .response import error_response, format_error_for_llm, success_response

__all__ = [
    "ErrorCode",
    "AIContextError",
    "ExternalServiceError",
    "IterationLimitError",
    "LLMError",
    "NotFoundError",
    "ProviderConfigurationError",
    "TranscriptError",
    "UnknownToolError",
    "ValidationError",
    "handle_async_tool_errors",
    "handle_tool_errors",
    "log_error",
    "error_response",
    "format_error_for_llm",
    "success_response",
]
