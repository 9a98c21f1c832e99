"""
Exception types raised by tools, services and the orchestrator.

Every error carries an ErrorCode, a message, optional user-facing details,
a recoverable flag and free-form debugging context. Subclasses pick their
code from the keyword arguments they are given; an explicit ``code=`` wins.
"""

from typing import Any, Optional
from .codes import ErrorCode


class AIContextError(Exception):
    """Root of the hierarchy; unexpected internal errors by default."""

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.context = dict(context) or None
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

    def __str__(self) -> str:
        return f"{self.message} - {self.details}" if self.details else self.message

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


def _without_none(**values: Any) -> dict:
    return {k: v for k, v in values.items() if v is not None and v != ""}


class ValidationError(AIContextError):
    """A tool or request argument is missing or malformed.

    Defaults to VALIDATION_MISSING_PARAM; pass ``code=`` for type/format
    problems.
    """

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        context.update(_without_none(parameter=parameter, expected=expected, received=received))
        super().__init__(message, details, **context)


class NotFoundError(AIContextError):
    """An entity, index or config object the caller named does not exist
    (or is not visible to the acting account)."""

    code = ErrorCode.NOT_FOUND_ENTITY
    recoverable = True

    RESOURCE_CODES = {
        "node": ErrorCode.NOT_FOUND_NODE,
        "taxonomy_term": ErrorCode.NOT_FOUND_TERM,
        "index": ErrorCode.NOT_FOUND_INDEX,
        "config": ErrorCode.NOT_FOUND_CONFIG,
    }

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        **context: Any,
    ):
        code = context.pop("code", None) or self.RESOURCE_CODES.get(resource_type, ErrorCode.NOT_FOUND_ENTITY)
        context.update(_without_none(resource_type=resource_type, resource_id=resource_id))
        super().__init__(message, details, code=code, **context)


class LLMError(AIContextError):
    """The chat endpoint failed, timed out or answered with something unusable."""

    code = ErrorCode.LLM_UNAVAILABLE
    recoverable = False

    ERROR_TYPE_CODES = {
        "timeout": ErrorCode.LLM_TIMEOUT,
        "parse": ErrorCode.LLM_PARSE_FAILED,
        "invalid": ErrorCode.LLM_RESPONSE_INVALID,
    }

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        model: Optional[str] = None,
        error_type: Optional[str] = None,
        **context: Any,
    ):
        code = context.pop("code", None) or self.ERROR_TYPE_CODES.get(error_type, ErrorCode.LLM_UNAVAILABLE)
        context.update(_without_none(model=model))
        super().__init__(message, details, code=code, **context)


class ExternalServiceError(AIContextError):
    """A backing service (search index, chat endpoint, Redis) failed."""

    code = ErrorCode.EXTERNAL_NETWORK_ERROR
    recoverable = True

    SERVICE_CODES = {
        "search": ErrorCode.EXTERNAL_SEARCH_FAILED,
        "llm": ErrorCode.EXTERNAL_LLM_FAILED,
        "cache": ErrorCode.EXTERNAL_CACHE_FAILED,
    }

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        code = context.pop("code", None) or self.SERVICE_CODES.get(service, ErrorCode.EXTERNAL_NETWORK_ERROR)
        context.update(_without_none(service=service, status_code=status_code or None))
        super().__init__(message, details, code=code, **context)


class ProviderConfigurationError(AIContextError):
    """No usable chat provider is configured. Never retried."""

    code = ErrorCode.PROVIDER_NOT_CONFIGURED
    recoverable = False


class UnknownToolError(AIContextError):
    """The model asked for a tool the registry cannot resolve."""

    code = ErrorCode.TOOL_UNKNOWN
    recoverable = False

    def __init__(self, tool_name: str, details: Optional[str] = None, **context: Any):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool requested: {tool_name}", details, tool_name=tool_name, **context)


class IterationLimitError(AIContextError):
    """The tool-calling loop ran out of iterations without a final answer."""

    code = ErrorCode.TOOL_ITERATION_LIMIT
    recoverable = False

    def __init__(self, max_iterations: int, details: Optional[str] = None, **context: Any):
        self.max_iterations = max_iterations
        super().__init__("Maximum tool iterations reached.", details, max_iterations=max_iterations, **context)


class TranscriptError(AIContextError):
    """A message would break the transcript's tool-call pairing."""

    code = ErrorCode.TOOL_TRANSCRIPT_INVALID
    recoverable = False
