"""
Error codes for the ai-context backend.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes.

    Categories:
    - VALIDATION_*: Input validation errors
    - NOT_FOUND_*: Resource not found errors
    - LLM_*: Language model errors
    - TOOL_*: Tool registry and tool-calling loop errors
    - PROVIDER_*: Chat provider configuration errors
    - EXTERNAL_*: External service errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_TYPE = "VALIDATION_INVALID_TYPE"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Not found errors (missing resources)
    NOT_FOUND_ENTITY = "NOT_FOUND_ENTITY"
    NOT_FOUND_NODE = "NOT_FOUND_NODE"
    NOT_FOUND_TERM = "NOT_FOUND_TERM"
    NOT_FOUND_INDEX = "NOT_FOUND_INDEX"
    NOT_FOUND_CONFIG = "NOT_FOUND_CONFIG"

    # LLM errors (model interactions)
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_PARSE_FAILED = "LLM_PARSE_FAILED"
    LLM_RESPONSE_INVALID = "LLM_RESPONSE_INVALID"

    # Tool-calling errors
    TOOL_UNKNOWN = "TOOL_UNKNOWN"
    TOOL_DUPLICATE = "TOOL_DUPLICATE"
    TOOL_ITERATION_LIMIT = "TOOL_ITERATION_LIMIT"
    TOOL_TRANSCRIPT_INVALID = "TOOL_TRANSCRIPT_INVALID"

    # Provider configuration errors
    PROVIDER_NOT_CONFIGURED = "PROVIDER_NOT_CONFIGURED"
    PROVIDER_MODEL_MISSING = "PROVIDER_MODEL_MISSING"

    # External service errors
    EXTERNAL_SEARCH_FAILED = "EXTERNAL_SEARCH_FAILED"
    EXTERNAL_LLM_FAILED = "EXTERNAL_LLM_FAILED"
    EXTERNAL_CACHE_FAILED = "EXTERNAL_CACHE_FAILED"
    EXTERNAL_NETWORK_ERROR = "EXTERNAL_NETWORK_ERROR"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_CONFIG_ERROR = "INTERNAL_CONFIG_ERROR"
    INTERNAL_STATE_ERROR = "INTERNAL_STATE_ERROR"
