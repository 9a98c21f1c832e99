"""
Dict shapes for tool results and API payloads.

Failures look like ``{"success": False, "error": {...}}``; successes are a
flat ``{"success": True, ...}``.
"""

from typing import Any, Optional
from .codes import ErrorCode
from .exceptions import AIContextError


def error_response(error: AIContextError | Exception, tool: Optional[str] = None, include_context: bool = True) -> dict:
    """Turn an exception into a failure dict.

    Foreign exceptions are reported as INTERNAL_UNEXPECTED and never carry
    context. ``include_context=False`` drops the debugging context of
    AIContextError too.

    Example:
        >>> error_response(NotFoundError("Node not found", resource_type="node"), tool="get_related_content")
        {"success": False, "error": {"code": "NOT_FOUND_NODE", "message": "Node not found",
         "details": None, "tool": "get_related_content", "recoverable": True,
         "context": {"resource_type": "node"}}}
    """
    if isinstance(error, AIContextError):
        payload = error.to_dict()
        if not include_context:
            payload["context"] = None
    else:
        payload = {
            "code": ErrorCode.INTERNAL_UNEXPECTED.value,
            "message": str(error),
            "details": None,
            "recoverable": False,
            "context": None,
        }
    payload["tool"] = tool
    return {"success": False, "error": payload}


def success_response(data: Optional[dict] = None, **kwargs: Any) -> dict:
    response = {"success": True}
    response.update(data or {})
    response.update(kwargs)
    return response


def format_error_for_llm(error: AIContextError | Exception | dict, tool: Optional[str] = None) -> str:
    """Render an error as the model sees it: ``Error: <message>`` plus ``Details: <details>`` when present.

    Accepts an exception or an error_response() dict, so tool results that
    already failed softly read the same way.
    """
    if isinstance(error, dict):
        payload = error.get("error", error)
        message, details = payload.get("message", "Unknown error"), payload.get("details")
    elif isinstance(error, AIContextError):
        message, details = error.message, error.details
    else:
        message, details = str(error), None

    text = f"Error: {message}"
    return f"{text} Details: {details}" if details else text
