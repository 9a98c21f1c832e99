"""
Decorators that keep tool faults inside the tool boundary.

A decorated tool never raises: AIContextError subclasses are logged as
warnings, anything else with a stack trace, and both come back as an
error_response() dict the orchestrator can hand to the model.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .exceptions import AIContextError
from .response import error_response

F = TypeVar("F", bound=Callable[..., Any])


def _tool_logger(tool_name: str, logger: Optional[logging.Logger]) -> logging.Logger:
    return logger or logging.getLogger(f"ai_context.{tool_name}")


def _failed(log: logging.Logger, tool_name: str, error: Exception) -> dict:
    if isinstance(error, AIContextError):
        log.warning(f"[{tool_name}] {error.code.value}: {error.message}")
    else:
        log.error(f"[{tool_name}] Unexpected error: {error}", exc_info=error)
    return error_response(error, tool=tool_name)


def handle_tool_errors(tool_name: str, logger: Optional[logging.Logger] = None):
    """Wrap a synchronous tool method.

    Example:
        >>> @handle_tool_errors("get_related_content")
        ... def related(self, node_id):
        ...     node = self.repository.load("node", node_id)
        ...     if node is None:
        ...         raise NotFoundError("Node not found", resource_type="node")
        ...     return {"related_content": [...]}
    """

    def decorator(func: F) -> F:
        log = _tool_logger(tool_name, logger)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> dict:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                return _failed(log, tool_name, e)

        return wrapper  # type: ignore

    return decorator


def handle_async_tool_errors(tool_name: str, logger: Optional[logging.Logger] = None):
    """Coroutine counterpart of handle_tool_errors."""

    def decorator(func: F) -> F:
        log = _tool_logger(tool_name, logger)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> dict:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                return _failed(log, tool_name, e)

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log ``[context] CODE: message`` for AIContextError, ``[context] message`` otherwise."""
    message = f"{error.code.value}: {error.message}" if isinstance(error, AIContextError) else str(error)
    if context:
        message = f"[{context}] {message}"
    logger.error(message, exc_info=include_traceback)
