"""
Console logging for the ai-context backend.

``setup_logging()`` installs one stdout handler with ColorFormatter on the
root logger. Level comes from LOG_LEVEL (default INFO); colours are dropped
when NO_COLOR is set or stdout is not a terminal.

The ``log_*`` helpers give pipeline events a fixed, greppable prefix:

    >>> PROMPT  Write an intro [mode=direct plugin=ai_ckeditor_completion]
    ... CONTEXT applied keys=current_entity,site
    >>> TOOL    search_drupal_content query=paella
    <<< ANSWER  tools=[search_drupal_content] iterations=2
"""

import logging
import os
import sys
from typing import Optional

RESET = "\033[0m"
DIM = "\033[2m"

EVENT_COLORS = {
    "PROMPT": "\033[96m",
    "ANSWER": "\033[92m",
    "CONTEXT": "\033[95m",
    "TOOL": "\033[93m",
    "LLM": "\033[94m",
}

LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[1;91m",
}

QUIET_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")

_use_color = True


class ColorFormatter(logging.Formatter):
    """``HH:MM:SS [LEVL] message``, level tag coloured unless disabled."""

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = record.levelname[:4]
        if self.color:
            level_color = LEVEL_COLORS.get(record.levelno, "")
            line = f"{DIM}{timestamp}{RESET} [{level_color}{level}{RESET}] {record.getMessage()}"
        else:
            line = f"{timestamp} [{level}] {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: Optional[int] = None) -> None:
    global _use_color

    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO
    _use_color = not os.getenv("NO_COLOR") and sys.stdout.isatty()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter(color=_use_color))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _tag(direction: str, event: str) -> str:
    if not _use_color:
        return f"{direction} {event}"
    return f"{EVENT_COLORS[event]}{direction} {event}{RESET}"


def _pairs(context: dict) -> str:
    return " ".join(f"{k}={v}" for k, v in context.items())


def log_message_in(logger: logging.Logger, message: str, **context) -> None:
    """Incoming editor prompt, truncated to 80 characters."""
    preview = message if len(message) <= 80 else message[:80] + "..."
    logger.info(f"{_tag('>>>', 'PROMPT')} {preview} [{_pairs(context)}]")


def log_message_out(logger: logging.Logger, tools_used: Optional[list] = None, iterations: int = 0) -> None:
    tools = ", ".join(tools_used) if tools_used else "none"
    logger.info(f"{_tag('<<<', 'ANSWER')} tools=[{tools}] iterations={iterations}")


def log_context(logger: logging.Logger, state: str, **context) -> None:
    """state: applied, skipped or cached."""
    logger.info(f"{_tag('...', 'CONTEXT')} {state} {_pairs(context)}".rstrip())


def log_tool(logger: logging.Logger, tool_name: str, state: str, **context) -> None:
    direction = ">>>" if state == "start" else "<<<"
    logger.info(f"{_tag(direction, 'TOOL')} {tool_name} {_pairs(context)}".rstrip())


def log_llm(logger: logging.Logger, state: str, model: str = "", duration: float = 0) -> None:
    if state == "start":
        logger.info(f"{_tag('>>>', 'LLM')} calling {model}")
    else:
        logger.info(f"{_tag('<<<', 'LLM')} {model} completed in {duration:.1f}s")
