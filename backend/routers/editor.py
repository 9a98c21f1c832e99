"""
Editor Router - the rich-text editor's AI request endpoint.

POST /api/ai-ckeditor/request/{editor_id}/{plugin_id}
    body: {"prompt": str, "entity_type"?: str, "entity_id"?: int}
    200 text/plain: the model's answer

The configured mode picks the route once per request: full runs the
tool-calling loop, direct runs one search and one chat call. In direct mode
the context-enrichment middleware may already have rewritten the prompt; the
pre-enrichment prompt then arrives as ``_original_prompt``.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from config import McpMode
from errors import IterationLimitError, ProviderConfigurationError, UnknownToolError, log_error
from logging_config import log_message_in, log_message_out
from services.app_services import AppServices
from tools.plugins import SEARCH_PLUGIN

from .chat_orchestration import (
    FULL_MODE_SYSTEM_PROMPT,
    DirectModeEnricher,
    ToolCallingOrchestrator,
    parse_allowed_tags,
    prepare_prompt,
)
from .dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai-ckeditor", tags=["editor"])

FAILURE_PREFIX = "The request could not be completed: "


class EditorRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = ""
    entity_type: Optional[str] = None
    entity_id: Optional[Union[int, str]] = None
    original_prompt: Optional[str] = Field(None, alias="_original_prompt")
    context_applied: bool = Field(False, alias="_context_applied")


def _failure(message: str, status_code: int) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status_code)


@router.post("/request/{editor_id}/{plugin_id}", response_class=PlainTextResponse)
async def editor_request(
    editor_id: str,
    plugin_id: str,
    body: EditorRequest,
    services: AppServices = Depends(get_services),
):
    """Answer one editor prompt."""
    config = services.config
    mode = config.mode
    log_message_in(
        logger,
        body.prompt,
        mode=mode.value,
        editor=editor_id,
        plugin=plugin_id,
        context="yes" if body.context_applied else "no",
    )

    try:
        if not body.prompt.strip():
            raise ValueError("Prompt is required")

        provider = services.chat_provider()
        prompt = prepare_prompt(body.prompt, parse_allowed_tags(config.allowed_html_tags))

        if mode is McpMode.FULL:
            orchestrator = ToolCallingOrchestrator(provider, services.registry, config.model_chat)
            result = await orchestrator.run(
                prompt,
                system_prompt=FULL_MODE_SYSTEM_PROMPT,
                max_iterations=config.max_tool_iterations,
            )
            log_message_out(logger, result.tools_used, result.iterations)
            return PlainTextResponse(result.text)

        search_tool = services.search_tool if config.is_plugin_enabled(SEARCH_PLUGIN) else None
        enricher = DirectModeEnricher(search_tool, provider, config.model_chat)
        query = body.original_prompt or body.prompt
        text = await enricher.run(prompt, query=query)
        log_message_out(logger, [], 1)
        return PlainTextResponse(text)

    except ProviderConfigurationError as e:
        log_error(logger, e, context="Editor", include_traceback=False)
        return _failure(FAILURE_PREFIX + e.message, 400)
    except UnknownToolError as e:
        log_error(logger, e, context="Editor", include_traceback=False)
        return _failure(e.message, 500)
    except IterationLimitError as e:
        logger.warning(f"Editor request exhausted {e.max_iterations} iterations")
        return _failure("Maximum tool iterations reached.", 500)
    except Exception as e:
        logger.error(f"Editor request failed: {e}", exc_info=True)
        return _failure(FAILURE_PREFIX + str(e), 400)
