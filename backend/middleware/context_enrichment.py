"""
Context Enrichment Middleware - rewrites editor prompts with site context.

Runs only for the editor request path and only in direct mode. The JSON body
is read, context is collected for ``{entity_type, entity_id, plugin}`` and the
prompt is replaced by its enriched version before the route handler reads it:

    {"prompt": "<enriched>", "_original_prompt": "<as sent>", "_context_applied": true, ...}

An empty body, invalid JSON or any fault while enriching is logged and the
request continues with its original body.

Usage:
    app.add_middleware(ContextEnrichmentMiddleware)
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from starlette.concurrency import run_in_threadpool
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from config import McpMode
from logging_config import log_context

logger = logging.getLogger(__name__)

EDITOR_PATH = re.compile(r"^/api/ai-ckeditor/request/([^/]+)/([^/]+)")


class ContextEnrichmentMiddleware:
    """ASGI middleware; body rewriting needs access to the raw receive channel."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        match = EDITOR_PATH.match(scope.get("path", ""))
        services = getattr(scope["app"].state, "services", None) if "app" in scope else None
        if not match or services is None or services.config.mode is not McpMode.DIRECT:
            await self.app(scope, receive, send)
            return

        body, more = await _read_body(receive)
        plugin = match.group(2)

        try:
            new_body = await run_in_threadpool(_enrich_body, services, body, plugin)
        except Exception as e:
            logger.error(f"Context enrichment failed: {e}", exc_info=True)
            new_body = None

        if new_body is None:
            new_body = body
        else:
            scope = dict(scope)
            scope["headers"] = _with_content_length(scope.get("headers", []), len(new_body))

        await self.app(scope, _replay(new_body, receive, more), send)


async def _read_body(receive: Receive):
    """Drain the request body. Returns (body, trailing messages already received)."""
    chunks: List[bytes] = []
    more: List[Message] = []
    while True:
        message = await receive()
        if message["type"] != "http.request":
            more.append(message)
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks), more


def _replay(body: bytes, receive: Receive, pending: List[Message]) -> Receive:
    sent = False

    async def replay() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        if pending:
            return pending.pop(0)
        return await receive()

    return replay


def _with_content_length(headers, length: int) -> list:
    kept = [(k, v) for k, v in headers if k.lower() != b"content-length"]
    kept.append((b"content-length", str(length).encode("latin-1")))
    return kept


def _enrich_body(services, body: bytes, plugin: str) -> Optional[bytes]:
    """New body with the enriched prompt, or None to pass the original through."""
    if not body:
        logger.debug("Context enrichment skipped: empty body")
        return None

    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning(f"Context enrichment skipped: invalid JSON body ({e})")
        return None
    if not isinstance(data, dict):
        logger.warning("Context enrichment skipped: body is not a JSON object")
        return None

    prompt = data.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        return None

    options: Dict[str, Any] = {
        "entity_type": data.get("entity_type"),
        "entity_id": data.get("entity_id"),
        "plugin": plugin,
    }
    context = services.context_service.collect_context(options)
    if not context:
        log_context(logger, "skipped", plugin=plugin, reason="no context")
        return None

    enriched = services.context_service.enrich_prompt(prompt, context)
    if enriched == prompt:
        return None

    data["prompt"] = enriched
    data["_original_prompt"] = prompt
    data["_context_applied"] = True
    log_context(
        logger,
        "applied",
        plugin=plugin,
        keys=",".join(sorted(context)),
        entity=f"{options['entity_type']}:{options['entity_id']}" if options["entity_id"] else "none",
    )
    return json.dumps(data).encode("utf-8")
