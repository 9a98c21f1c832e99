"""
Direct-Mode Enricher - the single-round alternative to the tool loop.

One search with the user's prompt (limit 5), results spliced above the
prompt, one chat call without tools. A failing search never fails the
request; the prompt is then sent as is.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from logging_config import log_llm
from services.chat_provider import EDITOR_TAG, ChatProvider, ChatRequest
from tools.search import ContentSearchTool

from .prompts import DIRECT_MODE_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DIRECT_SEARCH_LIMIT = 5
RESULTS_HEADER = "RELEVANT CONTENT FROM SITE:\n"
URL_INSTRUCTION = "\nUSE ONLY THESE URLS for internal links.\n"
REQUEST_HEADER = "\nUSER REQUEST:\n"


def format_results_block(results: List[Dict[str, Any]]) -> str:
    lines = [RESULTS_HEADER]
    for result in results:
        lines.append(f"- {result.get('title', '')} → {result.get('url', '')}\n")
        if result.get("excerpt"):
            lines.append(f"  Excerpt: {result['excerpt']}\n")
    lines.append(URL_INSTRUCTION)
    return "".join(lines)


class DirectModeEnricher:
    """Search once, enrich the prompt, chat once."""

    def __init__(
        self,
        search_tool: Optional[ContentSearchTool],
        provider: ChatProvider,
        model_id: str,
        tags: Sequence[str] = (EDITOR_TAG,),
    ):
        self.search_tool = search_tool
        self.provider = provider
        self.model_id = model_id
        self.tags = tuple(tags)

    def enrich_prompt(self, prompt: str, query: Optional[str] = None) -> str:
        """Return prompt with search results prepended, or prompt unchanged.

        Args:
            prompt: Prompt that will be sent to the model
            query: Search keywords; defaults to prompt
        """
        if self.search_tool is None:
            return prompt
        try:
            found = self.search_tool.search(query=query or prompt, limit=DIRECT_SEARCH_LIMIT)
        except Exception as e:
            logger.warning(f"Direct mode search failed: {e}")
            return prompt

        results = found.get("results") or []
        if not results:
            logger.info("Direct mode: no search results, prompt unchanged")
            return prompt

        logger.info(f"Direct mode: prompt enriched with {len(results)} results")
        return format_results_block(results) + REQUEST_HEADER + prompt

    async def run(self, prompt: str, query: Optional[str] = None) -> str:
        """Enrich prompt and return the model's text verbatim."""
        loop = asyncio.get_running_loop()
        enriched = await loop.run_in_executor(None, lambda: self.enrich_prompt(prompt, query))

        request = ChatRequest(
            messages=[{"role": "user", "content": enriched}],
            system_prompt=DIRECT_MODE_SYSTEM_PROMPT,
        )
        log_llm(logger, "start", model=self.model_id)
        start = time.time()
        response = await loop.run_in_executor(
            None, lambda: self.provider.chat(request, self.model_id, self.tags)
        )
        log_llm(logger, "end", model=self.model_id, duration=time.time() - start)
        return response.text
