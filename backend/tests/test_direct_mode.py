"""
Tests for direct mode: one search, enriched prompt, one chat call.
"""

import asyncio
from unittest.mock import MagicMock

from conftest import ScriptedProvider, answer
from routers.chat_orchestration import DirectModeEnricher, format_results_block
from routers.chat_orchestration.prompts import DIRECT_MODE_SYSTEM_PROMPT


class TestFormatResultsBlock:
    def test_lines_and_markers(self):
        block = format_results_block([
            {"title": "Portuguese Cuisine Basics", "url": "/articles/portuguese-cuisine", "excerpt": "Olive oil..."},
            {"title": "Pastel de Nata Recipe", "url": "/node/3"},
        ])

        assert block == (
            "RELEVANT CONTENT FROM SITE:\n"
            "- Portuguese Cuisine Basics → /articles/portuguese-cuisine\n"
            "  Excerpt: Olive oil...\n"
            "- Pastel de Nata Recipe → /node/3\n"
            "\nUSE ONLY THESE URLS for internal links.\n"
        )


class TestEnrichPrompt:
    def test_results_prepended(self, search_tool):
        enricher = DirectModeEnricher(search_tool, ScriptedProvider(), "test-model")
        enriched = enricher.enrich_prompt("Write about portuguese food")

        assert enriched.startswith("RELEVANT CONTENT FROM SITE:\n")
        assert "Portuguese Cuisine Basics → /articles/portuguese-cuisine" in enriched
        assert "Pastel de Nata Recipe → /node/3" in enriched
        assert "USE ONLY THESE URLS" in enriched
        assert enriched.endswith("\nUSER REQUEST:\nWrite about portuguese food")

    def test_search_uses_query_not_prompt(self):
        tool = MagicMock()
        tool.search.return_value = {"results": []}
        enricher = DirectModeEnricher(tool, ScriptedProvider(), "test-model")

        enricher.enrich_prompt("Format the answer... Write about paella", query="Write about paella")

        tool.search.assert_called_once_with(query="Write about paella", limit=5)

    def test_no_results_leaves_prompt(self, search_tool):
        enricher = DirectModeEnricher(search_tool, ScriptedProvider(), "test-model")
        assert enricher.enrich_prompt("xylophone") == "xylophone"

    def test_search_failure_swallowed(self):
        tool = MagicMock()
        tool.search.side_effect = RuntimeError("index offline")
        enricher = DirectModeEnricher(tool, ScriptedProvider(), "test-model")
        assert enricher.enrich_prompt("Write about paella") == "Write about paella"

    def test_without_search_tool(self):
        enricher = DirectModeEnricher(None, ScriptedProvider(), "test-model")
        assert enricher.enrich_prompt("Write") == "Write"


class TestRun:
    def test_single_call_without_tools(self, search_tool):
        provider = ScriptedProvider([answer("<p>Obrigado</p>")])
        enricher = DirectModeEnricher(search_tool, provider, "test-model")

        text = asyncio.run(enricher.run("Write about portuguese food"))

        assert text == "<p>Obrigado</p>"
        assert len(provider.requests) == 1
        request = provider.requests[0]
        assert request.tools is None
        assert request.system_prompt == DIRECT_MODE_SYSTEM_PROMPT
        assert request.messages[0]["role"] == "user"
        assert "Portuguese Cuisine Basics" in request.messages[0]["content"]
        assert provider.calls == [("test-model", ("ai_ckeditor",))]
