"""
Tests for the tool-calling orchestration loop.

The chat endpoint is a ScriptedProvider; tools run against the in-memory
fixture site through the real registry.
"""

import asyncio
import json

import pytest

from conftest import ScriptedProvider, answer, tool_call
from errors import IterationLimitError, UnknownToolError
from routers.chat_orchestration import RunState, ToolCallingOrchestrator
from services.chat_provider import ChatResponse, ToolInvocation


def _run(orchestrator, prompt="Write about Portuguese food", **kwargs):
    return asyncio.run(orchestrator.run(prompt, system_prompt="system", **kwargs))


def _assert_pairing(messages):
    """Every tool message answers exactly one earlier assistant call."""
    issued = []
    for message in messages:
        if message["role"] == "assistant":
            issued.extend(call["id"] for call in message.get("tool_calls", []))
        elif message["role"] == "tool":
            assert issued.count(message["tool_call_id"]) == 1


class TestToolCallingOrchestrator:
    def test_answer_without_tools_takes_one_call(self, registry):
        provider = ScriptedProvider([answer("<p>Hello</p>")])
        orchestrator = ToolCallingOrchestrator(provider, registry, "test-model")

        result = _run(orchestrator)

        assert result.text == "<p>Hello</p>"
        assert result.iterations == 1
        assert result.state is RunState.ANSWERED
        assert len(provider.requests) == 1
        assert orchestrator.state is RunState.ANSWERED

    def test_tools_attached_on_first_iteration_only(self, registry):
        provider = ScriptedProvider([
            tool_call("search_drupal_content", "c1", query="portuguese"),
            tool_call("search_drupal_content", "c2", query="french"),
            answer("final"),
        ])
        orchestrator = ToolCallingOrchestrator(provider, registry, "test-model")

        result = _run(orchestrator, max_iterations=5)

        assert result.text == "final"
        assert provider.requests[0].tools
        assert all(request.tools is None for request in provider.requests[1:])
        assert all(request.system_prompt == "system" for request in provider.requests)

    def test_first_request_advertises_ready_tools(self, registry):
        provider = ScriptedProvider([answer("ok")])
        _run(ToolCallingOrchestrator(provider, registry, "test-model"))

        names = [tool["function"]["name"] for tool in provider.requests[0].tools]
        assert "search_drupal_content" in names
        assert "analyze_content_seo" in names

    def test_requests_are_tagged_for_the_editor(self, registry):
        provider = ScriptedProvider([answer("ok")])
        _run(ToolCallingOrchestrator(provider, registry, "test-model"))
        assert provider.calls == [("test-model", ("ai_ckeditor",))]

    def test_exhaustion_after_max_iterations(self, registry):
        """A model that never stops asking for tools makes exactly N calls."""
        provider = ScriptedProvider([
            tool_call("search_drupal_content", f"c{i}", query="portuguese") for i in range(10)
        ])
        orchestrator = ToolCallingOrchestrator(provider, registry, "test-model")

        with pytest.raises(IterationLimitError) as excinfo:
            _run(orchestrator, max_iterations=3)

        assert excinfo.value.max_iterations == 3
        assert len(provider.requests) == 3
        assert orchestrator.state is RunState.EXHAUSTED

    def test_unknown_tool_aborts_distinctly(self, registry):
        provider = ScriptedProvider([tool_call("drop_database", "c1"), answer("never")])
        orchestrator = ToolCallingOrchestrator(provider, registry, "test-model")

        with pytest.raises(UnknownToolError) as excinfo:
            _run(orchestrator)

        assert excinfo.value.tool_name == "drop_database"
        assert orchestrator.state is RunState.UNKNOWN_TOOL_ABORT
        assert len(provider.requests) == 1

    def test_per_invocation_pairing(self, registry):
        """Two calls in one response become two assistant/tool pairs, in order."""
        provider = ScriptedProvider([
            ChatResponse(tool_invocations=[
                ToolInvocation.from_mapping("a", "search_drupal_content", {"query": "portuguese"}),
                ToolInvocation.from_mapping("b", "get_content_style", {"content_type": "article"}),
            ]),
            answer("done"),
        ])
        orchestrator = ToolCallingOrchestrator(provider, registry, "test-model")

        result = _run(orchestrator)

        messages = result.transcript.to_dicts()
        assert [m["role"] for m in messages] == ["user", "assistant", "tool", "assistant", "tool"]
        assert [m.get("tool_call_id") for m in messages if m["role"] == "tool"] == ["a", "b"]
        assert all(len(m["tool_calls"]) == 1 for m in messages if m["role"] == "assistant")
        _assert_pairing(messages)
        assert result.tools_used == ["search_drupal_content", "get_content_style"]
        # The second request replays the whole transcript
        assert provider.requests[1].messages == messages

    def test_tool_failure_flows_back_as_data(self, registry):
        """A failing tool does not abort the run; the model reads the error."""
        provider = ScriptedProvider([tool_call("search_drupal_content", "c1", query=""), answer("sorry")])
        result = _run(ToolCallingOrchestrator(provider, registry, "test-model"))

        tool_message = result.transcript.to_dicts()[2]
        assert json.loads(tool_message["content"]) == {"result": "Error: Query parameter is required"}
        assert result.text == "sorry"

    def test_successful_tool_result_is_pretty_json(self, registry):
        provider = ScriptedProvider([tool_call("search_drupal_content", "c1", query="portuguese"), answer("ok")])
        result = _run(ToolCallingOrchestrator(provider, registry, "test-model"))

        payload = json.loads(json.loads(result.transcript.to_dicts()[2]["content"])["result"])
        assert payload["query"] == "portuguese"
        assert payload["total_results"] >= 1
        assert all("score" in item for item in payload["results"])

    def test_provider_fault_propagates(self, registry):
        provider = ScriptedProvider([RuntimeError("connection refused")])
        with pytest.raises(RuntimeError):
            _run(ToolCallingOrchestrator(provider, registry, "test-model"))

    def test_single_use(self, registry):
        orchestrator = ToolCallingOrchestrator(ScriptedProvider([answer("a")]), registry, "test-model")
        _run(orchestrator)
        with pytest.raises(RuntimeError):
            _run(orchestrator)

    def test_no_ready_tools_sends_none(self, registry, test_config):
        test_config.enabled_plugins = ""
        provider = ScriptedProvider([answer("ok")])
        _run(ToolCallingOrchestrator(provider, registry, "test-model"))
        assert provider.requests[0].tools is None

    def test_repeated_call_ids_are_rekeyed(self, registry):
        """Servers that number calls per response still yield a valid transcript."""
        provider = ScriptedProvider([
            tool_call("get_content_style", "call_0"),
            tool_call("get_content_style", "call_0"),
            answer("done"),
        ])
        result = _run(ToolCallingOrchestrator(provider, registry, "test-model"))

        messages = result.transcript.to_dicts()
        ids = [m["tool_call_id"] for m in messages if m["role"] == "tool"]
        assert ids[0] == "call_0"
        assert len(set(ids)) == 2
        _assert_pairing(messages)
