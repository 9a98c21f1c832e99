"""
Tests for the OpenAI-compatible chat provider translation layer.
"""

import json
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from conftest import ScriptedProvider, answer
from errors import ErrorCode, LLMError, ProviderConfigurationError
from services.chat_provider import ChatRequest, ToolInjectingProvider
from services.llm_client import (
    OpenAIChatProvider,
    _extract_thinking,
    _translate_messages_for_openai,
    _translate_tool_calls_from_openai,
)
from utils.llm import clear_providers, get_chat_provider


def _choice(content=None, tool_calls=None):
    choice = MagicMock()
    choice.message.content = content
    choice.message.tool_calls = tool_calls
    return choice


def _openai_call(call_id, name, arguments):
    call = MagicMock()
    call.id = call_id
    call.function.name = name
    call.function.arguments = arguments
    return call


class TestTranslateMessages:
    def test_system_prompt_first(self):
        translated = _translate_messages_for_openai([{"role": "user", "content": "Hi"}], "Be brief")
        assert translated == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hi"},
        ]

    def test_assistant_tool_calls(self):
        messages = [
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [{"id": "c1", "function": {"name": "search_drupal_content", "arguments": {"query": "x"}}}],
            },
            {"role": "tool", "content": '{"result": "[]"}', "tool_call_id": "c1"},
        ]
        assistant, tool = _translate_messages_for_openai(messages)

        assert assistant["content"] is None
        assert assistant["tool_calls"] == [{
            "id": "c1",
            "type": "function",
            "function": {"name": "search_drupal_content", "arguments": json.dumps({"query": "x"})},
        }]
        assert tool == {"role": "tool", "content": '{"result": "[]"}', "tool_call_id": "c1"}


class TestTranslateToolCalls:
    def test_parses_arguments(self):
        choices = [_choice(tool_calls=[_openai_call("c1", "search_drupal_content", '{"query": "paella", "limit": 3}')])]
        [invocation] = _translate_tool_calls_from_openai(choices)

        assert invocation.call_id == "c1"
        assert invocation.name == "search_drupal_content"
        assert invocation.flatten() == {"query": "paella", "limit": 3}

    @pytest.mark.parametrize("arguments", ["{not json", "[1, 2]", ""])
    def test_bad_arguments_become_empty(self, arguments):
        choices = [_choice(tool_calls=[_openai_call("c1", "get_content_style", arguments)])]
        assert _translate_tool_calls_from_openai(choices)[0].flatten() == {}

    def test_missing_id_gets_positional_id(self):
        choices = [_choice(tool_calls=[_openai_call(None, "a", "{}"), _openai_call(None, "b", "{}")])]
        assert [i.call_id for i in _translate_tool_calls_from_openai(choices)] == ["call_0", "call_1"]

    def test_no_tool_calls(self):
        assert _translate_tool_calls_from_openai([_choice(content="hi")]) == []
        assert _translate_tool_calls_from_openai([]) == []


class TestExtractThinking:
    def test_strips_think_tags(self):
        assert _extract_thinking("<think>plan</think><p>Hi</p>") == ("<p>Hi</p>", "plan")

    def test_plain(self):
        assert _extract_thinking("<p>Hi</p>") == ("<p>Hi</p>", "")


class TestOpenAIChatProvider:
    def test_chat_request_shape(self):
        provider = OpenAIChatProvider(base_url="http://llm.test/v1/", temperature=0.2)
        create = MagicMock(return_value=MagicMock(choices=[_choice(content="<p>Hi</p>")]))
        provider._openai = MagicMock()
        provider._openai.chat.completions.create = create

        tools = [{"type": "function", "function": {"name": "x"}}]
        response = provider.chat(ChatRequest(messages=[{"role": "user", "content": "Hi"}], tools=tools), "m1")

        assert response.text == "<p>Hi</p>"
        assert not response.has_tool_calls
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "m1"
        assert kwargs["tools"] == tools
        assert kwargs["temperature"] == 0.2
        assert provider.base_url == "http://llm.test/v1"

    def test_tools_omitted_when_absent(self):
        provider = OpenAIChatProvider(base_url="http://llm.test/v1")
        provider._openai = MagicMock()
        provider._openai.chat.completions.create.return_value = MagicMock(choices=[_choice(content="ok")])

        provider.chat(ChatRequest(messages=[{"role": "user", "content": "Hi"}]), "m1")

        assert "tools" not in provider._openai.chat.completions.create.call_args.kwargs

    def test_timeout_becomes_llm_error(self):
        provider = OpenAIChatProvider(base_url="http://llm.test/v1")
        provider._openai = MagicMock()
        request = httpx.Request("POST", "http://llm.test/v1/chat/completions")
        provider._openai.chat.completions.create.side_effect = openai.APITimeoutError(request=request)

        with pytest.raises(LLMError) as excinfo:
            provider.chat(ChatRequest(messages=[{"role": "user", "content": "Hi"}]), "m1")

        assert excinfo.value.code == ErrorCode.LLM_TIMEOUT
        assert excinfo.value.context == {"model": "m1"}

    def test_connection_failure_becomes_llm_error(self):
        provider = OpenAIChatProvider(base_url="http://llm.test/v1")
        provider._openai = MagicMock()
        request = httpx.Request("POST", "http://llm.test/v1/chat/completions")
        provider._openai.chat.completions.create.side_effect = openai.APIConnectionError(request=request)

        with pytest.raises(LLMError) as excinfo:
            provider.chat(ChatRequest(messages=[{"role": "user", "content": "Hi"}]), "m1")

        assert excinfo.value.code == ErrorCode.LLM_UNAVAILABLE
        assert excinfo.value.message == "Chat request failed"


class TestProviderFactory:
    @pytest.fixture(autouse=True)
    def fresh(self):
        clear_providers()
        yield
        clear_providers()

    def test_not_configured(self, test_config):
        test_config.llm_base_url = ""
        with pytest.raises(ProviderConfigurationError):
            get_chat_provider(test_config)

    def test_missing_model(self, test_config):
        test_config.model_chat = ""
        with pytest.raises(ProviderConfigurationError) as excinfo:
            get_chat_provider(test_config)
        assert excinfo.value.code.value == "PROVIDER_MODEL_MISSING"

    def test_provider_reused_per_settings(self, test_config):
        first = get_chat_provider(test_config)
        assert get_chat_provider(test_config) is first
        test_config.llm_base_url = "http://other.test/v1"
        assert get_chat_provider(test_config) is not first


class TestToolInjectingProvider:
    def test_injects_into_tagged_requests_without_tools(self):
        inner = ScriptedProvider([answer("a"), answer("b"), answer("c")])
        schema = [{"type": "function", "function": {"name": "x"}}]
        provider = ToolInjectingProvider(inner, lambda: schema)

        provider.chat(ChatRequest(messages=[]), "m", ["ai_ckeditor"])
        provider.chat(ChatRequest(messages=[]), "m", ["other"])
        own = [{"type": "function", "function": {"name": "y"}}]
        provider.chat(ChatRequest(messages=[], tools=own), "m", ["ai_ckeditor"])

        assert inner.requests[0].tools == schema
        assert inner.requests[1].tools is None
        assert inner.requests[2].tools == own
