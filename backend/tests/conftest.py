"""
Shared pytest fixtures: an in-memory site, a scripted chat provider and the
services container wired around them.
"""

from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from config import RuntimeConfig
from main import create_app
from services.chat_provider import ChatProvider, ChatRequest, ChatResponse, ToolInvocation
from services.context_cache import ContextCache
from services.search_index import BM25ContentIndex
from services.site_data import (
    Entity,
    InMemoryConfigStore,
    InMemoryEntityRepository,
    SiteServices,
    SiteUser,
)
from services.app_services import build_services
from tools.context import ContextService
from tools.search import ContentSearchTool


def _tags(*ids):
    return {"type": "entity_reference", "target_type": "taxonomy_term", "values": list(ids)}


SITE_CONFIG = {
    "system.site": {
        "name": "Taste Atlas",
        "slogan": "Food stories from around the world",
        "mail": "editors@example.com",
        "page": {"front": "/node/1"},
    }
}

ENTITIES: List[Dict[str, Any]] = [
    {"entity_type": "taxonomy_term", "id": 1, "label": "Portuguese", "bundle": "tags"},
    {"entity_type": "taxonomy_term", "id": 2, "label": "French", "bundle": "tags"},
    {"entity_type": "taxonomy_term", "id": 3, "label": "Seafood", "bundle": "tags"},
    {
        "entity_type": "node", "id": 1, "bundle": "page", "label": "About Taste Atlas",
        "created": 1000, "changed": 1000, "owner_name": "admin", "path": "/about",
        "fields": {"body": "<p>Food stories and recipes from cooks and travellers.</p>"},
    },
    {
        "entity_type": "node", "id": 2, "bundle": "article", "label": "Portuguese Cuisine Basics",
        "created": 2000, "changed": 2000, "owner_name": "marta", "path": "/articles/portuguese-cuisine",
        "fields": {
            "body": "<p>Portuguese cuisine is built on olive oil, garlic and salt cod.</p>",
            "field_tags": _tags(1, 3),
        },
    },
    {
        "entity_type": "node", "id": 3, "bundle": "article", "label": "Pastel de Nata Recipe",
        "created": 3000, "changed": 3000, "owner_name": "marta",
        "fields": {
            "body": "<p>A Portuguese custard tart with crisp puff pastry.</p>",
            "field_tags": _tags(1),
        },
    },
    {
        "entity_type": "node", "id": 4, "bundle": "article", "label": "French Cuisine Sauces",
        "created": 4000, "changed": 4000, "owner_name": "julien", "path": "/articles/french-sauces",
        "fields": {
            "body": "<p>The five mother sauces of French cuisine.</p>",
            "field_tags": _tags(2),
        },
    },
    {
        "entity_type": "node", "id": 5, "bundle": "article", "label": "Portuguese Seafood Draft",
        "status": False, "created": 5000, "changed": 5000, "owner_id": 7, "owner_name": "marta",
        "fields": {
            "body": "<p>Unpublished notes on Portuguese seafood.</p>",
            "field_tags": _tags(1, 3),
        },
    },
    {
        "entity_type": "node", "id": 6, "bundle": "article", "label": "Fresh Pasta",
        "created": 1500, "changed": 1500, "owner_name": "giulia",
        "fields": {"body": "<p>Eggs and flour, kneaded and rolled thin.</p>"},
    },
]


class ScriptedProvider(ChatProvider):
    """Chat provider that replays scripted responses and records every request.

    Once the script runs out it answers with plain text "done".
    """

    provider_id = "scripted"

    def __init__(self, responses: Optional[Sequence[Any]] = None, healthy: bool = True):
        self.responses = list(responses or [])
        self.requests: List[ChatRequest] = []
        self.calls: List[tuple] = []
        self.healthy = healthy

    def chat(self, request: ChatRequest, model_id: str, tags: Sequence[str] = ()) -> ChatResponse:
        self.requests.append(request)
        self.calls.append((model_id, tuple(tags)))
        if not self.responses:
            return ChatResponse(text="done")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def is_healthy(self, timeout: float = 3.0) -> bool:
        return self.healthy


def tool_call(name: str, call_id: str = "call_1", **arguments) -> ChatResponse:
    """A response requesting a single tool."""
    return ChatResponse(tool_invocations=[ToolInvocation.from_mapping(call_id, name, arguments)])


def answer(text: str) -> ChatResponse:
    return ChatResponse(text=text)


@pytest.fixture
def repository():
    return InMemoryEntityRepository(
        [Entity.from_dict(item) for item in ENTITIES],
        vocabularies={"tags": "Tags"},
    )


@pytest.fixture
def config_store():
    return InMemoryConfigStore({name: dict(values) for name, values in SITE_CONFIG.items()})


@pytest.fixture
def site(repository, config_store):
    return SiteServices(repository, config_store, account=SiteUser())


@pytest.fixture
def cache():
    return ContextCache(enabled=False)


@pytest.fixture
def index(repository):
    return BM25ContentIndex(repository)


@pytest.fixture
def search_tool(site, index):
    return ContentSearchTool(site, index)


@pytest.fixture
def context_service(site, cache):
    return ContextService(site, cache)


@pytest.fixture
def test_config(tmp_path):
    config = RuntimeConfig(
        mcp_mode="direct",
        max_tool_iterations=3,
        enabled_plugins="search_api_content,drupal_context",
        allowed_html_tags="",
        resend_tool_descriptors=False,
        expose_site_mail=False,
        llm_base_url="http://llm.test/v1",
        llm_api_key="",
        model_chat="test-model",
        redis_enabled=False,
    )
    config._overrides_path = tmp_path / "config_overrides.json"
    return config


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def services(test_config, site, cache, index, provider):
    return build_services(test_config, site=site, cache=cache, index=index, provider_factory=lambda config: provider)


@pytest.fixture
def registry(services):
    return services.registry


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


@pytest.fixture
def api_keys(monkeypatch):
    monkeypatch.setenv("MCP_API_KEY", "mcp-secret")
    monkeypatch.setenv("ADMIN_API_KEY", "admin-secret")
    return {"X-MCP-Key": "mcp-secret", "X-Admin-Key": "admin-secret"}
