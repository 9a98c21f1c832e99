"""
Application services container.

Everything a request handler needs, built once at startup and injected via
``app.state.services``. Tests build their own container around an in-memory
site and a fake chat provider.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from config import McpMode, RuntimeConfig
from services.chat_provider import ChatProvider, ToolInjectingProvider
from services.context_cache import ContextCache
from services.search_index import BM25ContentIndex, SearchIndex
from services.site_data import SiteServices, SiteUser, load_site_fixture
from tools.context import ContextService, ContextTransform, redact_site_mail
from tools.plugins import build_tool_registry
from tools.registry import ToolRegistry
from tools.search import ContentSearchTool
from utils.llm import get_chat_provider

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Shared collaborators for one application instance."""

    config: RuntimeConfig
    site: SiteServices
    index: Optional[SearchIndex]
    cache: ContextCache
    context_service: ContextService
    registry: ToolRegistry
    search_tool: ContentSearchTool
    provider_factory: Callable[[RuntimeConfig], ChatProvider] = field(default=get_chat_provider)

    def chat_provider(self) -> ChatProvider:
        """Provider for the current settings.

        Raises:
            ProviderConfigurationError: No usable provider is configured
        """
        provider = self.provider_factory(self.config)
        if self.config.mode is McpMode.FULL and self.config.resend_tool_descriptors:
            return ToolInjectingProvider(provider, self.registry.get_tools_schema)
        return provider

    def refresh_context_settings(self) -> None:
        """Re-apply the context settings: transform pipeline and entity metadata max age."""
        self.context_service.transforms = context_transforms(self.config)
        self.context_service.entity_collector.max_age = self.config.context_max_age


def acting_user(config: RuntimeConfig) -> SiteUser:
    permissions = frozenset(p.strip() for p in config.acting_user_permissions.split(",") if p.strip())
    return SiteUser(id=0, name="ai_context", permissions=permissions)


def context_transforms(config: RuntimeConfig) -> List[ContextTransform]:
    transforms: List[ContextTransform] = []
    if not config.expose_site_mail:
        transforms.append(redact_site_mail)
    return transforms


def build_services(
    config: RuntimeConfig,
    site: Optional[SiteServices] = None,
    cache: Optional[ContextCache] = None,
    index: Optional[SearchIndex] = None,
    provider_factory: Optional[Callable[[RuntimeConfig], ChatProvider]] = None,
) -> AppServices:
    """Wire the services container; any collaborator may be supplied pre-built."""
    if site is None:
        fixture = load_site_fixture(config.site_data_path)
        site = SiteServices(fixture.repository, fixture.config_store, account=acting_user(config))

    if index is None:
        index = BM25ContentIndex(site.repository, index_id=config.search_index_id)

    if cache is None:
        cache = ContextCache(config.redis_url, enabled=config.redis_enabled)

    context_service = ContextService(
        site,
        cache,
        transforms=context_transforms(config),
        entity_max_age=config.context_max_age,
    )
    registry = build_tool_registry(site, index, context_service, config)

    services = AppServices(
        config=config,
        site=site,
        index=index,
        cache=cache,
        context_service=context_service,
        registry=registry,
        search_tool=ContentSearchTool(site, index),
        provider_factory=provider_factory or get_chat_provider,
    )
    logger.info(
        f"Services ready: mode={config.mode.value}, tools={len(registry)}, "
        f"cache={'memory' if cache.fallback_mode else 'redis'}"
    )
    return services
