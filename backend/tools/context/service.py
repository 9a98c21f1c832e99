"""
Context Service - assembles the site/entity context map and turns it into
a prompt prefix.

Flow for collect_context():
    1. site collector (cached 24h)
    2. entity collector (cached 1h) + taxonomy collector (cached 6h), only when
       the caller names an entity the acting account may view
    3. ordered context transforms, each (context, options) -> context

Cached entries are dropped by tag when the repository or the configuration
store reports a save.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from logging_config import log_context
from services.context_cache import ContextCache
from services.site_data import NODE, TAXONOMY_TERM, Entity, SiteServices
from tools.context.collectors import (
    ContextCollector,
    ContextOptions,
    EntityMetadataCollector,
    SiteConfigCollector,
    TaxonomyCollector,
    ENTITY_MAX_AGE,
)

logger = logging.getLogger(__name__)

ContextTransform = Callable[[Dict[str, Any], ContextOptions], Dict[str, Any]]

CONTEXT_HEADER = "DRUPAL SITE CONTEXT:\n"
REQUEST_HEADER = "\n\nUSER REQUEST:\n"


def redact_site_mail(context: Dict[str, Any], options: ContextOptions) -> Dict[str, Any]:
    """Keep the site e-mail address out of anything sent to the model."""
    site = context.get("site")
    if site and "mail" in site:
        context = {**context, "site": {k: v for k, v in site.items() if k != "mail"}}
    return context


def _ucfirst(value: str) -> str:
    return value[:1].upper() + value[1:]


class ContextService:
    """Collects, caches and formats editor context."""

    def __init__(
        self,
        site: SiteServices,
        cache: ContextCache,
        transforms: Sequence[ContextTransform] = (),
        entity_max_age: int = ENTITY_MAX_AGE,
    ):
        self.site = site
        self.cache = cache
        self.transforms: List[ContextTransform] = list(transforms)
        self.site_collector = SiteConfigCollector(site)
        self.entity_collector = EntityMetadataCollector(site, max_age=entity_max_age)
        self.taxonomy_collector = TaxonomyCollector(site)

        site.repository.subscribe(self.invalidate_entity)
        site.config_store.subscribe(self.invalidate_config)

    def collect_context(self, options: Union[ContextOptions, Mapping[str, Any], None] = None) -> Dict[str, Any]:
        """Build the context map for options. Never raises; unknown input gives less context."""
        if not isinstance(options, ContextOptions):
            options = ContextOptions.from_mapping(options)

        context: Dict[str, Any] = {}

        site = self._collect_cached(self.site_collector, options)
        if site:
            context["site"] = site

        if options.has_entity:
            entity = self._collect_entity(options)
            if entity:
                context["entity"] = entity

        for transform in self.transforms:
            try:
                context = transform(context, options)
            except Exception as e:
                logger.error(f"Context transform {getattr(transform, '__name__', transform)} failed: {e}", exc_info=True)

        return context

    def _collect_entity(self, options: ContextOptions) -> Dict[str, Any]:
        # Access is checked per request; only the metadata itself is cached
        if self.site.load_visible(options.entity_type, options.entity_id) is None:
            log_context(logger, "skipped", entity=f"{options.entity_type}:{options.entity_id}", reason="unavailable")
            return {}

        entity = self._collect_cached(self.entity_collector, options)
        if not entity:
            return {}
        entity = dict(entity)

        if options.entity_type == NODE:
            taxonomy = self._collect_cached(self.taxonomy_collector, options)
            entity["taxonomies"] = {
                vocabulary: [term["name"] for term in terms]
                for vocabulary, terms in taxonomy.items()
            }
        return entity

    def _collect_cached(self, collector: ContextCollector, options: ContextOptions) -> Dict[str, Any]:
        if not collector.applies(options):
            return {}
        policy = collector.cache_policy(options)

        cached = self.cache.get(policy.key)
        if cached is not None:
            return cached

        value = collector.safe_collect(options)
        if value:
            self.cache.set(policy.key, value, max_age=policy.max_age, tags=policy.tags)
        return value

    def enrich_prompt(self, prompt: str, context: Dict[str, Any], context_keys: Optional[Iterable[str]] = None) -> str:
        """Prefix prompt with a readable summary of context.

        Args:
            prompt: The user's prompt
            context: Map from collect_context()
            context_keys: Optional subset of top-level keys to include

        Returns:
            The enriched prompt, or prompt unchanged when there is nothing to add
        """
        if context_keys is not None:
            keys = set(context_keys)
            context = {k: v for k, v in context.items() if k in keys}
        if not context:
            return prompt

        formatted = self.format_context(context)
        if not formatted:
            return prompt
        return CONTEXT_HEADER + formatted + REQUEST_HEADER + prompt

    @staticmethod
    def format_context(context: Dict[str, Any]) -> str:
        lines = []

        site = context.get("site") or {}
        if site.get("name"):
            lines.append(f"Site: {site['name']}")
        if site.get("slogan"):
            lines.append(f"Slogan: {site['slogan']}")

        entity = context.get("entity") or {}
        if entity:
            lines.append(f"Content: {entity.get('label', '')} ({entity.get('type', '')})")
            if entity.get("bundle"):
                lines.append(f"Type: {entity['bundle']}")
            for vocabulary, terms in (entity.get("taxonomies") or {}).items():
                if terms:
                    lines.append(f"{_ucfirst(vocabulary)}: {', '.join(terms)}")

        return "\n".join(lines)

    # === Invalidation ===

    def invalidate_entity(self, entity: Entity) -> int:
        tags = [f"{entity.entity_type}:{entity.id}"]
        if entity.entity_type == TAXONOMY_TERM:
            tags.append("taxonomy_term_list")
        return self.cache.invalidate_tags(tags)

    def invalidate_config(self, name: str) -> int:
        return self.cache.invalidate_tags([f"config:{name}"])

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        return self.cache.invalidate_tags(tags)
