"""
Editor Context - site and entity metadata for prompt enrichment.

Usage:
    from tools.context import ContextService

    service = ContextService(site, cache, transforms=[redact_site_mail])
    context = service.collect_context({"entity_type": "node", "entity_id": 3})
    prompt = service.enrich_prompt("Write an intro paragraph", context)
"""

from .collectors import (
    ContextOptions,
    CachePolicy,
    ContextCollector,
    SiteConfigCollector,
    EntityMetadataCollector,
    TaxonomyCollector,
)
from .service import (
    ContextService,
    ContextTransform,
    redact_site_mail,
)

__all__ = [
    "ContextOptions",
    "CachePolicy",
    "ContextCollector",
    "SiteConfigCollector",
    "EntityMetadataCollector",
    "TaxonomyCollector",
    "ContextService",
    "ContextTransform",
    "redact_site_mail",
]
