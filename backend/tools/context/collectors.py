"""
Context Collectors - one per concern, each a pure function of the request
options and the site data it reads.

Every collector also names how its output is cached (key, tags, max age).
Collectors never raise to their caller: a missing entity, a wrong type,
denied access or an unexpected fault all yield an empty contribution.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from services.site_data import NODE, TAXONOMY_TERM, SiteServices, coerce_entity_id

logger = logging.getLogger(__name__)

SITE_MAX_AGE = 86400
ENTITY_MAX_AGE = 3600
TAXONOMY_MAX_AGE = 21600

SUPPORTED_ENTITY_TYPES = (NODE, TAXONOMY_TERM)


@dataclass(frozen=True)
class ContextOptions:
    """What the caller wants context about."""

    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    plugin: Optional[str] = None

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "ContextOptions":
        options = options or {}
        entity_type = options.get("entity_type") or None
        return cls(
            entity_type=str(entity_type) if entity_type else None,
            entity_id=coerce_entity_id(options.get("entity_id")),
            plugin=options.get("plugin") or None,
        )

    @property
    def has_entity(self) -> bool:
        return bool(self.entity_type) and self.entity_id is not None


@dataclass(frozen=True)
class CachePolicy:
    key: str
    tags: Tuple[str, ...]
    max_age: int


class ContextCollector(ABC):
    """Collects one concern of the context map."""

    concern: str = ""

    def __init__(self, site: SiteServices):
        self.site = site

    def applies(self, options: ContextOptions) -> bool:
        return True

    @abstractmethod
    def cache_policy(self, options: ContextOptions) -> CachePolicy:
        """Where and for how long this collector's output may be cached."""

    @abstractmethod
    def collect(self, options: ContextOptions) -> Dict[str, Any]:
        """Build the contribution; may raise."""

    def safe_collect(self, options: ContextOptions) -> Dict[str, Any]:
        if not self.applies(options):
            return {}
        try:
            return self.collect(options)
        except Exception as e:
            logger.error(f"Context collector {self.concern} failed: {e}", exc_info=True)
            return {}


class SiteConfigCollector(ContextCollector):
    """Site name, slogan, mail and front page from ``system.site``."""

    concern = "site"

    def cache_policy(self, options: ContextOptions) -> CachePolicy:
        return CachePolicy("ai_context:site", ("config:system.site",), SITE_MAX_AGE)

    def collect(self, options: ContextOptions) -> Dict[str, Any]:
        config = self.site.config_store.get("system.site")
        if not config:
            return {}
        return {
            "name": config.get("name", ""),
            "slogan": config.get("slogan", ""),
            "mail": config.get("mail", ""),
            "front": (config.get("page") or {}).get("front", ""),
        }


class EntityMetadataCollector(ContextCollector):
    """Label and lifecycle metadata of the entity being edited."""

    concern = "entity"

    def __init__(self, site: SiteServices, max_age: int = ENTITY_MAX_AGE):
        super().__init__(site)
        self.max_age = max_age

    def applies(self, options: ContextOptions) -> bool:
        return options.has_entity and options.entity_type in SUPPORTED_ENTITY_TYPES

    def cache_policy(self, options: ContextOptions) -> CachePolicy:
        etype, eid = options.entity_type, options.entity_id
        return CachePolicy(f"ai_context:{etype}:{eid}", (f"ai_context:{etype}", f"{etype}:{eid}"), self.max_age)

    def collect(self, options: ContextOptions) -> Dict[str, Any]:
        entity = self.site.load_visible(options.entity_type, options.entity_id)
        if entity is None:
            return {}

        data: Dict[str, Any] = {
            "type": entity.entity_type,
            "id": entity.id,
            "label": entity.label,
        }
        if entity.entity_type == NODE:
            data.update({
                "bundle": entity.bundle,
                "status": "published" if entity.status else "unpublished",
                "created": entity.created,
                "changed": entity.changed,
                "author": entity.owner_name,
                "language": entity.language,
            })
        else:
            data["vocabulary"] = entity.bundle
        return data


class TaxonomyCollector(ContextCollector):
    """Terms a node references, grouped by vocabulary."""

    concern = "taxonomy"

    def applies(self, options: ContextOptions) -> bool:
        return options.has_entity and options.entity_type == NODE

    def cache_policy(self, options: ContextOptions) -> CachePolicy:
        nid = options.entity_id
        return CachePolicy(
            f"ai_context:taxonomy:{nid}",
            ("ai_context:taxonomy", f"node:{nid}", "taxonomy_term_list"),
            TAXONOMY_MAX_AGE,
        )

    def collect(self, options: ContextOptions) -> Dict[str, Any]:
        node = self.site.load_visible(NODE, options.entity_id)
        if node is None:
            return {}

        taxonomies: Dict[str, list] = {}
        for term in self.site.repository.load_multiple(TAXONOMY_TERM, node.referenced_term_ids()):
            if not self.site.access.can_view(term, self.site.account):
                continue
            taxonomies.setdefault(term.bundle, []).append({"id": term.id, "name": term.label})
        return taxonomies
