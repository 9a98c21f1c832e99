"""
Site Data - entity storage, access checks and configuration lookups.

The editor integration never owns content; it reads it through these
narrow interfaces:

- EntityRepository: load/query content entities (nodes, taxonomy terms)
- AccessChecker: can the acting user view an entity?
- ConfigStore: named configuration objects (e.g. ``system.site``)

InMemory* implementations are loaded from a JSON fixture file and notify
subscribers when something is saved, so caches and indexes can react.

Usage:
    from services.site_data import load_site_fixture
    site = load_site_fixture("data/site.json")
    node = site.repository.load("node", 3)
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

NODE = "node"
TAXONOMY_TERM = "taxonomy_term"

PERMISSION_VIEW_UNPUBLISHED = "view any unpublished content"


@dataclass
class EntityField:
    """A field on an entity; reference fields carry target ids in values."""

    name: str
    field_type: str = "string"
    target_type: Optional[str] = None
    values: List[Any] = field(default_factory=list)

    @property
    def is_taxonomy_reference(self) -> bool:
        return self.field_type == "entity_reference" and self.target_type == TAXONOMY_TERM

    @property
    def value(self) -> Any:
        return self.values[0] if self.values else None


@dataclass
class Entity:
    """A content entity as seen by the editor integration.

    Attributes:
        entity_type: "node" or "taxonomy_term"
        id: Numeric id, unique per entity type
        label: Title (nodes) or name (terms)
        bundle: Content type (nodes) or vocabulary id (terms)
        status: Published flag
        created: Unix timestamp
        changed: Unix timestamp
        owner_id: Author account id
        owner_name: Author display name
        language: Language code
        path: URL alias, if any
        fields: Additional fields keyed by machine name
    """

    entity_type: str
    id: int
    label: str
    bundle: str = ""
    status: bool = True
    created: int = 0
    changed: int = 0
    owner_id: int = 0
    owner_name: str = ""
    language: str = "en"
    path: Optional[str] = None
    fields: Dict[str, EntityField] = field(default_factory=dict)

    @property
    def url(self) -> str:
        if self.path:
            return self.path
        if self.entity_type == TAXONOMY_TERM:
            return f"/taxonomy/term/{self.id}"
        return f"/{self.entity_type}/{self.id}"

    @property
    def body(self) -> str:
        body = self.fields.get("body")
        return str(body.value) if body is not None and body.value is not None else ""

    def field_value(self, name: str) -> Any:
        item = self.fields.get(name)
        return item.value if item is not None else None

    def taxonomy_fields(self) -> List[EntityField]:
        return [f for f in self.fields.values() if f.is_taxonomy_reference]

    def referenced_term_ids(self) -> List[int]:
        """Term ids from every taxonomy reference field, first occurrence order."""
        seen: List[int] = []
        for item in self.taxonomy_fields():
            for target_id in item.values:
                tid = int(target_id)
                if tid not in seen:
                    seen.append(tid)
        return seen

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entity":
        fields = {}
        for name, spec in (data.get("fields") or {}).items():
            if isinstance(spec, dict):
                values = spec.get("values", [])
                fields[name] = EntityField(
                    name=name,
                    field_type=spec.get("type", "string"),
                    target_type=spec.get("target_type"),
                    values=list(values) if isinstance(values, list) else [values],
                )
            else:
                fields[name] = EntityField(name=name, values=[spec])
        return cls(
            entity_type=data.get("entity_type", NODE),
            id=int(data["id"]),
            label=data.get("label", ""),
            bundle=data.get("bundle", ""),
            status=bool(data.get("status", True)),
            created=int(data.get("created", 0)),
            changed=int(data.get("changed", data.get("created", 0))),
            owner_id=int(data.get("owner_id", 0)),
            owner_name=data.get("owner_name", ""),
            language=data.get("language", "en"),
            path=data.get("path"),
            fields=fields,
        )


@dataclass(frozen=True)
class SiteUser:
    """The account on whose behalf content is read."""

    id: int = 0
    name: str = "anonymous"
    permissions: FrozenSet[str] = frozenset({"access content"})

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def coerce_entity_id(entity_id: Any) -> Optional[int]:
    """Entity ids arrive as ints or numeric strings; anything else is no id."""
    if isinstance(entity_id, bool):
        return None
    try:
        return int(entity_id)
    except (TypeError, ValueError, OverflowError):
        return None


EntityListener = Callable[[Entity], None]
ConfigListener = Callable[[str], None]


class EntityRepository(ABC):
    """Read access to content entities."""

    @abstractmethod
    def load(self, entity_type: str, entity_id: Any) -> Optional[Entity]:
        """Load one entity, or None when it does not exist."""

    @abstractmethod
    def load_multiple(self, entity_type: str, ids: Iterable[Any]) -> List[Entity]:
        """Load several entities, skipping missing ids."""

    @abstractmethod
    def find(
        self,
        entity_type: str = NODE,
        *,
        bundle: Optional[str] = None,
        published: Optional[bool] = True,
        exclude_ids: Sequence[int] = (),
        term_ids: Optional[Sequence[int]] = None,
        title_contains_any: Optional[Sequence[str]] = None,
        sort: str = "changed",
        limit: Optional[int] = None,
    ) -> List[Entity]:
        """Entity query.

        Args:
            bundle: Restrict to one bundle
            published: True/False filters on status, None disables the filter
            exclude_ids: Ids to leave out
            term_ids: Keep entities referencing at least one of these terms
            title_contains_any: Keep entities whose label contains any fragment
                (case-insensitive); an empty sequence matches nothing
            sort: "changed" (newest first) or "id" (ascending)
            limit: Maximum number of entities
        """

    @abstractmethod
    def subscribe(self, listener: EntityListener) -> None:
        """Call listener(entity) whenever an entity is saved."""

    def vocabulary_label(self, vocabulary_id: str) -> str:
        return vocabulary_id


class AccessChecker(ABC):
    @abstractmethod
    def can_view(self, entity: Entity, account: SiteUser) -> bool:
        """True when account may view entity."""


class DefaultAccessChecker(AccessChecker):
    """Published content is public; unpublished needs ownership or permission."""

    def can_view(self, entity: Entity, account: SiteUser) -> bool:
        if entity.status:
            return True
        if account.has_permission(PERMISSION_VIEW_UNPUBLISHED):
            return True
        return account.id != 0 and account.id == entity.owner_id


class ConfigStore(ABC):
    @abstractmethod
    def get(self, name: str) -> Dict[str, Any]:
        """Configuration object by name; empty dict when missing."""

    @abstractmethod
    def subscribe(self, listener: ConfigListener) -> None:
        """Call listener(name) whenever a configuration object is saved."""


class InMemoryConfigStore(ConfigStore):
    def __init__(self, data: Optional[Dict[str, Dict[str, Any]]] = None):
        self._data = dict(data or {})
        self._listeners: List[ConfigListener] = []

    def get(self, name: str) -> Dict[str, Any]:
        return dict(self._data.get(name, {}))

    def set(self, name: str, value: Dict[str, Any]) -> None:
        self._data[name] = dict(value)
        for listener in self._listeners:
            listener(name)

    def subscribe(self, listener: ConfigListener) -> None:
        self._listeners.append(listener)


class InMemoryEntityRepository(EntityRepository):
    """Dict-backed repository used for fixtures, tests and small sites."""

    def __init__(self, entities: Iterable[Entity] = (), vocabularies: Optional[Dict[str, str]] = None):
        self._entities: Dict[tuple, Entity] = {}
        self._vocabularies = dict(vocabularies or {})
        self._listeners: List[EntityListener] = []
        for entity in entities:
            self._entities[(entity.entity_type, entity.id)] = entity

    def __len__(self) -> int:
        return len(self._entities)

    def load(self, entity_type: str, entity_id: Any) -> Optional[Entity]:
        eid = coerce_entity_id(entity_id)
        if eid is None:
            return None
        return self._entities.get((entity_type, eid))

    def load_multiple(self, entity_type: str, ids: Iterable[Any]) -> List[Entity]:
        loaded = []
        for entity_id in ids:
            entity = self.load(entity_type, entity_id)
            if entity is not None:
                loaded.append(entity)
        return loaded

    def all(self, entity_type: str = NODE) -> List[Entity]:
        return [e for (etype, _), e in self._entities.items() if etype == entity_type]

    def find(
        self,
        entity_type: str = NODE,
        *,
        bundle: Optional[str] = None,
        published: Optional[bool] = True,
        exclude_ids: Sequence[int] = (),
        term_ids: Optional[Sequence[int]] = None,
        title_contains_any: Optional[Sequence[str]] = None,
        sort: str = "changed",
        limit: Optional[int] = None,
    ) -> List[Entity]:
        excluded = {int(i) for i in exclude_ids}
        wanted_terms = {int(t) for t in term_ids} if term_ids is not None else None
        fragments = [f.lower() for f in title_contains_any] if title_contains_any is not None else None

        matches = []
        for entity in self.all(entity_type):
            if bundle is not None and entity.bundle != bundle:
                continue
            if published is not None and entity.status != published:
                continue
            if entity.id in excluded:
                continue
            if wanted_terms is not None and not wanted_terms.intersection(entity.referenced_term_ids()):
                continue
            if fragments is not None and not any(f in entity.label.lower() for f in fragments):
                continue
            matches.append(entity)

        if sort == "changed":
            matches.sort(key=lambda e: (e.changed, e.id), reverse=True)
        else:
            matches.sort(key=lambda e: e.id)

        if limit is not None:
            matches = matches[:limit]
        return matches

    def save(self, entity: Entity) -> None:
        self._entities[(entity.entity_type, entity.id)] = entity
        for listener in self._listeners:
            listener(entity)

    def subscribe(self, listener: EntityListener) -> None:
        self._listeners.append(listener)

    def vocabulary_label(self, vocabulary_id: str) -> str:
        return self._vocabularies.get(vocabulary_id, vocabulary_id)


@dataclass
class SiteData:
    repository: InMemoryEntityRepository
    config_store: InMemoryConfigStore


def load_site_fixture(path: str | Path) -> SiteData:
    """Load a JSON site fixture.

    Format::

        {
          "config": {"system.site": {"name": ..., "slogan": ..., "mail": ..., "page": {"front": ...}}},
          "vocabularies": {"tags": "Tags"},
          "entities": [{"entity_type": "node", "id": 1, "label": ..., "fields": {...}}, ...]
        }

    A missing file yields an empty site.
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Site fixture not found at {path}, starting with an empty site")
        return SiteData(InMemoryEntityRepository(), InMemoryConfigStore())

    data = json.loads(path.read_text(encoding="utf-8"))
    entities = [Entity.from_dict(item) for item in data.get("entities", [])]
    repository = InMemoryEntityRepository(entities, vocabularies=data.get("vocabularies"))
    config_store = InMemoryConfigStore(data.get("config"))
    logger.info(f"Site fixture loaded: {len(entities)} entities from {path}")
    return SiteData(repository, config_store)


@dataclass
class SiteServices:
    """Collaborators the tools and collectors read site data through."""

    repository: EntityRepository
    config_store: ConfigStore
    access: AccessChecker = field(default_factory=DefaultAccessChecker)
    account: SiteUser = field(default_factory=SiteUser)

    def load_visible(self, entity_type: str, entity_id: Any) -> Optional[Entity]:
        """Load an entity the acting account may view, else None."""
        entity = self.repository.load(entity_type, entity_id)
        if entity is None or not self.access.can_view(entity, self.account):
            return None
        return entity

    def visible(self, entities: Iterable[Entity]) -> List[Entity]:
        return [e for e in entities if self.access.can_view(e, self.account)]
