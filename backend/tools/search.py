"""
Content Search Tool - ranked full-text search over published site content.

Thin wrapper over a SearchIndex: runs the query, loads the matching nodes the
acting account may view, and shapes each hit into the requested fields. When
the index has no native excerpt, one is cut from the body around the first
query word found.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from errors import ErrorCode, ExternalServiceError, ValidationError, handle_tool_errors
from services.search_index import SearchIndex, strip_tags
from services.site_data import NODE, Entity, SiteServices
from tools.arguments import bounded_int, string_list

logger = logging.getLogger(__name__)

TOOL_NAME = "search_drupal_content"

DEFAULT_FIELDS = ["title", "url", "excerpt"]
DEFAULT_LIMIT = 10
MAX_LIMIT = 50

EXCERPT_LEAD = 100
EXCERPT_LENGTH = 200
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "description": "Search query keywords",
        },
        "content_types": {
            "type": "array",
            "description": "Filter by content types (e.g., article, page)",
            "items": {"type": "string"},
        },
        "limit": {
            "type": "integer",
            "description": "Maximum number of results",
            "default": DEFAULT_LIMIT,
            "minimum": 1,
            "maximum": MAX_LIMIT,
        },
        "fields": {
            "type": "array",
            "description": "Fields to return (title, url, excerpt, type, created, changed)",
            "items": {"type": "string"},
        },
    },
    "required": ["query"],
}

DESCRIPTION = "Search site content using the full-text search index. Returns relevant content based on the query."


def synthesize_excerpt(body: str, query: str) -> str:
    """Cut a window of the stripped body around the first query word found.

    Query words are the lowercased query split on spaces; only words longer
    than two characters count, tried in query order.
    """
    text = strip_tags(body)
    if not text:
        return ""

    lowered = text.lower()
    for word in query.lower().split(" "):
        if len(word) <= 2:
            continue
        pos = lowered.find(word)
        if pos >= 0:
            start = max(0, pos - EXCERPT_LEAD)
            excerpt = text[start:start + EXCERPT_LENGTH]
            return ("..." if start > 0 else "") + excerpt + "..."

    return text[:EXCERPT_LENGTH] + "..."


def format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).strftime(DATE_FORMAT)


class ContentSearchTool:
    """Search tool bound to one index and one site."""

    def __init__(self, site: SiteServices, index: Optional[SearchIndex]):
        self.site = site
        self.index = index

    def is_ready(self) -> bool:
        return self.index is not None and self.index.is_ready()

    def search(
        self,
        query: str = "",
        content_types: Any = None,
        limit: Any = DEFAULT_LIMIT,
        fields: Any = None,
    ) -> Dict[str, Any]:
        """Run a search; raises on any failure.

        Returns:
            {"query", "total_results", "results": [{"score", ...fields}], "timing_ms"}
        """
        if not query or not str(query).strip():
            raise ValidationError("Query parameter is required", parameter="query")
        if self.index is None:
            raise ExternalServiceError(
                "Search index not available",
                service="search",
                code=ErrorCode.NOT_FOUND_INDEX,
            )

        query = str(query)
        limit = bounded_int(limit, DEFAULT_LIMIT, 1, MAX_LIMIT, "limit")
        wanted_fields = string_list(fields) or list(DEFAULT_FIELDS)
        type_filter = string_list(content_types) or None

        start = time.perf_counter()
        result_set = self.index.query(query, type_filter=type_filter, limit=limit)

        results: List[Dict[str, Any]] = []
        for hit in result_set.hits:
            entity = self.site.load_visible(NODE, hit.entity_id)
            if entity is None or not entity.status:
                continue
            item: Dict[str, Any] = {"score": round(hit.score, 2)}
            for name in wanted_fields:
                value = self._field(entity, name, query, hit.excerpt)
                if value is not None:
                    item["content_type" if name == "type" else name] = value
            results.append(item)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"Search '{query}' -> {len(results)}/{result_set.total} in {elapsed_ms:.1f}ms")

        return {
            "query": query,
            "total_results": result_set.total,
            "results": results,
            "timing_ms": round(elapsed_ms, 2),
        }

    def _field(self, entity: Entity, name: str, query: str, native_excerpt: Optional[str]) -> Any:
        if name == "title":
            return entity.label
        if name == "url":
            return entity.url
        if name == "excerpt":
            return native_excerpt or synthesize_excerpt(entity.body, query)
        if name == "type":
            return entity.bundle
        if name in ("created", "changed"):
            return format_timestamp(getattr(entity, name))
        value = entity.field_value(name)
        return str(value) if value is not None else None

    @handle_tool_errors(TOOL_NAME)
    def execute(self, query: str = "", content_types: Any = None, limit: Any = DEFAULT_LIMIT, fields: Any = None) -> Dict[str, Any]:
        """Tool entry point: failures come back as an error result."""
        return self.search(query=query, content_types=content_types, limit=limit, fields=fields)
