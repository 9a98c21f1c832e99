"""
Tool Plugins - builds the registry the editor endpoint and MCP API share.

Two plugin groups, switched on and off by ``enabled_plugins``:

- search_api_content: search_drupal_content
- drupal_context: get_current_context, get_related_content,
  suggest_internal_links, analyze_content_seo, get_content_style

A disabled group stays registered (it can still be executed by name) but its
tools fail the readiness check, so they are not advertised to the model.
"""

import logging
from typing import Any, Dict, Optional

from config import RuntimeConfig
from errors import handle_tool_errors
from services.search_index import SearchIndex
from services.site_data import SiteServices
from tools.content_analysis import ContentAnalysisTools
from tools.context import ContextOptions, ContextService
from tools.registry import ToolCategory, ToolDefinition, ToolRegistry
from tools import search

logger = logging.getLogger(__name__)

SEARCH_PLUGIN = "search_api_content"
CONTEXT_PLUGIN = "drupal_context"

CONTEXT_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "get_current_context": {
        "type": "object",
        "properties": {
            "entity_type": {
                "type": "string",
                "description": "Entity type (node, taxonomy_term)",
                "enum": ["node", "taxonomy_term"],
            },
            "entity_id": {
                "type": "integer",
                "description": "Entity ID",
            },
        },
    },
    "get_related_content": {
        "type": "object",
        "properties": {
            "node_id": {"type": "integer", "description": "Current node ID"},
            "content_type": {"type": "string", "description": "Filter by content type (optional)"},
            "limit": {
                "type": "integer",
                "description": "Maximum number of results",
                "default": 5,
                "minimum": 1,
                "maximum": 20,
            },
        },
        "required": ["node_id"],
    },
    "suggest_internal_links": {
        "type": "object",
        "properties": {
            "text": {"type": "string", "description": "Text content to analyze for link opportunities"},
            "current_node_id": {"type": "integer", "description": "Current node ID to exclude from suggestions"},
            "max_suggestions": {
                "type": "integer",
                "description": "Maximum number of link suggestions",
                "default": 3,
                "minimum": 1,
                "maximum": 10,
            },
        },
        "required": ["text"],
    },
    "analyze_content_seo": {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Content title"},
            "body": {"type": "string", "description": "Content body text"},
            "meta_description": {"type": "string", "description": "Meta description (optional)"},
        },
        "required": ["title", "body"],
    },
    "get_content_style": {
        "type": "object",
        "properties": {
            "content_type": {
                "type": "string",
                "description": "Content type to analyze",
                "default": "article",
            },
            "sample_size": {
                "type": "integer",
                "description": "Number of recent items to analyze",
                "default": 10,
                "minimum": 3,
                "maximum": 20,
            },
        },
    },
}

CONTEXT_DESCRIPTIONS = {
    "get_current_context": "Get context information about the current page/content being edited.",
    "get_related_content": "Find content related to the current page based on taxonomy and content type.",
    "suggest_internal_links": "Analyze text and suggest relevant internal links to existing site content.",
    "analyze_content_seo": "Analyze content for SEO optimization opportunities.",
    "get_content_style": "Analyze the writing style and patterns used in existing content of a specific type.",
}


def _context_tool(context_service: ContextService):
    @handle_tool_errors("get_current_context")
    def get_current_context(entity_type: Optional[str] = None, entity_id: Any = None) -> Dict[str, Any]:
        options = ContextOptions.from_mapping({"entity_type": entity_type, "entity_id": entity_id})
        return context_service.collect_context(options)

    return get_current_context


def build_tool_registry(
    site: SiteServices,
    index: Optional[SearchIndex],
    context_service: ContextService,
    config: RuntimeConfig,
) -> ToolRegistry:
    """Register every tool against one site and return the registry."""
    registry = ToolRegistry()

    search_tool = search.ContentSearchTool(site, index)
    registry.register(
        ToolDefinition(
            name=search.TOOL_NAME,
            friendly_name="Content Search",
            description=search.DESCRIPTION,
            input_schema=search.INPUT_SCHEMA,
            executor=search_tool.execute,
            category=ToolCategory.SEARCH,
            plugin=SEARCH_PLUGIN,
            ready=lambda: config.is_plugin_enabled(SEARCH_PLUGIN) and search_tool.is_ready(),
        )
    )

    analysis = ContentAnalysisTools(site)
    executors = {
        "get_current_context": (_context_tool(context_service), ToolCategory.CONTEXT),
        "get_related_content": (analysis.get_related_content, ToolCategory.CONTEXT),
        "suggest_internal_links": (analysis.suggest_internal_links, ToolCategory.ANALYSIS),
        "analyze_content_seo": (analysis.analyze_content_seo, ToolCategory.ANALYSIS),
        "get_content_style": (analysis.get_content_style, ToolCategory.ANALYSIS),
    }
    for name, (executor, category) in executors.items():
        registry.register(
            ToolDefinition(
                name=name,
                friendly_name=name.replace("_", " ").title(),
                description=CONTEXT_DESCRIPTIONS[name],
                input_schema=CONTEXT_SCHEMAS[name],
                executor=executor,
                category=category,
                plugin=CONTEXT_PLUGIN,
                ready=lambda: config.is_plugin_enabled(CONTEXT_PLUGIN),
            )
        )

    logger.info(f"Registered {len(registry)} tools ({', '.join(config.get_enabled_plugins()) or 'no plugins enabled'})")
    return registry
