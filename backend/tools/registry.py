"""
Tool Registry - maps tool names to executors and their advertised schemas.

Each tool declares its own input schema (JSON-schema object). At registration
time the schema is translated once into an immutable ToolDescriptor, which is
what the chat endpoint sees. A tool whose readiness check fails is left out
of describe_all() but can still be resolved and executed by name.

Usage:
    registry = ToolRegistry()
    registry.register(ToolDefinition(name="search_drupal_content", ...))

    schema = registry.get_tools_schema()        # for the chat request
    tool = registry.resolve("search_drupal_content")  # raises UnknownToolError
    result = registry.execute("search_drupal_content", {"query": "paella"})
"""

import inspect
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from errors import ErrorCode, ValidationError, UnknownToolError, format_error_for_llm

logger = logging.getLogger(__name__)


class ToolCategory(Enum):
    """Tool categories for grouping."""

    SEARCH = "search"  # Full-text index queries
    CONTEXT = "context"  # Site/entity context lookups
    ANALYSIS = "analysis"  # Content heuristics (SEO, style, links)


@dataclass(frozen=True)
class ToolParameter:
    """One advertised parameter of a tool."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    enum: Optional[Tuple[Any, ...]] = None
    items: Optional[str] = None  # item type for arrays

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.type == "array" and self.items:
            schema["items"] = {"type": self.items}
        return schema


@dataclass(frozen=True)
class ToolDescriptor:
    """Immutable advertisement of a tool to the chat endpoint."""

    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = ()

    @classmethod
    def from_input_schema(cls, name: str, description: str, input_schema: Dict[str, Any]) -> "ToolDescriptor":
        """Translate a tool's self-declared JSON schema into a descriptor."""
        properties = input_schema.get("properties") or {}
        required = set(input_schema.get("required") or [])
        unknown_required = required - set(properties)
        if unknown_required:
            raise ValidationError(
                f"Tool {name} requires undeclared parameters",
                parameter=",".join(sorted(unknown_required)),
                code=ErrorCode.VALIDATION_INVALID_FORMAT,
            )

        params = []
        for param_name, spec in properties.items():
            items = spec.get("items")
            params.append(
                ToolParameter(
                    name=param_name,
                    type=spec.get("type", "string"),
                    description=spec.get("description", ""),
                    required=param_name in required,
                    enum=tuple(spec["enum"]) if spec.get("enum") else None,
                    items=items.get("type", "string") if isinstance(items, dict) else None,
                )
            )
        return cls(name=name, description=description, parameters=tuple(params))

    @property
    def required_params(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]

    def to_schema(self) -> Dict[str, Any]:
        """OpenAI-compatible function schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_schema() for p in self.parameters},
                    "required": self.required_params,
                },
            },
        }


@dataclass
class ToolDefinition:
    """Definition of a tool for the registry."""

    name: str
    description: str
    input_schema: Dict[str, Any]
    executor: Callable[..., Dict]
    category: ToolCategory
    plugin: str = ""  # Tool group id used by the enabled-plugins setting
    friendly_name: str = ""
    ready: Optional[Callable[[], bool]] = None  # Readiness check; None means always ready


@dataclass
class ToolResult:
    """Standardized result from tool execution. Always produced, even on failure."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def text(self) -> str:
        """What the model reads: the formatted error or the pretty-printed payload."""
        if not self.success:
            return self.error or "Error: Tool execution failed"
        return json.dumps(self.data, indent=2, ensure_ascii=False, default=str)

    def to_message_content(self) -> str:
        return json.dumps({"result": self.text})


class ToolRegistry:
    """
    Registry of tools available to the model.

    Built once at startup and shared read-only across orchestration runs.
    """

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}
        self._descriptors: Dict[str, ToolDescriptor] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def register(self, tool: ToolDefinition) -> ToolDescriptor:
        """Register a tool definition and return its descriptor."""
        if tool.name in self._tools:
            raise ValidationError(
                f"Tool already registered: {tool.name}",
                parameter="name",
                code=ErrorCode.TOOL_DUPLICATE,
            )
        descriptor = ToolDescriptor.from_input_schema(tool.name, tool.description, tool.input_schema)
        self._tools[tool.name] = tool
        self._descriptors[tool.name] = descriptor
        logger.debug(f"Registered tool: {tool.name} ({tool.plugin or 'core'})")
        return descriptor

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        """Get a tool definition by name."""
        return self._tools.get(name)

    def resolve(self, name: str) -> ToolDefinition:
        """Get a tool definition by name or raise UnknownToolError."""
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def descriptor(self, name: str) -> ToolDescriptor:
        self.resolve(name)
        return self._descriptors[name]

    def is_ready(self, name: str) -> bool:
        tool = self.resolve(name)
        if tool.ready is None:
            return True
        try:
            return bool(tool.ready())
        except Exception as e:
            logger.warning(f"Readiness check for {name} failed: {e}")
            return False

    def describe_all(self) -> List[ToolDescriptor]:
        """Descriptors of every tool that passes its readiness check."""
        return [self._descriptors[name] for name in self._tools if self.is_ready(name)]

    def get_tools_schema(self) -> List[Dict[str, Any]]:
        """Generate OpenAI-compatible tools schema for function calling."""
        return [d.to_schema() for d in self.describe_all()]

    def execute(self, name: str, args: Dict[str, Any], **context) -> ToolResult:
        """
        Execute a tool by name with given arguments.

        Faults inside the tool are converted into a failed ToolResult.

        Args:
            name: Tool name
            args: Tool arguments from the model
            context: Additional keyword arguments offered to the executor

        Raises:
            UnknownToolError: name is not registered
        """
        tool = self.resolve(name)

        try:
            # Filter kwargs to only those the executor accepts
            all_kwargs = {**args, **context}
            sig = inspect.signature(tool.executor)
            has_var_kw = any(p.kind == inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values())
            if has_var_kw:
                filtered = all_kwargs
            else:
                accepted = set(sig.parameters.keys())
                filtered = {k: v for k, v in all_kwargs.items() if k in accepted}
                dropped = set(all_kwargs) - accepted
                if dropped:
                    logger.debug(f"Tool {name}: ignoring unexpected arguments {sorted(dropped)}")
            result = tool.executor(**filtered)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return ToolResult(success=False, error=format_error_for_llm(e))

        if not isinstance(result, dict):
            result = {"value": result}
        if result.get("success") is False:
            return ToolResult(success=False, data=result, error=format_error_for_llm(result))
        return ToolResult(success=True, data=result)

    def get_all_tools(self) -> Dict[str, ToolDefinition]:
        """Get all registered tools."""
        return self._tools.copy()

    def get_tools_by_category(self, category: ToolCategory) -> List[ToolDefinition]:
        """Get all tools in a category."""
        return [t for t in self._tools.values() if t.category == category]

    def clear(self) -> None:
        self._tools.clear()
        self._descriptors.clear()
