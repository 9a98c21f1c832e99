"""
Runtime settings for the ai-context backend.

Defaults come from the environment; the admin API can change most of them
while the process runs, and non-default values are persisted as overrides
that are re-applied on the next start.

Usage:
    from config import runtime_config
    if runtime_config.mode is McpMode.FULL:
        ...
    runtime_config.update(mcp_mode="full", max_tool_iterations=5)
"""

import json
import os
import logging
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Dict, Any, List
from threading import Lock

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent

DEFAULT_PLUGINS = "search_api_content,drupal_context"
MODEL_NAME = re.compile(r"^[a-zA-Z0-9._:/-]+$")


class McpMode(str, Enum):
    """How editor requests reach the model."""

    DIRECT = "direct"  # one search, spliced into the prompt, one chat call
    FULL = "full"  # tool-calling loop


def _first_env(*keys: str, default: str) -> str:
    """Return the first non-empty environment value from keys, else default."""
    for key in keys:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return default


def _env_bool(key: str, default: str = "false") -> bool:
    return os.environ.get(key, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RuntimeConfig:
    """Process-wide settings; one instance, ``runtime_config``."""

    # Editor integration
    mcp_mode: str = field(default_factory=lambda: os.environ.get("AI_CONTEXT_MCP_MODE", "direct").strip().lower())
    max_tool_iterations: int = field(default_factory=lambda: int(os.environ.get("AI_CONTEXT_MAX_TOOL_ITERATIONS", "3")))
    enabled_plugins: str = field(default_factory=lambda: os.environ.get("AI_CONTEXT_PLUGINS", DEFAULT_PLUGINS))
    allowed_html_tags: str = field(default_factory=lambda: os.environ.get("AI_CONTEXT_ALLOWED_HTML", ""))
    # Re-attach tool descriptors on every tagged editor request, not only the first
    resend_tool_descriptors: bool = field(default_factory=lambda: _env_bool("AI_CONTEXT_RESEND_TOOLS"))
    expose_site_mail: bool = field(default_factory=lambda: _env_bool("AI_CONTEXT_EXPOSE_SITE_MAIL"))
    context_max_age: int = field(default_factory=lambda: int(os.environ.get("AI_CONTEXT_MAX_AGE", "3600")))

    # Chat provider (any OpenAI-compatible endpoint)
    llm_base_url: str = field(
        default_factory=lambda: _first_env("LLM_BASE_URL", "OPENAI_BASE_URL", default="")
    )
    llm_api_key: str = field(
        default_factory=lambda: _first_env("LLM_API_KEY", "OPENAI_API_KEY", default="")
    )
    model_chat: str = field(
        default_factory=lambda: _first_env("LLM_CHAT_MODEL", default="gpt-4o-mini")
    )
    llm_timeout: int = field(default_factory=lambda: int(os.environ.get("LLM_TIMEOUT", "120")))
    temperature: float = field(default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.7")))

    # Site data and search
    site_data_path: str = field(
        default_factory=lambda: os.environ.get("SITE_DATA_PATH", str(BASE_DIR / "data" / "site.json"))
    )
    search_index_id: str = field(default_factory=lambda: os.environ.get("SEARCH_INDEX_ID", "content"))
    acting_user_permissions: str = field(
        default_factory=lambda: os.environ.get("AI_CONTEXT_USER_PERMISSIONS", "access content")
    )

    # Redis (context cache)
    redis_url: str = field(default_factory=lambda: os.environ.get("REDIS_URL", "redis://localhost:6379/0"))
    redis_enabled: bool = field(default_factory=lambda: _env_bool("REDIS_ENABLED", "true"))

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "max_tool_iterations": (1, 20),
        "llm_timeout": (1, 900),
        "temperature": (0.0, 2.0),
        "context_max_age": (0, 604800),
    })

    @property
    def mode(self) -> McpMode:
        """The configured routing mode; unknown values fall back to direct."""
        try:
            return McpMode(self.mcp_mode)
        except ValueError:
            logger.warning(f"Unknown mcp_mode {self.mcp_mode!r}, using direct")
            return McpMode.DIRECT

    def get_enabled_plugins(self) -> List[str]:
        """Get list of enabled tool plugin ids."""
        if not self.enabled_plugins:
            return []
        return [p.strip() for p in self.enabled_plugins.split(",") if p.strip()]

    def is_plugin_enabled(self, plugin_id: str) -> bool:
        """Check if a specific tool plugin is enabled."""
        return plugin_id in self.get_enabled_plugins()

    def _validated(self, key: str, value: Any):
        """Return (value, None) with the value normalised, or (None, reason) if rejected."""
        if key.startswith("_") or key == "mode" or not hasattr(self, key):
            return None, "unknown key"

        if key == "mcp_mode" and isinstance(value, str):
            value = value.strip().lower()
            if value not in {m.value for m in McpMode}:
                return None, "must be 'direct' or 'full'"

        if key == "llm_base_url" and isinstance(value, str) and value:
            value = value.strip()
            if not value.startswith(("http://", "https://")):
                return None, "not an http(s) URL"
            value = value.rstrip("/")

        if key.startswith("model_") and isinstance(value, str) and value:
            if len(value) > 100 or not MODEL_NAME.match(value):
                return None, "invalid model name"

        bounds = self._VALIDATION_RANGES.get(key)
        if bounds is not None:
            lo, hi = bounds
            if not isinstance(value, (int, float)) or not lo <= value <= hi:
                return None, f"must be {lo}-{hi}"

        return value, None

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Apply runtime changes, e.g. ``update(mcp_mode="full")``.

        Returns 'updated' (applied keys), 'ignored' (unknown or rejected keys)
        and the running 'update_count'.
        """
        updated: List[str] = []
        ignored: List[str] = []

        with self._lock:
            for key, raw in kwargs.items():
                value, reason = self._validated(key, raw)
                if reason:
                    ignored.append(key)
                    logger.warning(f"Config rejected {key}={raw!r}: {reason}")
                    continue
                previous = getattr(self, key)
                setattr(self, key, value)
                updated.append(key)
                logger.info(f"Config updated: {key} = {value} (was {previous})")
            self._update_count += 1

        return {"updated": updated, "ignored": ignored, "update_count": self._update_count}

    def to_dict(self) -> Dict[str, Any]:
        """Public fields only."""
        return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}

    # Config persistence
    _overrides_path: Path = field(
        default_factory=lambda: Path(os.environ.get(
            "CONFIG_OVERRIDES_PATH", str(BASE_DIR / "data" / "config" / "config_overrides.json")
        )),
        repr=False, compare=False,
    )

    # Credential/connection fields stay env-only
    _SKIP_PERSIST = frozenset({"llm_api_key", "redis_url", "site_data_path"})

    def save_overrides(self) -> None:
        """Save non-default values to persistent storage."""
        defaults = RuntimeConfig()
        overrides = {}

        current = self.to_dict()
        default_dict = defaults.to_dict()

        for key, value in current.items():
            if key in self._SKIP_PERSIST:
                continue
            if value != default_dict.get(key):
                overrides[key] = value

        try:
            self._overrides_path.parent.mkdir(parents=True, exist_ok=True)
            self._overrides_path.write_text(
                json.dumps(overrides, indent=2, default=str),
                encoding="utf-8",
            )
            logger.info(f"Config overrides saved: {len(overrides)} values to {self._overrides_path}")
        except OSError as e:
            logger.error(f"Failed to save config overrides: {e}")

    def load_overrides(self) -> Dict[str, Any]:
        """Load overrides from persistent storage. Env vars take precedence."""
        if not self._overrides_path.exists():
            return {}

        try:
            overrides = json.loads(self._overrides_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load config overrides: {e}")
            return {}
        if not isinstance(overrides, dict):
            return {}

        # Only apply overrides for fields that still have their default value
        # (env vars would have already changed them from default)
        defaults = RuntimeConfig()
        applied = []

        with self._lock:
            for key, value in overrides.items():
                if key.startswith("_") or key in self._SKIP_PERSIST or not hasattr(self, key):
                    continue
                current = getattr(self, key)
                default = getattr(defaults, key)
                if current == default and value != default:
                    field_type = type(default)
                    try:
                        setattr(self, key, field_type(value))
                        applied.append(key)
                    except (ValueError, TypeError):
                        logger.warning(f"Config override type mismatch: {key}={value}")

        if applied:
            logger.info(f"Config overrides loaded: {', '.join(applied)}")
        return {"applied": applied, "total": len(overrides)}

    def reset_to_defaults(self) -> Dict[str, Any]:
        """Reset all values to environment defaults and clear overrides."""
        defaults = RuntimeConfig()
        changes = {}

        with self._lock:
            for key in self.to_dict().keys():
                old_value = getattr(self, key)
                new_value = getattr(defaults, key)
                if old_value != new_value:
                    setattr(self, key, new_value)
                    changes[key] = {"old": old_value, "new": new_value}
                    logger.info(f"Config reset: {key} = {new_value}")

            self._update_count += 1

        try:
            if self._overrides_path.exists():
                self._overrides_path.write_text("{}", encoding="utf-8")
                logger.info("Config overrides file cleared")
        except OSError as e:
            logger.error(f"Failed to clear overrides file: {e}")

        return {"reset": True, "changes": changes, "update_count": self._update_count}


# Singleton instance
runtime_config = RuntimeConfig()

# Load persisted overrides on startup
runtime_config.load_overrides()


def get_config() -> RuntimeConfig:
    """Get the singleton config instance."""
    return runtime_config
