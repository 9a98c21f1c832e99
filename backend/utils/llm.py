"""Chat provider factory."""

import logging
from typing import Dict, Tuple

from config import RuntimeConfig
from errors import ProviderConfigurationError
from errors.codes import ErrorCode
from services.chat_provider import ChatProvider
from services.llm_client import OpenAIChatProvider

logger = logging.getLogger(__name__)

# Singleton providers per connection settings
_providers: Dict[Tuple[str, str, int, float], ChatProvider] = {}


def get_chat_provider(config: RuntimeConfig) -> ChatProvider:
    """Get the chat provider for the current settings.

    Raises:
        ProviderConfigurationError: No endpoint/key or no model configured.
    """
    if not config.llm_base_url and not config.llm_api_key:
        raise ProviderConfigurationError(
            "No AI provider configured for chat.",
            details="Set LLM_BASE_URL or LLM_API_KEY",
        )
    if not config.model_chat:
        raise ProviderConfigurationError(
            "No chat model configured.",
            details="Set LLM_CHAT_MODEL",
            code=ErrorCode.PROVIDER_MODEL_MISSING,
        )

    key = (config.llm_base_url, config.llm_api_key, config.llm_timeout, config.temperature)
    if key not in _providers:
        logger.info(f"Creating chat provider for {config.llm_base_url or 'api.openai.com'}")
        _providers[key] = OpenAIChatProvider(
            base_url=config.llm_base_url,
            api_key=config.llm_api_key,
            timeout=config.llm_timeout,
            temperature=config.temperature,
        )
    return _providers[key]


def clear_providers() -> None:
    """Drop cached providers (after config changes)."""
    _providers.clear()
