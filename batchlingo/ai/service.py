"""
Provider Service Module

This module turns configuration into a ready provider adapter:
- validate_provider_config checks that the chosen provider is usable
- create_provider instantiates the matching adapter

For the HTTP plumbing shared by adapters, see ai/providers.py
"""

from typing import Any, Dict, Optional

from batchlingo.config import BUILTIN_PROVIDERS, load_config
from batchlingo.logger import get_logger
from batchlingo.ai.base import TranslationProvider
from batchlingo.ai.exceptions import TranslationError
from batchlingo.ai.providers import PLACEHOLDER_API_KEY

logger = get_logger(__name__)


def validate_provider_config(config: Optional[Dict[str, Any]] = None,
                             provider_override: Optional[str] = None) -> str:
    """
    Validate that provider configuration is properly set up.

    Args:
        config: Config dict (defaults to the stored config)
        provider_override: Optional provider to validate instead of the default

    Returns:
        The provider name that was validated

    Raises:
        TranslationError: If configuration is invalid or missing, with code and details.
    """
    if config is None:
        config = load_config()
    provider = provider_override or config.get('provider', 'deepl')

    if provider not in BUILTIN_PROVIDERS:
        raise TranslationError(
            f"Unknown translation provider '{provider}'",
            code="provider_config_missing",
            details={"provider": provider, "supported": BUILTIN_PROVIDERS},
        )

    provider_config = config.get(provider) or {}
    api_key = provider_config.get('api_key', '')
    if not api_key or api_key == PLACEHOLDER_API_KEY:
        raise TranslationError(
            f"{provider} API key not configured. Please set it in Settings.",
            code="provider_config_missing",
            details={"provider": provider, "missing_field": "api_key"},
        )

    if provider == 'llm':
        models = [m for m in provider_config.get('models', []) if m and isinstance(m, str)]
        if not models:
            raise TranslationError(
                "LLM model not configured",
                code="provider_config_missing",
                details={"provider": provider, "missing_field": "models"},
            )

    return provider


def create_provider(config: Optional[Dict[str, Any]] = None,
                    provider_override: Optional[str] = None,
                    **kwargs) -> TranslationProvider:
    """
    Build the adapter selected by configuration.

    Extra keyword arguments (client, sleep, ...) are passed to the adapter.
    """
    if config is None:
        config = load_config()
    provider = validate_provider_config(config, provider_override)

    if provider == 'deepl':
        from batchlingo.ai.deepl import DeepLProvider
        adapter = DeepLProvider.from_config(config, **kwargs)
    else:
        from batchlingo.ai.llm import LLMProvider
        adapter = LLMProvider.from_config(config, **kwargs)

    logger.info(f"Initialized translation provider: {adapter.name}")
    return adapter
