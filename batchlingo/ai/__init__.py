"""
AI Module

Provider capability, HTTP adapters and the provider error taxonomy.
"""

from batchlingo.ai.base import ContentMode, TranslateOptions, TranslationProvider
from batchlingo.ai.exceptions import TranslationError, ProviderAuthError, ProviderTransientError
from batchlingo.ai.service import create_provider, validate_provider_config

__all__ = [
    'ContentMode',
    'TranslateOptions',
    'TranslationProvider',
    'TranslationError',
    'ProviderAuthError',
    'ProviderTransientError',
    'create_provider',
    'validate_provider_config',
]
