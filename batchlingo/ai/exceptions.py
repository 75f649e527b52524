"""
Provider exception types

ProviderAuthError ends a whole translation run; ProviderTransientError only
ends the current language.
"""

from typing import Optional


class TranslationError(Exception):
    """Custom exception for translation errors with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ProviderAuthError(TranslationError):
    """The provider rejected the credentials. Retrying will not help."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, code="provider_auth", details=details)


class ProviderTransientError(TranslationError):
    """Rate limit, quota, timeout, server error or unreadable response."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retry_after: Optional[float] = None, details: dict = None):
        super().__init__(message, code="provider_transient", details=details)
        self.status_code = status_code
        self.retry_after = retry_after
