"""
Provider capability

The pipeline talks to every translation service through TranslationProvider.
An adapter receives unique source strings for one target language and returns
a mapping keyed by those same strings. A key that is missing from the mapping,
or mapped to None or an empty string, counts as a failed key; the controller
then falls back to the source text for it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class ContentMode(str, Enum):
    """How inline markup in the strings should be treated by the provider."""
    PLAIN = "plain"
    HTML = "html"
    JSON = "json"


@dataclass(frozen=True)
class TranslateOptions:
    """Per-call options handed to a provider."""
    content_mode: ContentMode = ContentMode.PLAIN
    formality: Optional[str] = None         # "more" | "less" | None
    instructions: str = ""                  # free-form style guidance
    use_translation_memory: bool = False    # controller consults memory before dispatch


class TranslationProvider(ABC):
    """Capability every translation adapter implements."""

    name: str = "provider"

    @abstractmethod
    def translate(
        self,
        unique_strings: List[str],
        source_lang: str,
        target_lang: str,
        options: TranslateOptions,
    ) -> Dict[str, Optional[str]]:
        """
        Translate a batch of unique strings.

        Args:
            unique_strings: Distinct source strings, in dispatch order
            source_lang: Source locale code
            target_lang: Target locale code
            options: Content mode, formality and style instructions

        Returns:
            Mapping of each source string to its translation (None marks a failed key)

        Raises:
            ProviderAuthError: Credentials rejected
            ProviderTransientError: Rate limit, quota, timeout or server failure
        """
