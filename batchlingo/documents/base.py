"""
Document handler interface

Every document kind has one handler pairing extract() with rebuild(). The
pipeline never branches on document kind; it asks get_handler() for the pair.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from batchlingo import language_codes as lc
from batchlingo.documents.models import DocumentKind, Extraction, OverwriteMode, Segment

# lang -> segment id -> text
TranslationResult = Mapping[str, Mapping[str, str]]


def translations_for(result: TranslationResult, target_language: str) -> Mapping[str, str]:
    """Per-language map from a TranslationResult, tolerant of locale spelling."""
    if target_language in result:
        return result[target_language]
    wanted = lc.normalize_locale(target_language)
    for code, values in result.items():
        if lc.normalize_locale(code) == wanted:
            return values
    return {}


def normalize_modes(modes: Optional[Mapping[str, Any]]) -> Dict[str, OverwriteMode]:
    return {lc.normalize_locale(code): OverwriteMode.parse(mode) for code, mode in (modes or {}).items()}


class DocumentHandler(ABC):
    kind: DocumentKind

    @abstractmethod
    def extract(self, document: Any, do_not_translate: List[str], **options) -> Extraction:
        """
        Split a document into segments and a template.

        Raises:
            MalformedDocument: The document lacks the structure its kind requires
        """

    @abstractmethod
    def rebuild(
        self,
        template: Any,
        segments: List[Segment],
        translation_result: TranslationResult,
        target_language: str,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Reconstruct the document for one target language.

        Slots without a translation fall back to the segment's source text.
        """
