"""
Documents module - Document model and per-kind extract/rebuild pairs

This module provides:
- models: document, segment and template types
- get_handler: the DocumentHandler for a document or template
- extract / rebuild: kind-agnostic entry points
"""

from typing import Any, List, Mapping, Optional

from batchlingo.documents.models import (
    DocumentKind,
    Extraction,
    JsonDocument,
    JsonSchema,
    MalformedDocument,
    MissingTranslation,
    OverwriteMode,
    Segment,
    SubtitleCue,
    SubtitleDocument,
    TabularDocument,
    TextDocument,
    template_from_dict,
)
from batchlingo.documents.base import DocumentHandler, TranslationResult
from batchlingo.documents.json_doc import JsonHandler, META_SKILLS_SCHEMA, detect_schema
from batchlingo.documents.subtitle import SubtitleHandler
from batchlingo.documents.tabular import TabularHandler
from batchlingo.documents.text import TextHandler

_HANDLERS = {
    DocumentKind.TABULAR: TabularHandler(),
    DocumentKind.JSON: JsonHandler(),
    DocumentKind.TEXT: TextHandler(),
    DocumentKind.SUBTITLE: SubtitleHandler(),
}


def get_handler(document_or_template: Any) -> DocumentHandler:
    """Handler for a document, a template, or a DocumentKind."""
    kind = document_or_template if isinstance(document_or_template, DocumentKind) \
        else getattr(document_or_template, "kind", None)
    if kind not in _HANDLERS:
        raise MalformedDocument("unknown", f"unsupported document type {type(document_or_template).__name__}")
    return _HANDLERS[kind]


def extract(document: Any, do_not_translate: List[str], **options) -> Extraction:
    """Extract segments and template from any supported document."""
    return get_handler(document).extract(document, list(do_not_translate or []), **options)


def rebuild(
    template: Any,
    segments: List[Segment],
    translation_result: TranslationResult,
    target_language: str,
    existing_language_modes: Optional[Mapping[str, Any]] = None,
    **options,
) -> Any:
    """Rebuild any supported document for one target language; tabular accepts only_translated."""
    return get_handler(template).rebuild(
        template, segments, translation_result, target_language,
        existing_language_modes, **options,
    )


__all__ = [
    "DocumentKind",
    "DocumentHandler",
    "Extraction",
    "JsonDocument",
    "JsonSchema",
    "MalformedDocument",
    "MissingTranslation",
    "OverwriteMode",
    "Segment",
    "SubtitleCue",
    "SubtitleDocument",
    "TabularDocument",
    "TextDocument",
    "TranslationResult",
    "META_SKILLS_SCHEMA",
    "detect_schema",
    "extract",
    "get_handler",
    "rebuild",
    "template_from_dict",
]
