"""
Text and HTML documents
"""

from typing import Any, List, Mapping, Optional

from batchlingo.documents.base import DocumentHandler, TranslationResult, translations_for
from batchlingo.documents.models import DocumentKind, Extraction, MalformedDocument, Segment, TextDocument, TextTemplate
from batchlingo.documents.placeholders import (
    SegmentAllocator,
    build_text_template,
    looks_like_html,
    render,
    resolve_values,
)
from batchlingo.protection.terms import collect_protected_terms


class TextHandler(DocumentHandler):
    kind = DocumentKind.TEXT

    def extract(self, document: TextDocument, do_not_translate: List[str], **options) -> Extraction:
        if not isinstance(document, TextDocument) or not isinstance(document.text, str):
            raise MalformedDocument("text", "expected a TextDocument holding a string")

        allocator = SegmentAllocator()
        text = document.text
        template = build_text_template(text, collect_protected_terms(text, do_not_translate), allocator.new)
        return Extraction(
            segments=allocator.segments,
            template=TextTemplate(text=template, is_html=looks_like_html(text)),
        )

    def rebuild(
        self,
        template: TextTemplate,
        segments: List[Segment],
        translation_result: TranslationResult,
        target_language: str,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
    ) -> TextDocument:
        translations = translations_for(translation_result, target_language)
        sources = {segment.id: segment.source_text for segment in segments}
        return TextDocument(text=render(template.text, resolve_values(template.text, translations, sources)))
