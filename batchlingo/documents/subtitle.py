"""
Subtitle documents (SRT / VTT cue lists)

Each cue's text becomes the cue template; timestamps, cue identifiers,
settings and speaker tags never pass through translation.
"""

import re
from dataclasses import replace
from typing import Any, List, Mapping, Optional

from batchlingo.documents.base import DocumentHandler, TranslationResult, translations_for
from batchlingo.documents.models import (
    DocumentKind,
    Extraction,
    MalformedDocument,
    Segment,
    SubtitleDocument,
    SubtitleTemplate,
)
from batchlingo.documents.placeholders import SegmentAllocator, build_text_template, render, resolve_values
from batchlingo.protection.terms import collect_protected_terms

# hh:mm:ss,mmm (SRT) or [hh:]mm:ss.mmm (VTT)
TIMESTAMP_PATTERN = re.compile(r"^(?:\d{2,}:)?\d{2}:\d{2}[,.]\d{3}$")


class SubtitleHandler(DocumentHandler):
    kind = DocumentKind.SUBTITLE

    def _check(self, document: SubtitleDocument) -> None:
        if not isinstance(document, SubtitleDocument):
            raise MalformedDocument("subtitle", f"expected SubtitleDocument, got {type(document).__name__}")
        if document.format not in ("srt", "vtt"):
            raise MalformedDocument("subtitle", f"unknown subtitle format '{document.format}'")
        for position, cue in enumerate(document.cues, start=1):
            if not TIMESTAMP_PATTERN.match(cue.start or "") or not TIMESTAMP_PATTERN.match(cue.end or ""):
                raise MalformedDocument("subtitle", f"cue {position} has an invalid timestamp")

    def extract(self, document: SubtitleDocument, do_not_translate: List[str], **options) -> Extraction:
        self._check(document)

        allocator = SegmentAllocator()
        cues = []
        for cue in document.cues:
            text = cue.text or ""
            slot = build_text_template(
                text,
                collect_protected_terms(text, do_not_translate),
                allocator.new,
                path=f"{cue.start} --> {cue.end}",
            )
            cues.append(replace(cue, text=slot))

        return Extraction(
            segments=allocator.segments,
            template=SubtitleTemplate(
                cues=tuple(cues),
                format=document.format,
                header=document.header,
                blocks=document.blocks,
            ),
        )

    def rebuild(
        self,
        template: SubtitleTemplate,
        segments: List[Segment],
        translation_result: TranslationResult,
        target_language: str,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
    ) -> SubtitleDocument:
        translations = translations_for(translation_result, target_language)
        sources = {segment.id: segment.source_text for segment in segments}
        cues = [
            replace(cue, text=render(cue.text, resolve_values(cue.text, translations, sources)))
            for cue in template.cues
        ]
        return SubtitleDocument(
            cues=tuple(cues),
            format=template.format,
            header=template.header,
            blocks=template.blocks,
        )
