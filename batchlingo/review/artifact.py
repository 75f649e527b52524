"""
Review Artifact

The durable (template, segments, schema-or-sheet-name) triple kept per
document after a first rebuild, plus the per-language values that rebuild
actually wrote. Re-importing corrections starts from this artifact, never
from the original document.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from batchlingo import language_codes as lc
from batchlingo.core import database as db
from batchlingo.documents import get_handler
from batchlingo.documents.base import normalize_modes, translations_for
from batchlingo.documents.models import (
    DocumentKind,
    Extraction,
    MalformedDocument,
    Segment,
    TabularDocument,
    template_from_dict,
)
from batchlingo.logger import get_logger

logger = get_logger(__name__)

REVIEW_NAMESPACE = "review"
ARTIFACT_VERSION = 1


class StaleReviewMapping(LookupError):
    """An edited review row names a segment id the artifact does not have.

    Never raised to callers; such rows are logged, skipped and reported.
    """

    def __init__(self, language: str, segment_id: str):
        super().__init__(f"Segment {segment_id} ({language}) is not in the review artifact")
        self.language = language
        self.segment_id = segment_id


@dataclass
class ReviewArtifact:
    name: str
    template: Any
    segments: List[Segment]
    schema_or_sheet_name: Optional[str] = None
    translations: Dict[str, Dict[str, str]] = field(default_factory=dict)   # lang -> id -> written text
    existing_language_modes: Dict[str, str] = field(default_factory=dict)
    source_language: Optional[str] = None

    @property
    def kind(self) -> DocumentKind:
        return self.template.kind

    @property
    def languages(self) -> List[str]:
        return list(self.translations)

    def segment_ids(self) -> List[str]:
        return [segment.id for segment in self.segments]

    # ============================================================
    # Serialization
    # ============================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": ARTIFACT_VERSION,
            "name": self.name,
            "template": self.template.to_dict(),
            "segments": [segment.to_dict() for segment in self.segments],
            "schemaOrSheetName": self.schema_or_sheet_name,
            "translations": self.translations,
            "existingLanguageModes": self.existing_language_modes,
            "sourceLanguage": self.source_language,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ReviewArtifact":
        if not isinstance(payload, dict) or "template" not in payload or "segments" not in payload:
            raise MalformedDocument("review artifact", "missing template or segments")
        return cls(
            name=payload.get("name", ""),
            template=template_from_dict(payload["template"]),
            segments=[Segment.from_dict(item) for item in payload["segments"]],
            schema_or_sheet_name=payload.get("schemaOrSheetName"),
            translations={lang: dict(values) for lang, values in (payload.get("translations") or {}).items()},
            existing_language_modes=dict(payload.get("existingLanguageModes") or {}),
            source_language=payload.get("sourceLanguage"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, payload: str) -> "ReviewArtifact":
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise MalformedDocument("review artifact", f"invalid JSON: {e}")
        return cls.from_dict(data)

    # ============================================================
    # Store
    # ============================================================

    def save(self, key: Optional[str] = None) -> str:
        key = key or self.name
        db.put_blob(REVIEW_NAMESPACE, key, self.to_json())
        logger.info(f"Saved review artifact '{key}' ({len(self.segments)} segments, {len(self.translations)} languages)")
        return key

    @classmethod
    def load(cls, key: str) -> Optional["ReviewArtifact"]:
        payload = db.get_blob(REVIEW_NAMESPACE, key)
        if payload is None:
            logger.warning(f"No review artifact stored under '{key}'")
            return None
        return cls.from_json(payload)


def _schema_or_sheet_name(template: Any) -> Optional[str]:
    if template.kind == DocumentKind.TABULAR:
        return template.sheet_name
    if template.kind == DocumentKind.JSON:
        return template.schema.name
    return None


def build_artifact(
    name: str,
    extraction: Extraction,
    translation_result: Mapping[str, Mapping[str, str]],
    target_languages: Sequence[str],
    existing_language_modes: Optional[Mapping[str, Any]] = None,
    combined: Optional[TabularDocument] = None,
    source_language: Optional[str] = None,
) -> ReviewArtifact:
    """
    Capture what a first rebuild wrote, per language.

    For tabular documents the artifact template is rebased onto the combined
    first-pass matrix and only segments whose rows were written are recorded,
    so re-importing an untouched table reproduces the first output exactly.

    Args:
        name: Document name (used as the default store key)
        extraction: Segments and template of the source document
        translation_result: lang -> segment id -> translated text
        target_languages: Languages that were rebuilt
        existing_language_modes: Overwrite modes used for the first rebuild
        combined: Tabular only, the matrix with every language applied
        source_language: Locale of the source text
    """
    template = extraction.template
    sources = {segment.id: segment.source_text for segment in extraction.segments}
    modes = {code: mode.value for code, mode in normalize_modes(existing_language_modes).items()}
    handler = get_handler(template)
    written: Dict[str, Dict[str, str]] = {}

    for language in target_languages:
        code = lc.normalize_locale(language)
        translations = translations_for(translation_result, code)
        if template.kind == DocumentKind.TABULAR:
            ids = handler.writable_segment_ids(template, code, modes)
            ordered = [segment_id for segment_id in sources if segment_id in ids]
        else:
            ordered = list(sources)
        written[code] = {segment_id: translations.get(segment_id) or sources[segment_id] for segment_id in ordered}

    if template.kind == DocumentKind.TABULAR and combined is not None:
        template = template.rebased(combined.rows)

    return ReviewArtifact(
        name=name,
        template=template,
        segments=list(extraction.segments),
        schema_or_sheet_name=_schema_or_sheet_name(template),
        translations=written,
        existing_language_modes=modes,
        source_language=lc.normalize_locale(source_language) if source_language else None,
    )
