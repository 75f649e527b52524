"""
Correction Import

Re-applies edited review tables to a stored artifact. Per segment the value is
correction, else the table's translation, else what the first rebuild wrote.
Every language present in the tables is rebuilt with overwrite-all, so a
correction always replaces whatever is in the target slot.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from batchlingo.documents import get_handler
from batchlingo.documents.models import DocumentKind, OverwriteMode, TabularDocument
from batchlingo.logger import get_logger
from batchlingo.review.artifact import ReviewArtifact, StaleReviewMapping
from batchlingo.review.table import ReviewTable
from batchlingo.translation.memory import TranslationMemory

logger = get_logger(__name__)


@dataclass
class CorrectionResult:
    artifact: ReviewArtifact                                    # updated with the applied values
    outputs: Dict[str, Any] = field(default_factory=dict)       # lang -> document (non-tabular)
    combined: Optional[TabularDocument] = None                  # tabular: every language on one matrix
    applied: Dict[str, int] = field(default_factory=dict)       # lang -> corrections applied
    stale: List[StaleReviewMapping] = field(default_factory=list)

    @property
    def languages(self) -> List[str]:
        return list(self.applied)


def corrections_to_translations(
    artifact: ReviewArtifact,
    tables: Sequence[ReviewTable],
) -> Tuple[Dict[str, Dict[str, str]], Dict[str, int], List[StaleReviewMapping]]:
    """
    Merge edited tables over the artifact's written values.

    Returns:
        Tuple of (lang -> segment id -> text, lang -> corrections applied, stale rows)
    """
    known = set(artifact.segment_ids())
    translations: Dict[str, Dict[str, str]] = {}
    applied: Dict[str, int] = {}
    stale: List[StaleReviewMapping] = []

    for table in tables:
        language = table.language
        baked = artifact.translations.get(language, {})
        values = translations.setdefault(language, dict(baked))
        applied.setdefault(language, 0)

        for row in table.rows:
            if row.id not in known:
                stale.append(StaleReviewMapping(language, row.id))
                continue
            if row.correction.strip():
                values[row.id] = row.correction
                applied[language] += 1
            elif row.translation.strip():
                values[row.id] = row.translation
            elif row.id in baked:
                values[row.id] = baked[row.id]

    for mapping in stale:
        logger.warning(f"{mapping}; row ignored")
    return translations, applied, stale


def apply_corrections(
    artifact: ReviewArtifact,
    tables: Sequence[ReviewTable],
    memory: Optional[TranslationMemory] = None,
) -> CorrectionResult:
    """
    Rebuild the artifact's document with reviewer corrections.

    Args:
        artifact: Stored review artifact
        tables: Edited review tables, one per language
        memory: When given, applied corrections are added to it as confirmed translations

    Returns:
        CorrectionResult with rebuilt output and the updated artifact
    """
    translations, applied, stale = corrections_to_translations(artifact, tables)
    languages = list(translations)
    modes: Dict[str, Any] = dict(artifact.existing_language_modes)
    for language in languages:
        modes[language] = OverwriteMode.OVERWRITE_ALL.value

    handler = get_handler(artifact.template)
    result = CorrectionResult(artifact=artifact, applied=applied, stale=stale)
    template = artifact.template

    if artifact.kind == DocumentKind.TABULAR:
        # Rows the first pass did not write keep their current content
        result.combined = handler.rebuild_all(
            template, artifact.segments, translations, languages, modes, only_translated=True)
        template = template.rebased(result.combined.rows)
    else:
        for language in languages:
            result.outputs[language] = handler.rebuild(
                template, artifact.segments, translations, language, modes)

    merged = dict(artifact.translations)
    merged.update(translations)
    result.artifact = replace(artifact, template=template, translations=merged)

    if memory is not None and artifact.source_language:
        sources = {segment.id: segment.source_text for segment in artifact.segments}
        for table in tables:
            for row in table.rows:
                if row.id in sources and row.correction.strip():
                    memory.add(sources[row.id], row.correction, artifact.source_language, table.language)

    logger.info(
        f"Applied corrections to '{artifact.name}': "
        + ", ".join(f"{lang} {count}" for lang, count in applied.items())
        + (f" ({len(stale)} stale rows ignored)" if stale else "")
    )
    return result
