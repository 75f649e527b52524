"""
Deduplication

Collapses the segments of one or more documents into canonical strings so
each distinct source text is translated once per language. The result is a
pure function of its inputs: same segments, same exclusions, same ids (C1, C2,
... in first-occurrence order).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from batchlingo import language_codes as lc
from batchlingo.documents.models import Segment
from batchlingo.protection.terms import Glossary, find_glossary_translation


@dataclass(frozen=True)
class Occurrence:
    document: int
    segment_id: str


@dataclass
class CanonicalString:
    id: str
    key: str
    occurrences: List[Occurrence] = field(default_factory=list)
    excluded: bool = False                              # do-not-translate, copied verbatim
    predefined: Dict[str, str] = field(default_factory=dict)   # glossary, per language

    def predefined_for(self, language: str) -> Optional[str]:
        if not self.predefined:
            return None
        wanted = lc.normalize_locale(language)
        for code, value in self.predefined.items():
            if lc.normalize_locale(code) == wanted:
                return value
        return None


@dataclass
class DeduplicationStats:
    total_files: int = 0
    total_strings: int = 0
    unique_strings: int = 0
    duplicate_strings: int = 0
    deduplication_percentage: float = 0.0
    saved_api_calls: int = 0
    character_savings: int = 0
    glossary_matches: int = 0
    excluded_strings: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class DeduplicationResult:
    canonical_strings: List[CanonicalString]
    total_count: int
    unique_count: int
    saved_count: int
    stats: DeduplicationStats
    index: Dict[Tuple[int, str], str] = field(default_factory=dict)   # (document, segment id) -> key

    @property
    def duplicate_count(self) -> int:
        return self.total_count - self.unique_count

    def translatable(self) -> List[CanonicalString]:
        """Canonical strings that may be dispatched, in first-occurrence order."""
        return [c for c in self.canonical_strings if not c.excluded]

    def expand(self, canonical_translations: Mapping[str, Mapping[str, str]],
               document_index: int = 0) -> Dict[str, Dict[str, str]]:
        """
        Fan canonical-level translations out to one document's segment ids.

        Args:
            canonical_translations: lang -> canonical key -> text
            document_index: Position of the document in the deduplicated batch

        Returns:
            TranslationResult for that document: lang -> segment id -> text
        """
        result: Dict[str, Dict[str, str]] = {}
        for language, by_key in canonical_translations.items():
            per_segment: Dict[str, str] = {}
            for (doc, segment_id), key in self.index.items():
                if doc == document_index and key in by_key:
                    per_segment[segment_id] = by_key[key]
            result[language] = per_segment
        return result


def deduplicate(
    segments_by_document: Sequence[Sequence[Segment]],
    do_not_translate: Sequence[str] = (),
    predefined_translations: Optional[Glossary] = None,
    target_languages: Optional[Sequence[str]] = None,
) -> DeduplicationResult:
    """
    Collapse segments into canonical strings.

    Args:
        segments_by_document: Segment lists, one per document
        do_not_translate: Strings that are never sent to a provider (exact match after trimming)
        predefined_translations: Glossary, source string -> language -> text
        target_languages: Languages of the run; used for glossary pre-fill and savings

    Returns:
        DeduplicationResult with canonical strings in first-occurrence order
    """
    excluded_keys = {term.strip() for term in do_not_translate if term and term.strip()}
    glossary = predefined_translations or {}
    languages = list(target_languages or [])

    by_key: Dict[str, CanonicalString] = {}
    index: Dict[Tuple[int, str], str] = {}
    total = 0

    for doc_index, segments in enumerate(segments_by_document):
        for segment in segments:
            key = segment.source_text.strip()
            if not key:
                continue
            total += 1
            canonical = by_key.get(key)
            if canonical is None:
                canonical = CanonicalString(id=f"C{len(by_key) + 1}", key=key, excluded=key in excluded_keys)
                if not canonical.excluded and glossary:
                    if languages:
                        for language in languages:
                            hit = find_glossary_translation(key, glossary, language)
                            if hit:
                                canonical.predefined[lc.normalize_locale(language)] = hit
                    elif key in glossary:
                        canonical.predefined = {lc.normalize_locale(k): v for k, v in glossary[key].items() if v}
                by_key[key] = canonical
            canonical.occurrences.append(Occurrence(doc_index, segment.id))
            index[(doc_index, segment.id)] = key

    canonical_strings = list(by_key.values())
    unique = len(canonical_strings)
    duplicates = total - unique
    language_factor = max(1, len(languages))

    stats = DeduplicationStats(
        total_files=len(segments_by_document),
        total_strings=total,
        unique_strings=unique,
        duplicate_strings=duplicates,
        deduplication_percentage=round(duplicates / total * 100, 1) if total else 0.0,
        saved_api_calls=duplicates * language_factor,
        character_savings=sum(len(c.key) * (len(c.occurrences) - 1) for c in canonical_strings) * language_factor,
        glossary_matches=sum(1 for c in canonical_strings if c.predefined),
        excluded_strings=sum(1 for c in canonical_strings if c.excluded),
    )

    return DeduplicationResult(
        canonical_strings=canonical_strings,
        total_count=total,
        unique_count=unique,
        saved_count=stats.saved_api_calls,
        stats=stats,
        index=index,
    )
