"""
Translation Memory

Previously confirmed translations, consulted before a provider call. Matching
works on normalized text (lowercase, tags stripped, whitespace collapsed).
Only hits at or above AUTO_APPLY_THRESHOLD are applied automatically; weaker
fuzzy hits are available through find_matches() for reviewers.
"""

import difflib
import json
import re
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from batchlingo import language_codes as lc
from batchlingo.core import database as db
from batchlingo.logger import get_logger

logger = get_logger(__name__)

AUTO_APPLY_THRESHOLD = 95
FUZZY_THRESHOLD = 70
MEMORY_NAMESPACE = "memory"

_TAG = re.compile(r"<[^>]+>")
_SPACES = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    text = _TAG.sub("", text or "")
    return _SPACES.sub(" ", text).strip().lower()


def similarity(a: str, b: str) -> int:
    """0-100 similarity of two normalized strings."""
    if a == b:
        return 100
    if not a or not b:
        return 0
    return int(round(difflib.SequenceMatcher(None, a, b).ratio() * 100))


@dataclass(frozen=True)
class MemoryUnit:
    source: str
    target: str
    source_lang: str
    target_lang: str


@dataclass(frozen=True)
class MemoryMatch:
    unit: MemoryUnit
    score: int

    @property
    def exact(self) -> bool:
        return self.score == 100


def _language_ok(unit_lang: str, wanted: str) -> bool:
    return lc.languages_match(unit_lang, wanted)


class TranslationMemory:

    def __init__(self, units: Optional[List[MemoryUnit]] = None):
        self._units: List[MemoryUnit] = []
        self._exact: Dict[str, List[MemoryUnit]] = {}
        for unit in units or []:
            self._index(unit)

    def __len__(self) -> int:
        return len(self._units)

    def _index(self, unit: MemoryUnit) -> None:
        self._units.append(unit)
        self._exact.setdefault(normalize_text(unit.source), []).append(unit)

    def add(self, source: str, target: str, source_lang: str, target_lang: str) -> None:
        if not source or not source.strip() or not target:
            return
        self._index(MemoryUnit(source, target, lc.normalize_locale(source_lang), lc.normalize_locale(target_lang)))

    def _candidates(self, units: List[MemoryUnit], source_lang: str, target_lang: str) -> List[MemoryUnit]:
        exact_target = [u for u in units
                        if _language_ok(u.source_lang, source_lang) and lc.languages_match(u.target_lang, target_lang, strict=True)]
        if exact_target:
            return exact_target
        return [u for u in units
                if _language_ok(u.source_lang, source_lang) and lc.languages_match(u.target_lang, target_lang)]

    def find_matches(self, text: str, source_lang: str, target_lang: str,
                     threshold: int = FUZZY_THRESHOLD, limit: int = 5) -> List[MemoryMatch]:
        """Best matches at or above threshold, best first."""
        normalized = normalize_text(text)
        if not normalized:
            return []

        exact = self._candidates(self._exact.get(normalized, []), source_lang, target_lang)
        if exact:
            return [MemoryMatch(unit, 100) for unit in exact[:limit]]

        matches = []
        for unit in self._candidates(self._units, source_lang, target_lang):
            candidate = normalize_text(unit.source)
            # Length gate: the ratio cannot reach threshold if lengths differ too much
            if min(len(candidate), len(normalized)) * 200 / (len(candidate) + len(normalized)) < threshold:
                continue
            score = similarity(normalized, candidate)
            if score >= threshold:
                matches.append(MemoryMatch(unit, score))
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:limit]

    def lookup(self, text: str, source_lang: str, target_lang: str,
               threshold: int = AUTO_APPLY_THRESHOLD) -> Optional[str]:
        """Translation to apply automatically, or None."""
        matches = self.find_matches(text, source_lang, target_lang, threshold=threshold, limit=1)
        return matches[0].unit.target if matches else None

    def to_json(self) -> str:
        return json.dumps([asdict(unit) for unit in self._units], ensure_ascii=False)

    @classmethod
    def from_json(cls, payload: str) -> "TranslationMemory":
        return cls([MemoryUnit(**item) for item in json.loads(payload)])

    def save(self, key: str = "default") -> None:
        db.put_blob(MEMORY_NAMESPACE, key, self.to_json())
        logger.info(f"Saved translation memory '{key}' ({len(self)} units)")

    @classmethod
    def load(cls, key: str = "default") -> "TranslationMemory":
        payload = db.get_blob(MEMORY_NAMESPACE, key)
        if payload is None:
            return cls()
        return cls.from_json(payload)
