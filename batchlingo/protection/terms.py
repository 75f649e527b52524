"""
Do-Not-Translate and Glossary Terms

This module handles text that must not reach a provider as-is:
- do-not-translate terms (brand names, curly-brace variables) are split out of
  a string so they stay verbatim in the template
- glossary entries either resolve a whole string up front or, inside longer
  strings, are swapped for __GLOSS_n__ placeholders around the provider call
"""

import re
from typing import Dict, List, Mapping, Optional, Tuple

from batchlingo import language_codes as lc

CURLY_PLACEHOLDER = re.compile(r"\{[^}]+\}")
GLOSSARY_PLACEHOLDER = "__GLOSS_{}__"

Glossary = Mapping[str, Mapping[str, str]]


def _term_pattern(term: str) -> str:
    """Regex for a term; word-like edges only match on word boundaries."""
    pattern = re.escape(term)
    if term[:1].isalnum() or term[:1] == '_':
        pattern = r'(?<!\w)' + pattern
    if term[-1:].isalnum() or term[-1:] == '_':
        pattern = pattern + r'(?!\w)'
    return pattern


def collect_protected_terms(text: str, do_not_translate: List[str]) -> List[str]:
    """
    Combine the do-not-translate list with curly-brace variables found in text.

    Terms are deduplicated case-insensitively, first spelling wins.

    Example:
        >>> collect_protected_terms("Hi {name}, welcome to Blendedx", ["Blendedx"])
        ['Blendedx', '{name}']
    """
    terms: List[str] = []
    seen = set()
    for term in list(do_not_translate) + CURLY_PLACEHOLDER.findall(text or ""):
        if not term or not term.strip():
            continue
        folded = term.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        terms.append(term)
    return terms


def split_protected(text: str, terms: List[str]) -> List[Tuple[str, bool]]:
    """
    Split text into runs, flagging the ones that are protected terms.

    Matching is case-insensitive and longest-term-first, so overlapping
    terms resolve to the longer one.

    Returns:
        List of (run, is_protected) tuples whose concatenation equals text

    Example:
        >>> split_protected("Welcome to Blendedx platform", ["Blendedx"])
        [('Welcome to ', False), ('Blendedx', True), (' platform', False)]
    """
    if not text:
        return []
    usable = sorted({t for t in terms if t}, key=len, reverse=True)
    if not usable:
        return [(text, False)]

    pattern = re.compile("|".join(_term_pattern(t) for t in usable), re.IGNORECASE)
    runs: List[Tuple[str, bool]] = []
    position = 0
    for match in pattern.finditer(text):
        if match.start() == match.end():
            continue
        if match.start() > position:
            runs.append((text[position:match.start()], False))
        runs.append((match.group(0), True))
        position = match.end()
    if position < len(text):
        runs.append((text[position:], False))
    return runs


def _lookup_language(translations: Mapping[str, str], target_lang: str) -> Optional[str]:
    """Exact locale first, then any entry with the same base language."""
    target = lc.normalize_locale(target_lang)
    for code, value in translations.items():
        if lc.normalize_locale(code) == target and value:
            return value
    for code, value in translations.items():
        if lc.languages_match(code, target) and value:
            return value
    return None


def find_glossary_translation(text: str, glossary: Glossary, target_lang: str) -> Optional[str]:
    """
    Resolve a whole string from the glossary.

    Exact match on the trimmed text is tried before a case-insensitive one.

    Returns:
        The predefined translation, or None
    """
    if not glossary or not text:
        return None
    key = text.strip()
    entry = glossary.get(key)
    if entry is None:
        folded = key.casefold()
        entry = next((v for k, v in glossary.items() if k.strip().casefold() == folded), None)
    if not entry:
        return None
    return _lookup_language(entry, target_lang)


def apply_glossary_terms(text: str, glossary: Glossary, target_lang: str) -> Tuple[str, Dict[str, str]]:
    """
    Replace glossary phrases inside a longer string with placeholders.

    Longest phrases are replaced first; single words only match whole words.

    Returns:
        Tuple of (text_with_placeholders, placeholder_to_translation)

    Example:
        >>> apply_glossary_terms("Open the Dashboard now", {"Dashboard": {"fr-FR": "Tableau de bord"}}, "fr-FR")
        ('Open the __GLOSS_0__ now', {'__GLOSS_0__': 'Tableau de bord'})
    """
    if not glossary or not text:
        return text, {}

    mapping: Dict[str, str] = {}
    result = text
    for source in sorted(glossary, key=len, reverse=True):
        term = source.strip()
        if not term:
            continue
        translation = _lookup_language(glossary[source], target_lang)
        if not translation:
            continue
        pattern = re.compile(_term_pattern(term), re.IGNORECASE)
        if not pattern.search(result):
            continue
        placeholder = GLOSSARY_PLACEHOLDER.format(len(mapping))
        mapping[placeholder] = translation
        result = pattern.sub(lambda _m: placeholder, result)
    return result, mapping


def restore_placeholders(text: str, mapping: Mapping[str, str]) -> str:
    """Put glossary translations back in place of their placeholders."""
    if not text or not mapping:
        return text
    for placeholder, value in mapping.items():
        text = text.replace(placeholder, value)
    return text
