"""
Template slots

A template string is the original text with every translatable run replaced by
a {Tn} slot. Literal braces are doubled ({{ / }}), the same convention as
str.format, so a source text that itself contains "{T1}" can never be mistaken
for a slot.

build_text_template() is shared by every document kind: it splits HTML into
markup and text nodes, carves do-not-translate terms out of the text, and keeps
leading/trailing whitespace outside the slot so rendering the template with the
source texts reproduces the input exactly.
"""

import re
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from batchlingo.documents.models import Segment
from batchlingo.protection.terms import split_protected

HTML_PATTERN = re.compile(r"</?[a-z][\s\S]*>", re.IGNORECASE)

# Comments, script/style bodies and tags are markup; everything between them is text
_MARKUP_TOKEN = re.compile(
    r"<!--[\s\S]*?-->|<(script|style)\b[\s\S]*?</\1\s*>|<[^>]*>",
    re.IGNORECASE,
)

_SLOT_TOKEN = re.compile(r"\{\{|\}\}|\{(T\d+)\}")


def placeholder(segment_id: str) -> str:
    return "{" + segment_id + "}"


def escape_literal(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


def unescape_literal(text: str) -> str:
    return text.replace("{{", "{").replace("}}", "}")


def placeholder_ids(template: str) -> List[str]:
    """Slot ids in order of appearance."""
    return [m.group(1) for m in _SLOT_TOKEN.finditer(template) if m.group(1)]


def render(template: str, values: Mapping[str, str]) -> str:
    """
    Substitute every slot in a single pass.

    Substituted text is never rescanned, so translations containing braces
    are inserted verbatim.

    Raises:
        KeyError: A slot id has no value
    """
    def _replace(match):
        token = match.group(0)
        if token == "{{":
            return "{"
        if token == "}}":
            return "}"
        return values[match.group(1)]

    return _SLOT_TOKEN.sub(_replace, template)


def looks_like_html(text: str) -> bool:
    return bool(text) and bool(HTML_PATTERN.search(text))


def tokenize_html(text: str) -> List[Tuple[str, bool]]:
    """
    Split HTML into (chunk, is_markup) pieces whose concatenation equals text.

    Example:
        >>> tokenize_html('<p class="x">Hi</p>')
        [('<p class="x">', True), ('Hi', False), ('</p>', True)]
    """
    pieces: List[Tuple[str, bool]] = []
    position = 0
    for match in _MARKUP_TOKEN.finditer(text):
        if match.start() > position:
            pieces.append((text[position:match.start()], False))
        pieces.append((match.group(0), True))
        position = match.end()
    if position < len(text):
        pieces.append((text[position:], False))
    return pieces


class SegmentAllocator:
    """Hands out T1, T2, ... for one document."""

    def __init__(self):
        self.segments: List[Segment] = []

    def new(self, source_text: str, path: Optional[str] = None) -> Segment:
        segment = Segment(id=f"T{len(self.segments) + 1}", source_text=source_text, path=path)
        self.segments.append(segment)
        return segment


def build_text_template(
    text: str,
    protected_terms: List[str],
    new_segment: Callable[[str, Optional[str]], Segment],
    path: Optional[str] = None,
) -> str:
    """
    Turn one string into a template, allocating a segment per translatable run.

    Args:
        text: Source string (plain or HTML)
        protected_terms: Terms that stay verbatim in the template
        new_segment: Allocator callback (source_text, path) -> Segment
        path: Optional location recorded on every segment created

    Returns:
        Template string with {Tn} slots
    """
    chunks = tokenize_html(text) if looks_like_html(text) else [(text, False)]
    parts: List[str] = []

    for chunk, is_markup in chunks:
        if is_markup:
            parts.append(escape_literal(chunk))
            continue
        for run, protected in split_protected(chunk, protected_terms):
            core = run.strip()
            if protected or not core:
                parts.append(escape_literal(run))
                continue
            lead = run[:len(run) - len(run.lstrip())]
            trail = run[len(run.rstrip()):]
            segment = new_segment(core, path)
            parts.append(escape_literal(lead) + placeholder(segment.id) + escape_literal(trail))

    return "".join(parts)


def resolve_values(
    template: str,
    translations: Mapping[str, str],
    sources: Mapping[str, str],
) -> Dict[str, str]:
    """Value for every slot: the translation when there is one, else the source text."""
    values: Dict[str, str] = {}
    for segment_id in placeholder_ids(template):
        translated = translations.get(segment_id)
        values[segment_id] = translated if translated else sources.get(segment_id, "")
    return values
