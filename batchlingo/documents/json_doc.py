"""
JSON documents

A JsonSchema lists translatable leaf paths such as "$.episodes[*].name", where
[*] stands for any array index. Only string leaves on a listed path become
segments; every other value is carried over untouched.
"""

import copy
import re
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from batchlingo import language_codes as lc
from batchlingo.documents.base import DocumentHandler, TranslationResult, translations_for
from batchlingo.documents.models import (
    DocumentKind,
    Extraction,
    JsonDocument,
    JsonSchema,
    JsonTemplate,
    MalformedDocument,
    Segment,
)
from batchlingo.documents.placeholders import SegmentAllocator, build_text_template, placeholder_ids, render, resolve_values
from batchlingo.logger import get_logger
from batchlingo.protection.terms import collect_protected_terms

logger = get_logger(__name__)

META_SKILLS_SCHEMA = JsonSchema(
    name="Meta-Skills Avatar AI",
    translatable_paths=(
        "$.name",
        "$.description",
        "$.episodes[*].name",
        "$.episodes[*].description",
        "$.episodes[*].objective",
        "$.episodes[*].instructions",
        "$.episodes[*].dialogues[*].text",
        "$.episodes[*].dialogues[*].options[*].text",
        "$.episodes[*].dialogues[*].options[*].feedback",
        "$.episodes[*].feedback[*].text",
    ),
    required_keys=("name", "episodes"),
    locale_field="locale",
)

BUILTIN_SCHEMAS = (META_SKILLS_SCHEMA,)


def _path_regex(pattern: str) -> "re.Pattern":
    return re.compile(re.escape(pattern).replace(r"\[\*\]", r"\[\d+\]") + r"\Z")


def path_matches(path: str, pattern: str) -> bool:
    """
    Example:
        >>> path_matches("$.episodes[2].name", "$.episodes[*].name")
        True
    """
    return bool(_path_regex(pattern).match(path))


def iter_leaves(node: Any, path: str = "$") -> Iterator[Tuple[str, Any]]:
    """Yield (path, value) for every leaf, in document order."""
    if isinstance(node, dict):
        for key, value in node.items():
            yield from iter_leaves(value, f"{path}.{key}")
    elif isinstance(node, list):
        for index, value in enumerate(node):
            yield from iter_leaves(value, f"{path}[{index}]")
    else:
        yield path, node


def _map_leaves(node: Any, path: str, replace) -> Any:
    if isinstance(node, dict):
        return {key: _map_leaves(value, f"{path}.{key}", replace) for key, value in node.items()}
    if isinstance(node, list):
        return [_map_leaves(value, f"{path}[{index}]", replace) for index, value in enumerate(node)]
    return replace(path, node)


def schema_matches(data: Any, schema: JsonSchema) -> bool:
    if schema.required_keys:
        return isinstance(data, dict) and all(key in data for key in schema.required_keys)
    return isinstance(data, (dict, list))


def detect_schema(data: Any, schemas=BUILTIN_SCHEMAS) -> Optional[JsonSchema]:
    """First schema whose required keys are all present."""
    for schema in schemas:
        if schema_matches(data, schema):
            return schema
    return None


class JsonHandler(DocumentHandler):
    kind = DocumentKind.JSON

    def _check(self, document: JsonDocument) -> None:
        if not isinstance(document, JsonDocument):
            raise MalformedDocument("json", f"expected JsonDocument, got {type(document).__name__}")
        if not isinstance(document.data, (dict, list)):
            raise MalformedDocument("json", "root must be an object or an array")
        if not schema_matches(document.data, document.schema):
            missing = [k for k in document.schema.required_keys
                       if not isinstance(document.data, dict) or k not in document.data]
            raise MalformedDocument(
                "json",
                f"payload does not match schema '{document.schema.name}' (missing {', '.join(missing)})",
            )

    def extract(self, document: JsonDocument, do_not_translate: List[str], **options) -> Extraction:
        self._check(document)

        patterns = [_path_regex(p) for p in document.schema.translatable_paths]
        allocator = SegmentAllocator()
        slot_paths: List[str] = []

        def _replace(path: str, value: Any) -> Any:
            if not isinstance(value, str) or not value.strip():
                return value
            if not any(p.match(path) for p in patterns):
                return value
            slot = build_text_template(value, collect_protected_terms(value, do_not_translate), allocator.new, path)
            if not placeholder_ids(slot):
                return value
            slot_paths.append(path)
            return slot

        tree = _map_leaves(document.data, "$", _replace)
        logger.debug(f"Extracted {len(allocator.segments)} segments from {len(slot_paths)} JSON leaves "
                     f"(schema '{document.schema.name}')")
        return Extraction(
            segments=allocator.segments,
            template=JsonTemplate(tree=tree, schema=document.schema, slot_paths=slot_paths),
        )

    def rebuild(
        self,
        template: JsonTemplate,
        segments: List[Segment],
        translation_result: TranslationResult,
        target_language: str,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
    ) -> JsonDocument:
        translations = translations_for(translation_result, target_language)
        sources = {segment.id: segment.source_text for segment in segments}
        slots = set(template.slot_paths)

        def _replace(path: str, value: Any) -> Any:
            if path not in slots:
                return copy.deepcopy(value)
            return render(value, resolve_values(value, translations, sources))

        tree = _map_leaves(template.tree, "$", _replace)
        locale_field = template.schema.locale_field
        if locale_field and isinstance(tree, dict) and locale_field in tree:
            tree[locale_field] = lc.normalize_locale(target_language)

        return JsonDocument(data=tree, schema=template.schema)
