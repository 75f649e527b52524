"""
Tabular documents (spreadsheet-backed exports)

Layout conventions:
- row 0 is the header
- the source text sits in one fixed column (index 3 by default)
- the field-type column (index 2) marks rows such as URLs that are copied, never translated
- columns after the source whose header carries an xx-XX code are existing languages

A rebuilt document gains one column per new language, appended on the right.
"""

from typing import Any, Dict, List, Mapping, Optional, Set

from batchlingo import language_codes as lc
from batchlingo.documents.base import DocumentHandler, TranslationResult, normalize_modes, translations_for
from batchlingo.documents.models import (
    DocumentKind,
    Extraction,
    MalformedDocument,
    OverwriteMode,
    Segment,
    TabularDocument,
    TabularTemplate,
)
from batchlingo.documents.placeholders import (
    SegmentAllocator,
    build_text_template,
    placeholder_ids,
    render,
    resolve_values,
)
from batchlingo.logger import get_logger
from batchlingo.protection.terms import collect_protected_terms

logger = get_logger(__name__)

# Cells holding spreadsheet translation formulas count as empty
FORMULA_PREFIXES = ("=TRANSLATE(", "=COPILOT(", "TRANSLATE(", "COPILOT(")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_formula_cell(value: Any) -> bool:
    return isinstance(value, str) and value.strip().upper().startswith(FORMULA_PREFIXES)


def is_url_field(row, field_type_column: int) -> bool:
    if field_type_column >= len(row):
        return False
    field_type = row[field_type_column]
    return isinstance(field_type, str) and "url" in field_type.lower()


def detect_language_columns(header, source_column: int) -> Dict[str, int]:
    """Map each locale code named in the header (right of the source column) to its column."""
    columns: Dict[str, int] = {}
    for index, cell in enumerate(header):
        if index <= source_column:
            continue
        for code in lc.header_locale_codes(cell):
            columns.setdefault(code, index)
    return columns


def _needs_write(existing: Any, mode: OverwriteMode) -> bool:
    if mode == OverwriteMode.OVERWRITE_ALL:
        return True
    if mode == OverwriteMode.FILL_EMPTY:
        return is_blank(existing) or is_formula_cell(existing)
    return False


def filter_rows_for_modes(
    document: TabularDocument,
    target_languages: List[str],
    existing_language_modes: Optional[Mapping[str, Any]] = None,
) -> Set[int]:
    """
    Rows that no requested language would write, so they need no translation.

    A row is skipped only when every target language already has a column
    whose mode leaves this row's cell alone.
    """
    if not target_languages:
        return set()

    columns = detect_language_columns(document.header, document.source_column)
    modes = normalize_modes(existing_language_modes)
    skipped: Set[int] = set()

    for r in range(1, len(document.rows)):
        needed = False
        for language in target_languages:
            code = lc.normalize_locale(language)
            column = columns.get(code)
            if column is None:
                needed = True
                break
            mode = modes.get(code, OverwriteMode.FILL_EMPTY)
            if _needs_write(document.cell(r, column), mode):
                needed = True
                break
        if not needed:
            skipped.add(r)

    if skipped:
        logger.info(f"Skipping {len(skipped)} rows already filled for {target_languages}")
    return skipped


class TabularHandler(DocumentHandler):
    kind = DocumentKind.TABULAR

    def _check(self, document: TabularDocument) -> None:
        if not isinstance(document, TabularDocument):
            raise MalformedDocument("tabular", f"expected TabularDocument, got {type(document).__name__}")
        if not document.rows:
            raise MalformedDocument("tabular", f"sheet '{document.sheet_name}' has no header row")
        header = document.header
        if document.source_column >= len(header) or is_blank(header[document.source_column]):
            raise MalformedDocument(
                "tabular",
                f"sheet '{document.sheet_name}' has no source column header at index {document.source_column}",
            )

    def extract(
        self,
        document: TabularDocument,
        do_not_translate: List[str],
        target_languages: Optional[List[str]] = None,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
        **options,
    ) -> Extraction:
        self._check(document)

        skipped = filter_rows_for_modes(document, target_languages or [], existing_language_modes)
        allocator = SegmentAllocator()
        row_slots: Dict[int, str] = {}

        for r in range(1, len(document.rows)):
            row = document.rows[r]
            source = document.cell(r, document.source_column)
            if not isinstance(source, str) or not source.strip():
                continue
            if r in skipped or is_url_field(row, document.field_type_column):
                continue
            terms = collect_protected_terms(source, do_not_translate)
            slot = build_text_template(source, terms, allocator.new)
            if placeholder_ids(slot):
                row_slots[r] = slot

        template = TabularTemplate(
            rows=document.rows,
            sheet_name=document.sheet_name,
            source_column=document.source_column,
            field_type_column=document.field_type_column,
            language_columns=detect_language_columns(document.header, document.source_column),
            row_slots=row_slots,
            skipped_rows=tuple(sorted(skipped)),
        )
        logger.debug(
            f"Extracted {len(allocator.segments)} segments from {len(row_slots)} rows "
            f"of sheet '{document.sheet_name}'"
        )
        return Extraction(segments=allocator.segments, template=template)

    def rebuild(
        self,
        template: TabularTemplate,
        segments: List[Segment],
        translation_result: TranslationResult,
        target_language: str,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
        only_translated: bool = False,
    ) -> TabularDocument:
        """
        Write one language column.

        With only_translated=True, rows none of whose slots have a translation
        keep their current cell.
        """
        code = lc.normalize_locale(target_language)
        translations = translations_for(translation_result, code)
        sources = {segment.id: segment.source_text for segment in segments}
        modes = normalize_modes(existing_language_modes)

        rows: List[List[Any]] = [list(row) for row in template.rows]
        column = template.language_columns.get(code)
        is_new = column is None
        if is_new:
            column = max(len(row) for row in rows)
            mode = OverwriteMode.OVERWRITE_ALL
        else:
            mode = modes.get(code, OverwriteMode.FILL_EMPTY)

        for row in rows:
            if len(row) <= column:
                row.extend([""] * (column + 1 - len(row)))
        if is_new:
            rows[0][column] = code

        skipped = set(template.skipped_rows)
        for r in range(1, len(rows)):
            if r in skipped:
                continue
            row = rows[r]
            existing = row[column]
            slot = template.row_slots.get(r)

            if slot is not None:
                if not _needs_write(existing, mode):
                    continue
                if only_translated and not any(i in translations for i in placeholder_ids(slot)):
                    continue
                row[column] = render(slot, resolve_values(slot, translations, sources))
                continue

            if only_translated:
                continue
            source = row[template.source_column] if template.source_column < len(row) else None
            if is_blank(source):
                continue
            # Rows without translatable text carry the source over
            url_row = is_url_field(row, template.field_type_column) and mode != OverwriteMode.KEEP
            if url_row or _needs_write(existing, mode):
                row[column] = source

        return TabularDocument(
            rows=rows,
            sheet_name=template.sheet_name,
            source_column=template.source_column,
            field_type_column=template.field_type_column,
        )

    def writable_segment_ids(
        self,
        template: TabularTemplate,
        target_language: str,
        existing_language_modes: Optional[Mapping[str, Any]] = None,
    ) -> Set[str]:
        """Ids whose rows a rebuild for this language would actually overwrite."""
        code = lc.normalize_locale(target_language)
        column = template.language_columns.get(code)
        if column is None:
            return {i for slot in template.row_slots.values() for i in placeholder_ids(slot)}

        mode = normalize_modes(existing_language_modes).get(code, OverwriteMode.FILL_EMPTY)
        ids: Set[str] = set()
        for r, slot in template.row_slots.items():
            row = template.rows[r]
            existing = row[column] if column < len(row) else None
            if _needs_write(existing, mode):
                ids.update(placeholder_ids(slot))
        return ids

    def rebuild_all(
        self,
        template: TabularTemplate,
        segments: List[Segment],
        translation_result: TranslationResult,
        target_languages: List[str],
        existing_language_modes: Optional[Mapping[str, Any]] = None,
        only_translated: bool = False,
    ) -> TabularDocument:
        """Apply several languages one after another onto one matrix."""
        current = template
        document = None
        for language in target_languages:
            document = self.rebuild(
                current, segments, translation_result, language,
                existing_language_modes, only_translated=only_translated,
            )
            current = current.rebased(document.rows)
        if document is None:
            return TabularDocument(
                rows=template.rows,
                sheet_name=template.sheet_name,
                source_column=template.source_column,
                field_type_column=template.field_type_column,
            )
        return document
