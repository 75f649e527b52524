"""
Document Model

Typed values for the four supported source kinds, the Segment record, and the
per-kind Template that reconstructs a document from translated segments.

Documents are immutable once loaded. Templates keep literal text in an escaped
form ({{ and }} for braces) so that the only unescaped braces are {Tn} slots;
see documents/placeholders.py.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from batchlingo import language_codes as lc


class MalformedDocument(ValueError):
    """A document does not have the structure its kind requires."""

    def __init__(self, kind: str, reason: str):
        super().__init__(f"Malformed {kind} document: {reason}")
        self.kind = kind
        self.reason = reason


class MissingTranslation(LookupError):
    """A segment had no translation for a language; the source text is used instead.

    Never raised to callers. It names the fallback in logs and reports.
    """


class DocumentKind(str, Enum):
    TABULAR = "tabular"
    JSON = "json"
    TEXT = "text"
    SUBTITLE = "subtitle"


class OverwriteMode(str, Enum):
    """What to do with a target language that already has content."""
    KEEP = "keep"
    FILL_EMPTY = "fill-empty"
    OVERWRITE_ALL = "overwrite-all"

    @classmethod
    def parse(cls, value: Any) -> "OverwriteMode":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("_", "-")
        # Older settings used "replace-empty" for fill-empty
        if normalized == "replace-empty":
            return cls.FILL_EMPTY
        return cls(normalized)


@dataclass(frozen=True)
class Segment:
    id: str
    source_text: str
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {"id": self.id, "sourceText": self.source_text}
        if self.path is not None:
            payload["path"] = self.path
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Segment":
        return cls(id=payload["id"], source_text=payload["sourceText"], path=payload.get("path"))


# ============================================================
# Documents
# ============================================================

def _freeze_rows(rows) -> Tuple[Tuple[Any, ...], ...]:
    return tuple(tuple(row) for row in rows)


@dataclass(frozen=True)
class TabularDocument:
    """Cell matrix whose row 0 is the header."""
    kind: ClassVar[DocumentKind] = DocumentKind.TABULAR

    rows: Tuple[Tuple[Any, ...], ...]
    sheet_name: str = "Sheet1"
    source_column: int = 3
    field_type_column: int = 2

    def __post_init__(self):
        object.__setattr__(self, "rows", _freeze_rows(self.rows))

    @property
    def header(self) -> Tuple[Any, ...]:
        return self.rows[0] if self.rows else ()

    def cell(self, row: int, column: int) -> Any:
        values = self.rows[row]
        return values[column] if column < len(values) else None

    def column(self, column: int) -> List[Any]:
        return [self.cell(r, column) for r in range(1, len(self.rows))]


@dataclass(frozen=True)
class JsonSchema:
    """Which leaves of a JSON payload are translatable."""
    name: str
    translatable_paths: Tuple[str, ...]
    required_keys: Tuple[str, ...] = ()
    locale_field: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "translatable_paths", tuple(self.translatable_paths))
        object.__setattr__(self, "required_keys", tuple(self.required_keys))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "translatablePaths": list(self.translatable_paths),
            "requiredKeys": list(self.required_keys),
            "localeField": self.locale_field,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "JsonSchema":
        return cls(
            name=payload["name"],
            translatable_paths=tuple(payload.get("translatablePaths", ())),
            required_keys=tuple(payload.get("requiredKeys", ())),
            locale_field=payload.get("localeField"),
        )


@dataclass(frozen=True)
class JsonDocument:
    kind: ClassVar[DocumentKind] = DocumentKind.JSON

    data: Any
    schema: JsonSchema


@dataclass(frozen=True)
class TextDocument:
    kind: ClassVar[DocumentKind] = DocumentKind.TEXT

    text: str


@dataclass(frozen=True)
class SubtitleCue:
    start: str
    end: str
    text: str
    index: Optional[int] = None         # SRT sequence number
    identifier: Optional[str] = None    # VTT cue identifier
    settings: Optional[str] = None      # VTT cue settings after the end timestamp
    voice: Optional[str] = None         # VTT <v Name> speaker

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "index": self.index,
            "identifier": self.identifier,
            "settings": self.settings,
            "voice": self.voice,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SubtitleCue":
        return cls(**{key: payload.get(key) for key in
                      ("start", "end", "text", "index", "identifier", "settings", "voice")})


@dataclass(frozen=True)
class SubtitleDocument:
    kind: ClassVar[DocumentKind] = DocumentKind.SUBTITLE

    cues: Tuple[SubtitleCue, ...]
    format: str = "srt"                 # "srt" | "vtt"
    header: str = "WEBVTT"
    blocks: Tuple[str, ...] = ()        # VTT NOTE / STYLE blocks, verbatim

    def __post_init__(self):
        object.__setattr__(self, "cues", tuple(self.cues))
        object.__setattr__(self, "blocks", tuple(self.blocks))


# ============================================================
# Templates
# ============================================================

@dataclass
class TabularTemplate:
    kind: ClassVar[DocumentKind] = DocumentKind.TABULAR

    rows: Tuple[Tuple[Any, ...], ...]
    sheet_name: str
    source_column: int
    field_type_column: int
    language_columns: Dict[str, int]
    row_slots: Dict[int, str]                   # row index -> cell template
    skipped_rows: Tuple[int, ...] = ()          # filtered out by overwrite modes

    def __post_init__(self):
        self.rows = _freeze_rows(self.rows)
        self.skipped_rows = tuple(self.skipped_rows)

    def rebased(self, rows) -> "TabularTemplate":
        """Same slots over a different base matrix (e.g. a first-pass output)."""
        header = rows[0] if rows else ()
        language_columns = dict(self.language_columns)
        for index, cell in enumerate(header):
            if index <= self.source_column:
                continue
            for code in lc.header_locale_codes(cell):
                language_columns.setdefault(code, index)
        return TabularTemplate(
            rows=rows,
            sheet_name=self.sheet_name,
            source_column=self.source_column,
            field_type_column=self.field_type_column,
            language_columns=language_columns,
            row_slots=dict(self.row_slots),
            skipped_rows=self.skipped_rows,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "rows": [list(row) for row in self.rows],
            "sheetName": self.sheet_name,
            "sourceColumn": self.source_column,
            "fieldTypeColumn": self.field_type_column,
            "languageColumns": dict(self.language_columns),
            "rowSlots": {str(row): slot for row, slot in self.row_slots.items()},
            "skippedRows": list(self.skipped_rows),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TabularTemplate":
        return cls(
            rows=payload["rows"],
            sheet_name=payload.get("sheetName", "Sheet1"),
            source_column=payload["sourceColumn"],
            field_type_column=payload["fieldTypeColumn"],
            language_columns={k: int(v) for k, v in payload.get("languageColumns", {}).items()},
            row_slots={int(row): slot for row, slot in payload.get("rowSlots", {}).items()},
            skipped_rows=tuple(payload.get("skippedRows", ())),
        )


@dataclass
class JsonTemplate:
    kind: ClassVar[DocumentKind] = DocumentKind.JSON

    tree: Any                       # original tree; slot leaves hold their template string
    schema: JsonSchema
    slot_paths: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "tree": self.tree,
            "schema": self.schema.to_dict(),
            "slotPaths": list(self.slot_paths),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "JsonTemplate":
        return cls(
            tree=payload["tree"],
            schema=JsonSchema.from_dict(payload["schema"]),
            slot_paths=list(payload.get("slotPaths", [])),
        )


@dataclass
class TextTemplate:
    kind: ClassVar[DocumentKind] = DocumentKind.TEXT

    text: str
    is_html: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "text": self.text, "isHtml": self.is_html}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TextTemplate":
        return cls(text=payload["text"], is_html=payload.get("isHtml", False))


@dataclass
class SubtitleTemplate:
    kind: ClassVar[DocumentKind] = DocumentKind.SUBTITLE

    cues: Tuple[SubtitleCue, ...]   # cue.text holds the cue template
    format: str = "srt"
    header: str = "WEBVTT"
    blocks: Tuple[str, ...] = ()

    def __post_init__(self):
        self.cues = tuple(self.cues)
        self.blocks = tuple(self.blocks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "cues": [cue.to_dict() for cue in self.cues],
            "format": self.format,
            "header": self.header,
            "blocks": list(self.blocks),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SubtitleTemplate":
        return cls(
            cues=tuple(SubtitleCue.from_dict(cue) for cue in payload["cues"]),
            format=payload.get("format", "srt"),
            header=payload.get("header", "WEBVTT"),
            blocks=tuple(payload.get("blocks", ())),
        )


_TEMPLATE_TYPES = {
    DocumentKind.TABULAR: TabularTemplate,
    DocumentKind.JSON: JsonTemplate,
    DocumentKind.TEXT: TextTemplate,
    DocumentKind.SUBTITLE: SubtitleTemplate,
}


def template_from_dict(payload: Dict[str, Any]):
    """Deserialize any template from its to_dict() form."""
    try:
        kind = DocumentKind(payload["kind"])
    except (KeyError, ValueError):
        raise MalformedDocument("template", f"unknown template kind {payload.get('kind')!r}")
    return _TEMPLATE_TYPES[kind].from_dict(payload)


@dataclass
class Extraction:
    """Result of extracting one document."""
    segments: List[Segment]
    template: Any
