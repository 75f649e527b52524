"""
Input/Output Loaders

The pipeline works on parsed documents only. This module is the thin layer
that turns file contents into documents and documents back into file contents:
- SRT and WebVTT subtitles
- JSON payloads (with schema detection)
- plain text / HTML
"""

import json
import re
from pathlib import Path
from typing import Any, List, Optional, Sequence

from batchlingo.documents.json_doc import BUILTIN_SCHEMAS, detect_schema
from batchlingo.documents.models import (
    JsonDocument,
    JsonSchema,
    MalformedDocument,
    SubtitleCue,
    SubtitleDocument,
    TabularDocument,
    TextDocument,
)
from batchlingo.logger import get_logger

logger = get_logger(__name__)

_BLOCK_SPLIT = re.compile(r"\n\s*\n")
_SRT_TIMING = re.compile(r"^(\d{2}:\d{2}:\d{2},\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2},\d{3})\s*$")
_VTT_TIMING = re.compile(r"^((?:\d{2,}:)?\d{2}:\d{2}\.\d{3})\s+-->\s+((?:\d{2,}:)?\d{2}:\d{2}\.\d{3})(?:\s+(.*))?$")
_VTT_VOICE = re.compile(r"^<v(?:\.[^\s>]*)?\s+([^>]+)>(.*?)(?:</v>)?$", re.DOTALL)


def _normalize_newlines(content: str) -> str:
    return content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


# ============================================================
# SRT
# ============================================================

def parse_srt(content: str) -> SubtitleDocument:
    """Parse SRT content. Blocks without a valid timing line are skipped."""
    cues: List[SubtitleCue] = []
    for block in _BLOCK_SPLIT.split(_normalize_newlines(content).strip()):
        lines = block.split("\n")
        if len(lines) < 3:
            if block.strip():
                logger.warning(f"Skipping incomplete SRT block: {block[:40]!r}")
            continue
        timing = _SRT_TIMING.match(lines[1].strip())
        if not timing:
            logger.warning(f"Skipping SRT block with invalid timecode: {lines[1]!r}")
            continue
        try:
            index = int(lines[0].strip())
        except ValueError:
            index = len(cues) + 1
        cues.append(SubtitleCue(start=timing.group(1), end=timing.group(2),
                                text="\n".join(lines[2:]), index=index))
    return SubtitleDocument(cues=tuple(cues), format="srt")


def render_srt(document: SubtitleDocument) -> str:
    blocks = []
    for position, cue in enumerate(document.cues, start=1):
        index = cue.index if cue.index is not None else position
        blocks.append(f"{index}\n{cue.start} --> {cue.end}\n{cue.text}\n")
    return "\n".join(blocks)


# ============================================================
# WebVTT
# ============================================================

def parse_vtt(content: str) -> SubtitleDocument:
    """
    Parse WebVTT content.

    Raises:
        MalformedDocument: The WEBVTT header is missing
    """
    blocks = _BLOCK_SPLIT.split(_normalize_newlines(content).strip())
    if not blocks or not blocks[0].startswith("WEBVTT"):
        raise MalformedDocument("subtitle", "missing WEBVTT header")

    header = blocks[0]
    extra_blocks: List[str] = []
    cues: List[SubtitleCue] = []

    for block in blocks[1:]:
        lines = block.split("\n")
        if lines[0].startswith(("NOTE", "STYLE")):
            extra_blocks.append(block)
            continue

        identifier: Optional[str] = None
        if "-->" not in lines[0]:
            identifier = lines[0].strip()
            lines = lines[1:]
        if not lines:
            continue
        timing = _VTT_TIMING.match(lines[0].strip())
        if not timing:
            logger.warning(f"Skipping VTT block with invalid timing: {lines[0]!r}")
            continue

        text = "\n".join(lines[1:])
        voice = None
        voice_match = _VTT_VOICE.match(text)
        if voice_match:
            voice = voice_match.group(1).strip()
            text = voice_match.group(2)

        cues.append(SubtitleCue(
            start=timing.group(1),
            end=timing.group(2),
            text=text,
            identifier=identifier,
            settings=timing.group(3) or None,
            voice=voice,
        ))

    return SubtitleDocument(cues=tuple(cues), format="vtt", header=header, blocks=tuple(extra_blocks))


def render_vtt(document: SubtitleDocument) -> str:
    parts = [document.header or "WEBVTT"]
    parts.extend(document.blocks)
    for cue in document.cues:
        lines = []
        if cue.identifier:
            lines.append(cue.identifier)
        timing = f"{cue.start} --> {cue.end}"
        if cue.settings:
            timing += f" {cue.settings}"
        lines.append(timing)
        lines.append(f"<v {cue.voice}>{cue.text}" if cue.voice else cue.text)
        parts.append("\n".join(lines))
    return "\n\n".join(parts) + "\n"


def load_subtitles(content: str, filename: str) -> SubtitleDocument:
    """Parse subtitles, choosing the format from the file extension."""
    suffix = Path(filename).suffix.lower()
    if suffix == ".srt":
        return parse_srt(content)
    if suffix == ".vtt":
        return parse_vtt(content)
    raise MalformedDocument("subtitle", f"unsupported subtitle file '{filename}'")


def render_subtitles(document: SubtitleDocument) -> str:
    return render_vtt(document) if document.format == "vtt" else render_srt(document)


# ============================================================
# JSON and text
# ============================================================

def load_json_document(content: str, schemas: Sequence[JsonSchema] = BUILTIN_SCHEMAS) -> JsonDocument:
    """
    Parse JSON text and attach the first matching schema.

    Raises:
        MalformedDocument: Invalid JSON, or no schema matches
    """
    try:
        data = json.loads(_normalize_newlines(content))
    except json.JSONDecodeError as e:
        raise MalformedDocument("json", f"invalid JSON: {e}")
    schema = detect_schema(data, schemas)
    if schema is None:
        raise MalformedDocument("json", "payload does not match any known schema")
    logger.debug(f"Detected JSON schema '{schema.name}'")
    return JsonDocument(data=data, schema=schema)


def dump_json_document(document: JsonDocument) -> str:
    return json.dumps(document.data, indent=2, ensure_ascii=False)


def load_text_document(content: str) -> TextDocument:
    return TextDocument(text=content)


def load_document(filename: str, content: str, schemas: Sequence[JsonSchema] = BUILTIN_SCHEMAS):
    """
    Parse file contents into a document, choosing the kind from the extension.

    .srt/.vtt are subtitles, .json is a schema-backed payload, anything else
    (.txt, .html, pasted text) is a text document.
    """
    suffix = Path(filename).suffix.lower()
    if suffix in (".srt", ".vtt"):
        return load_subtitles(content, filename)
    if suffix == ".json":
        return load_json_document(content, schemas)
    return load_text_document(content)


def render_document(document) -> Any:
    """
    Serialize a rebuilt document the way it was loaded.

    Tabular documents have no file format here; their rows are returned as lists.
    """
    if isinstance(document, SubtitleDocument):
        return render_subtitles(document)
    if isinstance(document, JsonDocument):
        return dump_json_document(document)
    if isinstance(document, TextDocument):
        return document.text
    if isinstance(document, TabularDocument):
        return [list(row) for row in document.rows]
    raise MalformedDocument("unknown", f"cannot render {type(document).__name__}")
