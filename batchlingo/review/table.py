"""
Review Tables

Flat per-language CSV export of a review artifact, and the parser for the
edited copy a reviewer sends back.

Layout:
    # Language: fr-FR
    ID,Path,Source,Translation,Correction,Status     (Path only when segments carry one)
    T1,$.name,Hello,Bonjour,,Pending

The language travels in the filename (fr-FR.csv, ClientReview_fr-FR_<name>.csv)
or in the "# Language:" line, never in a cell.
"""

import csv
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from batchlingo import language_codes as lc
from batchlingo.logger import get_logger
from batchlingo.review.artifact import ReviewArtifact

logger = get_logger(__name__)

LANGUAGE_PREFIX = "# Language:"
DEFAULT_STATUS = "Pending"


class ReviewTableError(ValueError):
    """An edited review table cannot be read."""


@dataclass
class ReviewRow:
    id: str
    source: str
    translation: str = ""
    correction: str = ""
    path: Optional[str] = None
    status: str = ""


@dataclass
class ReviewTable:
    language: str
    rows: List[ReviewRow] = field(default_factory=list)

    def corrections(self) -> dict:
        """id -> correction, for rows that have one."""
        return {row.id: row.correction for row in self.rows if row.correction.strip()}


def build_review_rows(artifact: ReviewArtifact, language: str) -> List[ReviewRow]:
    """Rows for one language, in segment order, for segments the rebuild wrote."""
    code = lc.normalize_locale(language)
    written = artifact.translations.get(code, {})
    rows = []
    for segment in artifact.segments:
        if segment.id not in written:
            continue
        rows.append(ReviewRow(
            id=segment.id,
            source=segment.source_text,
            translation=written[segment.id],
            path=segment.path,
            status=DEFAULT_STATUS,
        ))
    return rows


def review_filename(language: str, name: Optional[str] = None) -> str:
    code = lc.normalize_locale(language)
    if not name:
        return f"{code}.csv"
    return f"ClientReview_{code}_{Path(name).stem}.csv"


def write_review_csv(rows: List[ReviewRow], language: str) -> str:
    """Serialize review rows; the Path column appears when any row has a path."""
    with_path = any(row.path for row in rows)
    buffer = io.StringIO()
    buffer.write(f"{LANGUAGE_PREFIX} {lc.normalize_locale(language)}\n")
    writer = csv.writer(buffer, lineterminator="\n")
    if with_path:
        writer.writerow(["ID", "Path", "Source", "Translation", "Correction", "Status"])
    else:
        writer.writerow(["ID", "Source", "Translation", "Correction", "Status"])
    for row in rows:
        if with_path:
            writer.writerow([row.id, row.path or "", row.source, row.translation, row.correction, row.status])
        else:
            writer.writerow([row.id, row.source, row.translation, row.correction, row.status])
    return buffer.getvalue()


def read_review_csv(content: str, filename: Optional[str] = None) -> ReviewTable:
    """
    Parse an edited review table.

    Accepts both layouts (with or without the Path column), a trailing
    Status column or none, Excel's "sep=" line and "#" comment lines.

    Args:
        content: CSV text
        filename: Original file name, used to find the language

    Returns:
        ReviewTable

    Raises:
        ReviewTableError: No language in the filename or the header line
    """
    language = lc.extract_language_from_filename(filename) if filename else None
    has_path = False
    rows: List[ReviewRow] = []

    for record in csv.reader(io.StringIO(content.lstrip("\ufeff"))):
        if not record or not any(cell.strip() for cell in record):
            continue
        first = record[0]
        if first.startswith(LANGUAGE_PREFIX):
            # Spreadsheet editors may pad the line with separators
            declared = first[len(LANGUAGE_PREFIX):].strip()
            if declared:
                language = declared
            continue
        if first.startswith("#") or first.startswith("sep="):
            continue
        if first.strip() == "ID":
            has_path = len(record) > 1 and record[1].strip() in ("Path", "Context")
            continue

        if has_path and len(record) >= 5:
            row_id, path, source, translation, correction = record[:5]
            status = record[5] if len(record) > 5 else ""
        elif len(record) >= 4:
            row_id, source, translation, correction = record[:4]
            path = None
            status = record[4] if len(record) > 4 else ""
        else:
            logger.debug(f"Skipping short review row: {record!r}")
            continue

        if not row_id.strip() or not source:
            continue
        rows.append(ReviewRow(
            id=row_id.strip(),
            source=source,
            translation=translation or "",
            correction=correction or "",
            path=path or None,
            status=status,
        ))

    if not language:
        raise ReviewTableError(f"Could not find the language of review table {filename or ''!r}".strip())

    language = lc.normalize_locale(language)
    logger.info(f"Read review table for {language}: {len(rows)} rows, "
                f"{sum(1 for row in rows if row.correction.strip())} corrections")
    return ReviewTable(language=language, rows=rows)
