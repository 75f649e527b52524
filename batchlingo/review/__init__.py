"""
Review module - Review artifacts, review tables and correction import

This module provides:
- artifact: the stored (template, segments, schema-or-sheet-name) triple
- table: per-language CSV export and import
- corrections: rebuild from edited tables
"""

from batchlingo.review.artifact import (
    ReviewArtifact,
    StaleReviewMapping,
    build_artifact,
)
from batchlingo.review.table import (
    ReviewRow,
    ReviewTable,
    ReviewTableError,
    build_review_rows,
    read_review_csv,
    review_filename,
    write_review_csv,
)
from batchlingo.review.corrections import (
    CorrectionResult,
    apply_corrections,
    corrections_to_translations,
)
