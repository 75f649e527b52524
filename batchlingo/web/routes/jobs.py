"""Translation job API routes."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, Response, current_app, jsonify, request

from batchlingo.config import PipelineSettings, load_config
from batchlingo.documents.models import MalformedDocument, OverwriteMode, TabularDocument
from batchlingo.loaders import load_document, render_document
from batchlingo.logger import get_logger
from batchlingo.review.artifact import ReviewArtifact
from batchlingo.review.corrections import apply_corrections
from batchlingo.review.table import (
    ReviewTableError,
    build_review_rows,
    read_review_csv,
    review_filename,
    write_review_csv,
)
from batchlingo.translation.manager import SourceFile, TranslationManager
from batchlingo.translation.memory import TranslationMemory
from batchlingo.web.tasks import (
    artifact_key,
    cancel_job,
    create_translation_job,
    get_job,
    pause_job,
    resume_job,
    serialize_job,
)
import batchlingo.language_codes as lc

jobs_bp = Blueprint("jobs", __name__)
logger = get_logger(__name__)


def _bad_request(message: str, code: str = "invalid_request"):
    return jsonify({"error": message, "code": code}), 400


def _source_file(item: Dict[str, Any]) -> SourceFile:
    """Build a SourceFile from one entry of the request's documents list."""
    name = item.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MalformedDocument("request", "every document needs a name")

    if "rows" in item:
        rows = item["rows"]
        if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
            raise MalformedDocument("tabular", f"'{name}' rows must be a list of lists")
        document = TabularDocument(
            rows=rows,
            sheet_name=item.get("sheet_name", "Sheet1"),
            source_column=int(item.get("source_column", 3)),
            field_type_column=int(item.get("field_type_column", 2)),
        )
    else:
        content = item.get("content")
        if not isinstance(content, str):
            raise MalformedDocument("request", f"'{name}' has no content")
        document = load_document(name, content)

    return SourceFile(name=name, document=document, source_language=item.get("source_language"))


@jobs_bp.post("")
def start_job():
    """Extract the documents synchronously, then translate in the background."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}

    documents = data.get("documents")
    if not isinstance(documents, list) or not documents:
        return _bad_request("'documents' must be a non-empty list")

    languages = data.get("target_languages")
    if not isinstance(languages, list) or not languages or not all(
        isinstance(code, str) and code.strip() for code in languages
    ):
        return _bad_request("'target_languages' must be a non-empty list of language codes")

    modes = data.get("existing_language_modes") or {}
    if not isinstance(modes, dict):
        return _bad_request("'existing_language_modes' must be an object")
    try:
        modes = {lc.normalize_locale(code): OverwriteMode.parse(mode).value for code, mode in modes.items()}
    except ValueError as e:
        return _bad_request(f"Invalid overwrite mode: {e}")

    config = load_config()
    settings = PipelineSettings.from_config(config)
    provider = current_app.config["PROVIDER_FACTORY"](config, data.get("provider") or None)

    files = [_source_file(item if isinstance(item, dict) else {}) for item in documents]
    memory = TranslationMemory.load() if settings.use_translation_memory else None
    manager = TranslationManager(provider, settings, memory=memory)
    prepared = manager.prepare(files, languages, data.get("source_language"), modes)

    job = create_translation_job(manager, prepared)
    return jsonify(serialize_job(job)), 202


@jobs_bp.get("/<job_id>")
def job_status(job_id: str):
    job = get_job(job_id)
    if not job:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(serialize_job(job))


@jobs_bp.post("/<job_id>/pause")
def pause(job_id: str):
    if not get_job(job_id):
        return jsonify({"error": "Job not found"}), 404
    if not pause_job(job_id):
        return jsonify({"error": "Job cannot be paused"}), 409
    return jsonify({"job_id": job_id, "paused": True})


@jobs_bp.post("/<job_id>/resume")
def resume(job_id: str):
    if not get_job(job_id):
        return jsonify({"error": "Job not found"}), 404
    if not resume_job(job_id):
        return jsonify({"error": "Job is not paused"}), 409
    return jsonify({"job_id": job_id, "paused": False})


@jobs_bp.post("/<job_id>/cancel")
def cancel(job_id: str):
    if not get_job(job_id):
        return jsonify({"error": "Job not found"}), 404
    if not cancel_job(job_id):
        return jsonify({"error": "Job already finished"}), 409
    return jsonify({"job_id": job_id, "cancelled": True})


@jobs_bp.get("/<job_id>/output/<document>/<language>")
def job_output(job_id: str, document: str, language: str):
    """Rebuilt document for one language."""
    job = get_job(job_id)
    if not job:
        return jsonify({"error": "Job not found"}), 404
    if job.report is None:
        return jsonify({"error": "Job has not finished"}), 409
    output = job.report.document(document)
    code = lc.normalize_locale(language)
    if output is None or code not in output.outputs:
        return jsonify({"error": f"No output for '{document}' in {code}"}), 404
    return jsonify({"document": document, "language": code, "content": render_document(output.outputs[code])})


@jobs_bp.get("/<job_id>/review/<document>/<language>")
def review_table(job_id: str, document: str, language: str):
    """Per-language review table as CSV."""
    artifact = ReviewArtifact.load(artifact_key(job_id, document))
    code = lc.normalize_locale(language)
    if artifact is None or code not in artifact.translations:
        return jsonify({"error": f"No review data for '{document}' in {code}"}), 404

    content = write_review_csv(build_review_rows(artifact, code), code)
    filename = review_filename(code, document)
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@jobs_bp.post("/<job_id>/corrections")
def import_corrections(job_id: str):
    """
    Re-apply edited review tables to a job document.

    Body: {"document": name, "tables": [{"filename": ..., "content": ...}, ...]}
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    document = data.get("document")
    tables_payload = data.get("tables")
    if not isinstance(document, str) or not isinstance(tables_payload, list) or not tables_payload:
        return _bad_request("'document' and a non-empty 'tables' list are required")

    key = artifact_key(job_id, document)
    artifact = ReviewArtifact.load(key)
    if artifact is None:
        return jsonify({"error": f"No review data for '{document}'"}), 404

    try:
        tables = [read_review_csv(item.get("content", ""), item.get("filename")) for item in tables_payload]
    except (ReviewTableError, AttributeError) as e:
        return _bad_request(f"Cannot read review table: {e}", code="invalid_review_table")

    settings = PipelineSettings.from_config()
    memory = TranslationMemory.load() if settings.use_translation_memory else None
    result = apply_corrections(artifact, tables, memory=memory)
    result.artifact.save(key)
    if memory is not None:
        memory.save()

    outputs: Dict[str, Any] = {lang: render_document(doc) for lang, doc in result.outputs.items()}
    stale: List[Dict[str, str]] = [{"language": s.language, "id": s.segment_id} for s in result.stale]
    return jsonify({
        "document": document,
        "applied": result.applied,
        "stale": stale,
        "outputs": outputs,
        "combined": render_document(result.combined) if result.combined is not None else None,
    })
