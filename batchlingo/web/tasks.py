"""
Asynchronous task helpers for long-running background jobs (translation runs).
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from batchlingo.logger import get_logger
from batchlingo.translation.manager import PreparedRun, RunReport, TranslationManager
from batchlingo.translation.progress import ProgressState

logger = get_logger(__name__)

_FINISHED_STATES = ("completed", "failed", "cancelled")


@dataclass
class JobState:
    """In-memory representation of an asynchronous job."""

    job_id: str
    manager: TranslationManager
    prepared: PreparedRun
    state: str = "pending"  # pending|running|paused|completed|failed|cancelled
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    progress: Dict[str, Any] = field(default_factory=dict)
    progress_history: List[Dict[str, Any]] = field(default_factory=list)  # Every snapshot, in order
    report: Optional[RunReport] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    last_update: float = field(default_factory=time.time)

    @property
    def token(self):
        return self.manager.token

    @property
    def document_names(self) -> List[str]:
        return [f.name for f in self.prepared.files]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "state": self.state,
            "documents": self.document_names,
            "source_language": self.prepared.source_language,
            "target_languages": list(self.prepared.target_languages),
            "deduplication": self.prepared.dedup.stats.to_dict(),
            "created_at": float(self.created_at),
            "started_at": float(self.started_at) if self.started_at is not None else None,
            "finished_at": float(self.finished_at) if self.finished_at is not None else None,
            "last_update": float(self.last_update),
            "progress": self.progress,
            "result": self.report.to_dict() if self.report else None,
            "error": self.error,
            "error_code": self.error_code,
        }


_jobs: Dict[str, JobState] = {}
_jobs_lock = threading.Lock()
_JOB_RETENTION_SECONDS = 600  # Retain job info for 10 minutes after completion


def artifact_key(job_id: str, document_name: str) -> str:
    """Store key of a job document's review artifact."""
    return f"{job_id}/{document_name}"


def create_translation_job(manager: TranslationManager, prepared: PreparedRun) -> JobState:
    """
    Register and launch a background translation job.

    Args:
        manager: Manager holding the provider, settings and control token
        prepared: Output of manager.prepare(); extraction already succeeded

    Returns:
        JobState for the new job (already registered and running in background).
    """
    job_id = uuid.uuid4().hex
    job = JobState(job_id=job_id, manager=manager, prepared=prepared)

    def on_progress(progress: ProgressState):
        snapshot = progress.to_dict()
        with _jobs_lock:
            job.progress = snapshot
            job.progress_history.append(snapshot)
            job.last_update = time.time()
            if job.state in ("running", "paused"):
                job.state = "paused" if job.token.paused else "running"

    manager.progress_callback = on_progress

    with _jobs_lock:
        _cleanup_jobs_locked()
        _jobs[job_id] = job

    thread = threading.Thread(
        target=_run_translation_job,
        args=(job,),
        name=f"translation-job-{job_id}",
        daemon=True,
    )
    thread.start()
    logger.info(
        "Translation job %s started (%s documents, languages=%s)",
        job_id,
        len(prepared.files),
        prepared.target_languages,
    )
    return job


def get_job(job_id: str) -> Optional[JobState]:
    """Fetch a job by ID (if still retained)."""
    with _jobs_lock:
        job = _jobs.get(job_id)
        if job and job.finished_at and (time.time() - job.finished_at) > _JOB_RETENTION_SECONDS:
            # Expired; remove
            _jobs.pop(job_id, None)
            return None
        return job


def pause_job(job_id: str) -> bool:
    """Withhold new dispatches for a running job. False if unknown or finished."""
    job = get_job(job_id)
    if not job or job.state in _FINISHED_STATES:
        return False
    if not job.token.pause():
        return False
    with _jobs_lock:
        if job.state not in _FINISHED_STATES:
            job.state = "paused"
    logger.info("Pause requested for job %s", job_id)
    return True


def resume_job(job_id: str) -> bool:
    job = get_job(job_id)
    if not job or job.state in _FINISHED_STATES:
        return False
    if not job.token.resume():
        return False
    with _jobs_lock:
        if job.state not in _FINISHED_STATES:
            job.state = "running"
    logger.info("Resume requested for job %s", job_id)
    return True


def cancel_job(job_id: str) -> bool:
    """
    Request cancellation of a running job.

    Args:
        job_id: The job ID to cancel.

    Returns:
        True if job was found and cancellation requested, False otherwise.
    """
    job = get_job(job_id)
    if not job or job.state in _FINISHED_STATES:
        return False
    job.token.cancel()
    logger.info("Cancellation requested for job %s", job_id)
    return True


def serialize_job(job: JobState) -> Dict[str, Any]:
    """Convert JobState into JSON-safe dict."""
    with _jobs_lock:
        return job.to_dict()


def _run_translation_job(job: JobState):
    """Worker function executed in a background thread."""
    with _jobs_lock:
        job.state = "paused" if job.token.paused else "running"
        job.started_at = time.time()
        job.last_update = job.started_at
    try:
        report = job.manager.translate(job.prepared)
        for document in report.documents:
            if document.artifact is not None:
                document.artifact.save(artifact_key(job.job_id, document.name))
        with _jobs_lock:
            job.report = report
            job.state = report.result.state.value
            job.finished_at = time.time()
            job.last_update = job.finished_at
        logger.info(
            "Translation job %s finished (state=%s, %s)",
            job.job_id,
            job.state,
            report.result.summary,
        )
    except Exception as exc:
        error_type = type(exc).__name__
        with _jobs_lock:
            job.state = "failed"
            job.error = f"{error_type}: {exc}"
            job.error_code = getattr(exc, "code", None)
            job.finished_at = time.time()
            job.last_update = job.finished_at
        logger.exception(
            "Translation job %s failed: %s: %s",
            job.job_id,
            error_type,
            exc,
        )


def _cleanup_jobs_locked():
    """Remove completed jobs that exceeded retention period (call with lock held)."""
    now = time.time()
    expired = [
        job_id
        for job_id, job in _jobs.items()
        if job.finished_at and (now - job.finished_at) > _JOB_RETENTION_SECONDS
    ]
    for job_id in expired:
        _jobs.pop(job_id, None)
