"""In-memory job registry.

All reads and writes go through one lock, and callers only ever receive
copies of job records, so concurrent workers and status lookups never see a
half-applied update.
"""

import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from framecast.exceptions import InvalidJobTransitionError, JobNotFoundError
from framecast.schemas.job import JobStatusResponse


class JobStatus(Enum):
    """Job lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.CANCELLED},
    JobStatus.PROCESSING: {
        JobStatus.PROCESSING,
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
    },
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
}

STATUS_MESSAGES: dict[JobStatus, str] = {
    JobStatus.PENDING: "Video generation is queued",
    JobStatus.PROCESSING: "Video is being generated",
    JobStatus.COMPLETED: "Video generation completed successfully",
    JobStatus.CANCELLED: "Job cancelled by user",
}


@dataclass
class Job:
    """Render job record."""

    id: str
    title: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    message: Optional[str] = None
    output_path: Optional[str] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def status_message(self) -> str:
        if self.status is JobStatus.FAILED:
            return self.error or "Video generation failed"
        if self.status is JobStatus.CANCELLED:
            return self.message or STATUS_MESSAGES[JobStatus.CANCELLED]
        return STATUS_MESSAGES[self.status]

    def to_status(self) -> JobStatusResponse:
        output_url = None
        if self.status is JobStatus.COMPLETED and self.output_path:
            output_url = f"/videos/{Path(self.output_path).name}"
        return JobStatusResponse(
            id=self.id,
            status=self.status.value,
            progress=self.progress,
            message=self.status_message,
            output_url=output_url,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "output_path": self.output_path,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class JobStore:
    """Thread-safe in-memory job registry. Jobs are kept until process exit."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, title: str) -> Job:
        job = Job(
            id=str(uuid.uuid4()),
            title=title,
            message=STATUS_MESSAGES[JobStatus.PENDING],
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._jobs[job.id] = job
            return replace(job)

    def get(self, job_id: str) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job not found: {job_id}")
            return replace(job)

    def list_jobs(self) -> list[Job]:
        """All jobs, newest first."""
        with self._lock:
            jobs = [replace(job) for job in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    def update_state(
        self,
        job_id: str,
        *,
        status: JobStatus | None = None,
        progress: int | None = None,
        message: str | None = None,
        error: str | None = None,
        output_path: str | None = None,
    ) -> Job:
        """Atomically apply an update.

        Raises:
            JobNotFoundError: unknown job id
            InvalidJobTransitionError: the job is terminal or the status change is not allowed
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job not found: {job_id}")
            if job.status.is_terminal:
                raise InvalidJobTransitionError(
                    f"Job {job_id} is already {job.status.value}",
                    details={"job_id": job_id, "status": job.status.value},
                )

            new_status = status or job.status
            if new_status not in ALLOWED_TRANSITIONS[job.status]:
                raise InvalidJobTransitionError(
                    f"Job {job_id} cannot go from {job.status.value} to {new_status.value}",
                    details={"job_id": job_id, "status": job.status.value},
                )

            now = datetime.now(timezone.utc)
            if new_status is JobStatus.PROCESSING and job.started_at is None:
                job.started_at = now
            if new_status.is_terminal:
                job.completed_at = now

            job.status = new_status
            if progress is not None:
                job.progress = max(0, min(100, progress))
            if message is not None:
                job.message = message
            if error is not None:
                job.error = error
            if output_path is not None:
                job.output_path = output_path
            return replace(job)

    def cancel(self, job_id: str, message: str = STATUS_MESSAGES[JobStatus.CANCELLED]) -> bool:
        """Mark a live job cancelled. Returns False if it had already finished."""
        try:
            self.update_state(job_id, status=JobStatus.CANCELLED, message=message)
        except InvalidJobTransitionError:
            return False
        return True
