"""In-memory registry of asynchronous long-running jobs.

The registry is process-local: jobs are never deleted and disappear on restart,
and in a multi-instance deployment each instance only knows the jobs it created
or processed. A status poll routed to another instance answers "not found".
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class Job:
    """Snapshot of an async job.

    Attributes:
        id: Opaque unique job id
        status: Current lifecycle state
        result: Payload of a completed job (``{"transcript", "metadata"}``)
        error: Error message of a failed job
        created_at: Creation time (epoch milliseconds)
    """

    id: str
    status: JobStatus = JobStatus.PENDING
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "createdAt": self.created_at,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


def new_job_id() -> str:
    return uuid.uuid4().hex


class JobQueue:
    """Thread-safe mapping of job id to job state.

    Jobs are stored as immutable snapshots, so a reader never observes a
    half-applied update.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create_job(self, job_id: str) -> Job:
        job = Job(id=job_id)
        with self._lock:
            self._jobs[job_id] = job
        logger.debug("Created job %s", job_id)
        return job

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        """Replace the status, result and error of a job.

        Unknown ids are ignored. Applying the same update twice leaves the job
        exactly as applying it once.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.debug("Ignoring status update for unknown job %s", job_id)
                return
            self._jobs[job_id] = replace(job, status=JobStatus(status), result=result, error=error)
        logger.info("Job %s -> %s", job_id, JobStatus(status).value)

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
