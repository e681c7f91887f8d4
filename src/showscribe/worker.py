"""Worker callback for jobs delivered by the async dispatcher.

The dispatcher delivers at least once, so the same job may arrive twice. A job
that already reached a terminal state is acknowledged without running the
provider calls again; every other delivery ends with exactly one terminal
status update.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .exceptions import InvalidInputError, ShowScribeError
from .intake import IntakeResult, MediaIntakePipeline, MediaUpload
from .jobs import JobQueue, JobStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerAck:
    """Acknowledgement returned to the dispatcher.

    ``success`` is False only when the job ended in ``failed``; the delivery
    itself is always acknowledged so the dispatcher does not redeliver.
    """

    success: bool
    status: str

    def to_response(self) -> dict:
        return {"success": self.success, "status": self.status}


def upload_from_payload(payload: Mapping[str, Any]) -> MediaUpload:
    """Build the MediaUpload described by a worker payload.

    Raises:
        InvalidInputError: If the payload carries neither file data nor a reference,
            or the file data is not valid base64
    """
    filename = payload.get("filename") or "upload"
    content_type = payload.get("contentType")
    file_data: Optional[str] = payload.get("fileData")
    blob_url: Optional[str] = payload.get("blobUrl")

    if file_data:
        try:
            data = base64.b64decode(file_data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInputError("fileData is not valid base64") from exc
        return MediaUpload(filename=filename, content_type=content_type, data=data)
    if blob_url:
        return MediaUpload(filename=filename, content_type=content_type, blob_url=blob_url)
    raise InvalidInputError("Payload carries neither fileData nor blobUrl")


def process_queued_job(
    queue: JobQueue,
    pipeline: MediaIntakePipeline,
    queue_id: str,
    payload: Mapping[str, Any],
) -> WorkerAck:
    """Run the intake pipeline for a deferred job and record its outcome.

    Args:
        queue: Job registry holding ``queue_id``
        pipeline: Intake pipeline, run synchronously
        queue_id: Id of the job created at intake
        payload: Worker payload (``filename``, ``contentType``, ``fileData`` or ``blobUrl``)

    Returns:
        WorkerAck for the dispatcher
    """
    job = queue.get_job(queue_id)
    if job is None:
        logger.warning("Worker received unknown job %s; acknowledging without processing", queue_id)
        return WorkerAck(success=False, status="ignored")
    if job.status.is_terminal:
        logger.info("Job %s already %s; skipping redelivery", queue_id, job.status.value)
        return WorkerAck(success=job.status == JobStatus.COMPLETED, status=job.status.value)

    queue.update_status(queue_id, JobStatus.PROCESSING)
    try:
        upload = upload_from_payload(payload)
        outcome = pipeline.process(upload, force_sync=True)
        if not isinstance(outcome, IntakeResult):
            raise RuntimeError(f"Pipeline deferred job {queue_id} despite force_sync")
    except ShowScribeError as exc:
        logger.error("Job %s failed: %s", queue_id, exc, exc_info=True)
        queue.update_status(queue_id, JobStatus.FAILED, error=exc.public_message)
        return WorkerAck(success=False, status=JobStatus.FAILED.value)
    except Exception as exc:
        logger.error("Job %s failed: %s", queue_id, exc, exc_info=True)
        queue.update_status(queue_id, JobStatus.FAILED, error="Internal server error")
        return WorkerAck(success=False, status=JobStatus.FAILED.value)

    queue.update_status(queue_id, JobStatus.COMPLETED, result=outcome.to_response())
    return WorkerAck(success=True, status=JobStatus.COMPLETED.value)
