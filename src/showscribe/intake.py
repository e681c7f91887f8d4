"""Media intake pipeline: uploaded or referenced audio in, transcript out.

Per submission the pipeline moves through::

    received -> validated -> [fetching] -> [queued]
                          -> [compressing] -> transcribing -> done
    (failed from any state)

Media above the synchronous threshold is handed to the async dispatcher and
answered with a job id. Every temporary file a run creates (fetched body,
inline upload, compressed output) is owned by a ``TempArtifacts`` scope and is
deleted on every exit path.
"""

from __future__ import annotations

import base64
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Union

from . import config, downloader
from .dispatch import QueueDispatcher
from .exceptions import (
    CompressionError,
    CompressionUnavailableError,
    DispatchError,
    FetchFailedError,
    InvalidInputError,
    TooLargeError,
)
from .jobs import JobQueue, JobStatus, new_job_id
from .preprocessing.audio.compression import (
    AudioCompressor,
    MediaKind,
    compressed_output_path,
    media_kind_for,
    should_compress,
)
from .utils.filesystem import TempArtifacts, resolve_temp_dir, sanitize_filename
from .utils.provider_metrics import CallMetrics

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Tuple[bool, int]]


class TranscriptionProvider(Protocol):
    def transcribe(self, audio: Any, model: Optional[str] = None) -> Tuple[str, CallMetrics]: ...


class IntakeState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    FETCHING = "fetching"
    QUEUED = "queued"
    COMPRESSING = "compressing"
    TRANSCRIBING = "transcribing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MediaUpload:
    """One media submission, delivered inline (``data``) or by reference (``blob_url``).

    Attributes:
        filename: Client-supplied file name (sanitized before touching disk)
        content_type: Declared MIME type
        size: Declared size in bytes; derived from ``data`` when inline
        data: Inline file bytes
        blob_url: Remote reference to fetch the bytes from
    """

    filename: str
    content_type: Optional[str] = None
    size: Optional[int] = None
    data: Optional[bytes] = field(default=None, repr=False)
    blob_url: Optional[str] = None

    @property
    def is_reference(self) -> bool:
        return self.data is None and bool(self.blob_url)

    @property
    def declared_size(self) -> Optional[int]:
        if self.data is not None:
            return len(self.data)
        return self.size


@dataclass(frozen=True)
class IntakeResult:
    """Transcript of a synchronously processed submission."""

    transcript: str
    metadata: Dict[str, Any]

    def to_response(self) -> Dict[str, Any]:
        return {"transcript": self.transcript, "metadata": self.metadata}


@dataclass(frozen=True)
class QueuedIntake:
    """Submission deferred to the async job queue."""

    queue_id: str

    def to_response(self) -> Dict[str, Any]:
        return {"queueId": self.queue_id, "status": JobStatus.PENDING.value}


IntakeOutcome = Union[IntakeResult, QueuedIntake]


class _IntakeRun:
    """State of one pipeline run, logged at each transition."""

    def __init__(self, upload: MediaUpload) -> None:
        self.upload = upload
        self.state = IntakeState.RECEIVED
        self.start_time = time.perf_counter()
        self.kind: Optional[MediaKind] = None

    def advance(self, state: IntakeState) -> None:
        logger.debug("Intake %s: %s -> %s", self.upload.filename, self.state.value, state.value)
        self.state = state

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000


class MediaIntakePipeline:
    """Validates, optionally defers or compresses, and transcribes audio.

    Args:
        cfg: Configuration with size limits and compression thresholds
        provider: Transcription provider
        job_queue: Registry for deferred jobs (deferral disabled when None)
        dispatcher: Async dispatcher (deferral disabled when None)
        compressor: Audio compressor (compression disabled when None)
        fetcher: Download function with the signature of
            ``downloader.http_download_to_file``
    """

    def __init__(
        self,
        cfg: config.Config,
        provider: TranscriptionProvider,
        job_queue: Optional[JobQueue] = None,
        dispatcher: Optional[QueueDispatcher] = None,
        compressor: Optional[AudioCompressor] = None,
        fetcher: Fetcher = downloader.http_download_to_file,
    ) -> None:
        self.cfg = cfg
        self.provider = provider
        self.job_queue = job_queue
        self.dispatcher = dispatcher
        self.compressor = compressor
        self.fetcher = fetcher

    def process(self, upload: MediaUpload, force_sync: bool = False) -> IntakeOutcome:
        """Run the pipeline for one submission.

        Args:
            upload: The submission
            force_sync: Never defer to the job queue (used by the worker)

        Returns:
            IntakeResult, or QueuedIntake when the submission was deferred

        Raises:
            InvalidInputError: Missing data, unsupported type, or over the upload limit
            FetchFailedError: The remote reference could not be fetched
            TooLargeError: Media still exceeds the transcription limit
            CompressionError: Compression failed and the media is too large without it
        """
        run = _IntakeRun(upload)
        try:
            with TempArtifacts(resolve_temp_dir(self.cfg.temp_dir)) as artifacts:
                outcome = self._run(run, artifacts, force_sync)
        except Exception as exc:
            logger.info(
                "Intake of %s failed in state %s: %s",
                upload.filename,
                run.state.value,
                type(exc).__name__,
            )
            run.advance(IntakeState.FAILED)
            raise
        run.advance(IntakeState.DONE if isinstance(outcome, IntakeResult) else IntakeState.QUEUED)
        return outcome

    def validate(self, upload: MediaUpload) -> MediaKind:
        """Check presence, declared size and type of a submission.

        Raises:
            InvalidInputError: If the submission is unacceptable
        """
        if upload.data is None and not upload.blob_url:
            raise InvalidInputError("No file uploaded")
        size = upload.declared_size
        if size is not None:
            self.check_upload_size(size)
        kind = media_kind_for(upload.content_type, upload.filename)
        if kind is None:
            raise InvalidInputError("Invalid file type. Only MP3 and WAV files are allowed")
        return kind

    def _run(self, run: _IntakeRun, artifacts: TempArtifacts, force_sync: bool) -> IntakeOutcome:
        upload = run.upload
        run.kind = self.validate(upload)
        run.advance(IntakeState.VALIDATED)

        local_path: Optional[str] = None
        size = upload.declared_size
        if size is None:
            # Size of a reference is only known once fetched
            local_path, size = self._fetch(run, artifacts)

        if not force_sync and size > self.cfg.sync_size_threshold_bytes:
            queued = self._defer(upload, size)
            if queued is not None:
                return queued

        if local_path is None:
            if upload.is_reference:
                local_path, size = self._fetch(run, artifacts)
            else:
                local_path = self._write_inline(run, artifacts)
        return self._process_local(run, local_path, artifacts)

    def check_upload_size(self, size: int) -> None:
        """Reject a submission of ``size`` bytes above the hard upload limit.

        Raises:
            InvalidInputError: If ``size`` exceeds ``max_upload_size_mb``
        """
        if size > self.cfg.max_upload_size_bytes:
            raise InvalidInputError(
                f"File too large. Maximum size is {self.cfg.max_upload_size_mb:g}MB"
            )

    def _suffix_for(self, upload: MediaUpload, kind: Optional[MediaKind]) -> str:
        suffix = Path(sanitize_filename(upload.filename)).suffix.lower()
        if suffix:
            return suffix
        return ".wav" if kind == MediaKind.UNCOMPRESSED else ".mp3"

    def _write_inline(self, run: _IntakeRun, artifacts: TempArtifacts) -> str:
        upload = run.upload
        path = artifacts.create(suffix=self._suffix_for(upload, run.kind))
        with open(path, "wb") as f:
            f.write(upload.data or b"")
        return path

    def _fetch(self, run: _IntakeRun, artifacts: TempArtifacts) -> Tuple[str, int]:
        upload = run.upload
        run.advance(IntakeState.FETCHING)
        path = artifacts.create(suffix=self._suffix_for(upload, run.kind))
        limit = self.cfg.max_upload_size_bytes
        ok, written = self.fetcher(
            upload.blob_url,
            self.cfg.user_agent,
            self.cfg.timeout,
            path,
            max_bytes=limit,
        )
        if written > limit:
            self.check_upload_size(written)
        if not ok:
            raise FetchFailedError(f"Failed to fetch media reference for {upload.filename}")
        logger.debug("Fetched %s (%d bytes)", upload.filename, written)
        return path, written

    def _defer(self, upload: MediaUpload, size: int) -> Optional[QueuedIntake]:
        """Create a pending job and publish it; None means process inline instead.

        Jobs are otherwise updated only by the worker callback. When publishing
        fails no worker will receive the job, so it is marked ``failed`` here
        and the submission is processed in the current request.
        """
        if self.dispatcher is None or self.job_queue is None:
            logger.info(
                "%s is %.1fMB (above sync threshold) but no dispatcher is configured; "
                "processing inline",
                upload.filename,
                size / config.BYTES_PER_MB,
            )
            return None

        queue_id = new_job_id()
        self.job_queue.create_job(queue_id)
        payload: Dict[str, Any] = {
            "queueId": queue_id,
            "filename": upload.filename,
            "contentType": upload.content_type,
        }
        if upload.is_reference:
            payload["blobUrl"] = upload.blob_url
        else:
            payload["fileData"] = base64.b64encode(upload.data or b"").decode("ascii")

        try:
            self.dispatcher.publish(payload)
        except DispatchError as exc:
            logger.warning("Async dispatch unavailable (%s); processing inline", exc)
            # Only status write outside the worker; the job was never delivered
            self.job_queue.update_status(
                queue_id, JobStatus.FAILED, error="Dispatch unavailable; processed synchronously"
            )
            return None

        logger.info("Deferred %s to async job %s", upload.filename, queue_id)
        return QueuedIntake(queue_id=queue_id)

    def _process_local(
        self, run: _IntakeRun, path: str, artifacts: TempArtifacts
    ) -> IntakeResult:
        original_size = os.path.getsize(path)
        transcribe_path = path
        current_size = original_size
        compression_info: Optional[Dict[str, Any]] = None
        limit = self.cfg.transcription_size_limit_bytes

        kind = run.kind or MediaKind.COMPRESSED
        if should_compress(
            kind,
            original_size,
            self.cfg.compress_uncompressed_over_mb,
            self.cfg.compress_compressed_over_mb,
        ):
            if self.compressor is None:
                logger.warning("Compression needed for %s but unavailable", run.upload.filename)
            else:
                run.advance(IntakeState.COMPRESSING)
                # Owned before ffmpeg creates it so that it is removed on every path
                artifacts.track(compressed_output_path(path))
                try:
                    result = self.compressor.compress(path)
                except CompressionUnavailableError as exc:
                    logger.warning("Compression unavailable: %s", exc)
                except CompressionError:
                    if original_size > limit:
                        raise
                    logger.warning("Compression failed; transcribing original file")
                else:
                    transcribe_path = result.output_path
                    current_size = result.compressed_size
                    compression_info = {
                        "originalSize": result.original_size,
                        "compressedSize": result.compressed_size,
                        "compressionRatio": result.compression_ratio,
                        "bitrate": result.bitrate,
                        "sampleRate": result.sample_rate,
                    }

        if current_size > limit:
            raise TooLargeError(current_size, limit)

        run.advance(IntakeState.TRANSCRIBING)
        transcript, call = self.provider.transcribe(transcribe_path)

        metadata = {
            "fileSize": original_size,
            "compression": compression_info,
            "transcriptionLatencyMs": call.latency_ms,
            "totalLatencyMs": run.elapsed_ms,
            "transcriptionLength": len(transcript),
            "costUSD": call.cost_usd,
        }
        logger.info(
            "Transcription completed: %s (%d bytes, %d characters, %.0fms)",
            run.upload.filename,
            original_size,
            len(transcript),
            call.latency_ms,
        )
        return IntakeResult(transcript=transcript, metadata=metadata)
